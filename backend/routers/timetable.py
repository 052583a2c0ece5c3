from fastapi import APIRouter, Depends, UploadFile, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from io import BytesIO, StringIO
import logging
import pandas as pd
import re
from typing import Any, Dict, List, Optional

from database import get_db
import models
import schemas
from models import DayOfWeek
from routers.auth import get_current_user, require_staff

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/timetable",
    tags=["Timetable Management"],
    dependencies=[Depends(get_current_user)],
)

DAY_ORDER = {day: index for index, day in enumerate(DayOfWeek)}
IMPORT_COLUMNS = ["teacher_email", "day", "period_no", "class_name", "subject_code"]

# --- Helper Functions ---

def sort_by_day_and_period(entries: List[models.TimetableEntry]) -> List[models.TimetableEntry]:
    """Orders entries Monday..Saturday, then by period number."""
    return sorted(entries, key=lambda e: (DAY_ORDER[e.day], e.period.period_no))


def parse_day(value: Any) -> Optional[DayOfWeek]:
    """Accepts 'Monday', 'MON', 'monday' and similar spellings."""
    text = str(value).strip().upper()
    for day in DayOfWeek:
        if len(text) >= 3 and day.value.startswith(text):
            return day
    return None


def split_class_name(class_name: str) -> tuple[str, str] | None:
    """Splits '6A' or '10-B' into ('6', 'A')."""
    match = re.match(r'^\s*(\d{1,2})\s*-?\s*([A-Za-z])\s*$', str(class_name))
    if not match:
        return None
    return match.group(1), match.group(2).upper()


def read_timetable_frame(contents: bytes) -> pd.DataFrame:
    """Reads an Excel or CSV upload into a frame with normalized column names."""
    try:
        df = pd.read_excel(BytesIO(contents))
    except Exception:
        try:
            df = pd.read_csv(StringIO(contents.decode('utf-8-sig')))
        except Exception as e:
            raise ValueError(f"Could not read file. Error: {e}")

    df.columns = [re.sub(r'\s+', '_', str(c).strip().lower()) for c in df.columns]
    missing = [c for c in IMPORT_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing columns: {', '.join(missing)}")
    return df.dropna(how='all')


def check_conflicts(db: Session, check: schemas.ConflictCheck, exclude_id: Optional[int] = None) -> List[schemas.Conflict]:
    conflicts = []
    base = db.query(models.TimetableEntry).filter(
        models.TimetableEntry.day == check.day,
        models.TimetableEntry.period_id == check.period_id,
    )
    if exclude_id is not None:
        base = base.filter(models.TimetableEntry.id != exclude_id)

    if check.teacher_id is not None:
        clash = base.filter(models.TimetableEntry.teacher_id == check.teacher_id).first()
        if clash:
            conflicts.append(schemas.Conflict(
                type="teacher",
                message=f"Teacher is already teaching {clash.school_class.class_name} - {clash.subject.short_code}",
            ))

    if check.class_id is not None:
        clash = base.filter(models.TimetableEntry.class_id == check.class_id).first()
        if clash:
            conflicts.append(schemas.Conflict(
                type="class",
                message=f"Class already has {clash.subject.short_code} with {clash.teacher.name}",
            ))
    return conflicts


def validate_references(db: Session, entry: schemas.TimetableEntryCreate):
    for model, key, label in (
        (models.Teacher, entry.teacher_id, "Teacher"),
        (models.Period, entry.period_id, "Period"),
        (models.SchoolClass, entry.class_id, "Class"),
        (models.Subject, entry.subject_id, "Subject"),
    ):
        if db.get(model, key) is None:
            raise HTTPException(status_code=400, detail=f"{label} {key} does not exist.")


def import_timetable(db: Session, df: pd.DataFrame, replace: bool = False) -> Dict[str, Any]:
    """Creates timetable entries from an import frame; bad rows are reported, not fatal."""
    teachers = {t.email.lower(): t for t in db.query(models.Teacher).all()}
    subjects = {s.short_code.upper(): s for s in db.query(models.Subject).all()}
    periods = {p.period_no: p for p in db.query(models.Period).all()}
    classes = {c.class_name: c for c in db.query(models.SchoolClass).all()}

    errors: List[str] = []
    rows = []
    for row_idx, row in enumerate(df.itertuples(index=False), start=2):
        teacher = teachers.get(str(row.teacher_email).strip().lower())
        day = parse_day(row.day)
        subject = subjects.get(str(row.subject_code).strip().upper())
        parts = split_class_name(row.class_name)
        try:
            period = periods.get(int(row.period_no))
        except (TypeError, ValueError):
            period = None

        if not teacher:
            errors.append(f"Row {row_idx}: unknown teacher '{row.teacher_email}'")
        elif day is None:
            errors.append(f"Row {row_idx}: invalid day '{row.day}'")
        elif period is None:
            errors.append(f"Row {row_idx}: unknown period '{row.period_no}'")
        elif not subject:
            errors.append(f"Row {row_idx}: unknown subject '{row.subject_code}'")
        elif parts is None:
            errors.append(f"Row {row_idx}: invalid class '{row.class_name}'")
        else:
            rows.append((teacher, day, period, parts, subject))

    if replace:
        teacher_ids = {teacher.id for teacher, *_ in rows}
        db.query(models.TimetableEntry).filter(
            models.TimetableEntry.teacher_id.in_(teacher_ids)
        ).delete(synchronize_session=False)

    # Slots already stored count as taken
    existing = db.query(
        models.TimetableEntry.teacher_id,
        models.TimetableEntry.class_id,
        models.TimetableEntry.day,
        models.TimetableEntry.period_id,
    ).all()
    seen_teacher_slots = {(t, day, p) for t, _, day, p in existing}
    seen_class_slots = {(c, day, p) for _, c, day, p in existing}
    created = 0
    for teacher, day, period, (standard, division), subject in rows:
        school_class = classes.get(f"{standard}{division}")
        if school_class is None:
            school_class = models.SchoolClass(standard=standard, division=division)
            db.add(school_class)
            db.flush()
            classes[school_class.class_name] = school_class

        teacher_slot = (teacher.id, day, period.id)
        class_slot = (school_class.id, day, period.id)
        if teacher_slot in seen_teacher_slots or class_slot in seen_class_slots:
            errors.append(f"Duplicate slot for {teacher.name} / {school_class.class_name} on {day.value} period {period.period_no}")
            continue
        seen_teacher_slots.add(teacher_slot)
        seen_class_slots.add(class_slot)

        db.add(models.TimetableEntry(
            teacher_id=teacher.id,
            day=day,
            period_id=period.id,
            class_id=school_class.id,
            subject_id=subject.id,
        ))
        created += 1

    db.commit()
    return {"total_entries": created, "errors": errors}

# --- Endpoints ---

@router.get("/", response_model=List[schemas.TimetableEntry])
def list_timetable(
    teacher_id: Optional[int] = None,
    class_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    query = db.query(models.TimetableEntry)
    if teacher_id is not None:
        query = query.filter(models.TimetableEntry.teacher_id == teacher_id)
    if class_id is not None:
        query = query.filter(models.TimetableEntry.class_id == class_id)
    return sort_by_day_and_period(query.all())


@router.post("/", response_model=schemas.TimetableEntry, status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(require_staff)])
def create_entry(entry: schemas.TimetableEntryCreate, db: Session = Depends(get_db)):
    validate_references(db, entry)
    conflicts = check_conflicts(db, schemas.ConflictCheck(**entry.model_dump()))
    if conflicts:
        raise HTTPException(status_code=409, detail=[c.message for c in conflicts])

    db_entry = models.TimetableEntry(**entry.model_dump())
    db.add(db_entry)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Timetable slot already taken.")
    db.refresh(db_entry)
    return db_entry


@router.put("/{entry_id}", response_model=schemas.TimetableEntry, dependencies=[Depends(require_staff)])
def update_entry(entry_id: int, entry: schemas.TimetableEntryCreate, db: Session = Depends(get_db)):
    db_entry = db.get(models.TimetableEntry, entry_id)
    if not db_entry:
        raise HTTPException(status_code=404, detail="Timetable entry not found.")
    validate_references(db, entry)
    conflicts = check_conflicts(db, schemas.ConflictCheck(**entry.model_dump()), exclude_id=entry_id)
    if conflicts:
        raise HTTPException(status_code=409, detail=[c.message for c in conflicts])

    for key, value in entry.model_dump().items():
        setattr(db_entry, key, value)
    db.commit()
    db.refresh(db_entry)
    return db_entry


@router.delete("/{entry_id}", dependencies=[Depends(require_staff)])
def delete_entry(entry_id: int, db: Session = Depends(get_db)):
    db_entry = db.get(models.TimetableEntry, entry_id)
    if not db_entry:
        raise HTTPException(status_code=404, detail="Timetable entry not found.")
    db.delete(db_entry)
    db.commit()
    return {"message": "Timetable entry deleted successfully"}


@router.post("/conflicts", response_model=List[schemas.Conflict])
def find_conflicts(check: schemas.ConflictCheck, db: Session = Depends(get_db)):
    """Reports whether a teacher or class is already booked in a slot."""
    return check_conflicts(db, check)


@router.post("/import", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_staff)])
async def upload_timetable(
    file: UploadFile,
    replace: bool = False,
    db: Session = Depends(get_db)
):
    """
    Bulk-loads timetable rows from a CSV or Excel sheet with the columns
    teacher_email, day, period_no, class_name, subject_code. With
    ``replace`` the listed teachers' existing entries are dropped first.
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided.")

    if not file.filename.endswith(('.csv', '.xlsx', '.xls')):
        raise HTTPException(status_code=400, detail="Invalid file type. Please upload a CSV, XLS, or XLSX file.")

    contents = await file.read()
    try:
        df = read_timetable_frame(contents)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        result = import_timetable(db, df, replace=replace)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Import clashes with existing timetable entries.")

    logger.info("Timetable import: %s entries, %s rejected rows", result["total_entries"], len(result["errors"]))
    return {
        "message": f"Imported {result['total_entries']} timetable entries.",
        **result,
    }
