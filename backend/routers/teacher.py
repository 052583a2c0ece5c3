from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional

from database import get_db
import models
import schemas
from routers.auth import get_current_user, require_admin, require_staff
from routers.timetable import sort_by_day_and_period

router = APIRouter(
    prefix="/teachers",
    tags=["Teacher Management"],
    dependencies=[Depends(get_current_user)],
)


def get_teacher_or_404(db: Session, teacher_id: int) -> models.Teacher:
    teacher = db.get(models.Teacher, teacher_id)
    if not teacher:
        raise HTTPException(status_code=404, detail="Teacher not found.")
    return teacher


@router.get("/", response_model=List[schemas.Teacher])
def list_teachers(
    active: Optional[bool] = True,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Lists teachers, active ones by default, optionally filtered by name or email."""
    query = db.query(models.Teacher)
    if active is not None:
        query = query.filter(models.Teacher.is_active.is_(active))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(models.Teacher.name.ilike(pattern), models.Teacher.email.ilike(pattern)))
    return query.order_by(models.Teacher.name).all()


@router.get("/{teacher_id}", response_model=schemas.Teacher)
def get_teacher(teacher_id: int, db: Session = Depends(get_db)):
    return get_teacher_or_404(db, teacher_id)


@router.post("/", response_model=schemas.Teacher, status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(require_staff)])
def create_teacher(teacher: schemas.TeacherCreate, db: Session = Depends(get_db)):
    """Creates a new teacher account."""

    # Check if email is already registered
    db_teacher = db.query(models.Teacher).filter(models.Teacher.email == teacher.email).first()
    if db_teacher:
        raise HTTPException(status_code=400, detail="Email already registered.")

    db_teacher = models.Teacher(**teacher.model_dump())
    db.add(db_teacher)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Employee ID already registered.")
    db.refresh(db_teacher)
    return db_teacher


@router.put("/{teacher_id}", response_model=schemas.Teacher, dependencies=[Depends(require_staff)])
def update_teacher(teacher_id: int, changes: schemas.TeacherUpdate, db: Session = Depends(get_db)):
    teacher = get_teacher_or_404(db, teacher_id)
    for key, value in changes.model_dump(exclude_unset=True).items():
        setattr(teacher, key, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Email or employee ID already registered.")
    db.refresh(teacher)
    return teacher


@router.delete("/{teacher_id}", dependencies=[Depends(require_admin)])
def deactivate_teacher(teacher_id: int, db: Session = Depends(get_db)):
    """Soft delete: the teacher stops being offered as a proxy but history stays."""
    teacher = get_teacher_or_404(db, teacher_id)
    teacher.is_active = False
    db.commit()
    return {"message": "Teacher deactivated successfully"}


@router.put("/{teacher_id}/absence", dependencies=[Depends(require_staff)])
def set_absence(teacher_id: int, data: schemas.AbsenceUpdate, db: Session = Depends(get_db)):
    """Marks a teacher absent (or present again) for a single date."""
    get_teacher_or_404(db, teacher_id)

    absence = db.query(models.TeacherAbsence).filter(
        models.TeacherAbsence.teacher_id == teacher_id,
        models.TeacherAbsence.date == data.date,
    ).first()

    if data.is_absent:
        if absence:
            absence.reason = data.reason
        else:
            absence = models.TeacherAbsence(teacher_id=teacher_id, date=data.date, reason=data.reason)
            db.add(absence)
        db.commit()
        db.refresh(absence)
        return schemas.TeacherAbsence.model_validate(absence)

    if absence:
        db.delete(absence)
        db.commit()
    return {"message": "Teacher marked present"}


@router.get("/{teacher_id}/timetable", response_model=List[schemas.TimetableEntry])
def get_teacher_timetable(teacher_id: int, db: Session = Depends(get_db)):
    """Retrieves the complete weekly timetable for a specific teacher."""
    get_teacher_or_404(db, teacher_id)

    entries = db.query(models.TimetableEntry).filter(
        models.TimetableEntry.teacher_id == teacher_id
    ).all()
    return sort_by_day_and_period(entries)
