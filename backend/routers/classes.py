from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List

from database import get_db
import models
import schemas
from routers.auth import get_current_user, require_admin, require_staff
from routers.timetable import sort_by_day_and_period

router = APIRouter(
    prefix="/classes",
    tags=["Classes"],
    dependencies=[Depends(get_current_user)],
)


def get_class_or_404(db: Session, class_id: int) -> models.SchoolClass:
    school_class = db.get(models.SchoolClass, class_id)
    if not school_class:
        raise HTTPException(status_code=404, detail="Class not found.")
    return school_class


@router.get("/", response_model=List[schemas.SchoolClass])
def list_classes(db: Session = Depends(get_db)):
    return db.query(models.SchoolClass).order_by(models.SchoolClass.standard, models.SchoolClass.division).all()


@router.get("/{class_id}", response_model=schemas.SchoolClass)
def get_class(class_id: int, db: Session = Depends(get_db)):
    return get_class_or_404(db, class_id)


@router.post("/bulk", response_model=List[schemas.SchoolClass], status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(require_staff)])
def create_classes(classes: List[schemas.SchoolClassCreate], db: Session = Depends(get_db)):
    """Creates several class sections at once, skipping ones that already exist."""
    created = []
    for item in classes:
        standard, division = item.standard.strip(), item.division.strip().upper()
        exists = db.query(models.SchoolClass).filter(
            models.SchoolClass.standard == standard,
            models.SchoolClass.division == division,
        ).first()
        if exists:
            continue
        school_class = models.SchoolClass(standard=standard, division=division)
        db.add(school_class)
        created.append(school_class)
    db.commit()
    for school_class in created:
        db.refresh(school_class)
    return created


@router.put("/{class_id}", response_model=schemas.SchoolClass, dependencies=[Depends(require_staff)])
def update_class(class_id: int, data: schemas.SchoolClassCreate, db: Session = Depends(get_db)):
    school_class = get_class_or_404(db, class_id)
    school_class.standard = data.standard.strip()
    school_class.division = data.division.strip().upper()
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Class already exists.")
    db.refresh(school_class)
    return school_class


@router.delete("/{class_id}", dependencies=[Depends(require_admin)])
def delete_class(class_id: int, db: Session = Depends(get_db)):
    school_class = get_class_or_404(db, class_id)
    in_use = db.query(models.TimetableEntry).filter(models.TimetableEntry.class_id == class_id).first()
    if in_use:
        raise HTTPException(status_code=400, detail="Class still has timetable entries.")
    db.delete(school_class)
    db.commit()
    return {"message": "Class deleted successfully"}


@router.get("/{class_id}/timetable", response_model=List[schemas.TimetableEntry])
def get_class_timetable(class_id: int, db: Session = Depends(get_db)):
    get_class_or_404(db, class_id)
    entries = db.query(models.TimetableEntry).filter(models.TimetableEntry.class_id == class_id).all()
    return sort_by_day_and_period(entries)
