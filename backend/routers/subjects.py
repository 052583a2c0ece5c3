from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List

from database import get_db
import models
import schemas
from routers.auth import get_current_user, require_admin, require_staff

router = APIRouter(
    prefix="/subjects",
    tags=["Subjects"],
    dependencies=[Depends(get_current_user)],
)


def get_subject_or_404(db: Session, subject_id: int) -> models.Subject:
    subject = db.get(models.Subject, subject_id)
    if not subject:
        raise HTTPException(status_code=404, detail="Subject not found.")
    return subject


@router.get("/", response_model=List[schemas.Subject])
def list_subjects(db: Session = Depends(get_db)):
    return db.query(models.Subject).filter(models.Subject.is_active.is_(True)).order_by(models.Subject.name).all()


@router.get("/{subject_id}", response_model=schemas.Subject)
def get_subject(subject_id: int, db: Session = Depends(get_db)):
    return get_subject_or_404(db, subject_id)


@router.post("/", response_model=schemas.Subject, status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(require_staff)])
def create_subject(subject: schemas.SubjectCreate, db: Session = Depends(get_db)):
    db_subject = models.Subject(name=subject.name, short_code=subject.short_code.upper())
    db.add(db_subject)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Subject code already exists.")
    db.refresh(db_subject)
    return db_subject


@router.put("/{subject_id}", response_model=schemas.Subject, dependencies=[Depends(require_staff)])
def update_subject(subject_id: int, subject: schemas.SubjectCreate, db: Session = Depends(get_db)):
    db_subject = get_subject_or_404(db, subject_id)
    db_subject.name = subject.name
    db_subject.short_code = subject.short_code.upper()
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Subject code already exists.")
    db.refresh(db_subject)
    return db_subject


@router.delete("/{subject_id}", dependencies=[Depends(require_admin)])
def delete_subject(subject_id: int, db: Session = Depends(get_db)):
    """Soft delete, timetable rows keep pointing at the subject."""
    db_subject = get_subject_or_404(db, subject_id)
    db_subject.is_active = False
    db.commit()
    return {"message": "Subject deleted successfully"}
