from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List

from database import get_db
import models
import schemas
from routers.auth import get_current_user, require_admin, require_staff

router = APIRouter(
    prefix="/periods",
    tags=["Periods"],
    dependencies=[Depends(get_current_user)],
)


def get_period_or_404(db: Session, period_id: int) -> models.Period:
    period = db.get(models.Period, period_id)
    if not period:
        raise HTTPException(status_code=404, detail="Period not found.")
    return period


def validate_times(data: schemas.PeriodCreate):
    # "HH:MM" strings compare in clock order
    if data.start_time >= data.end_time:
        raise HTTPException(status_code=400, detail="Start time must be before end time.")


@router.get("/", response_model=List[schemas.Period])
def list_periods(db: Session = Depends(get_db)):
    return db.query(models.Period).filter(models.Period.is_active.is_(True)).order_by(models.Period.period_no).all()


@router.get("/{period_id}", response_model=schemas.Period)
def get_period(period_id: int, db: Session = Depends(get_db)):
    return get_period_or_404(db, period_id)


@router.post("/", response_model=schemas.Period, status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(require_staff)])
def create_period(data: schemas.PeriodCreate, db: Session = Depends(get_db)):
    validate_times(data)
    period = models.Period(**data.model_dump())
    db.add(period)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=f"Period {data.period_no} already exists.")
    db.refresh(period)
    return period


@router.put("/{period_id}", response_model=schemas.Period, dependencies=[Depends(require_staff)])
def update_period(period_id: int, data: schemas.PeriodCreate, db: Session = Depends(get_db)):
    validate_times(data)
    period = get_period_or_404(db, period_id)
    for key, value in data.model_dump().items():
        setattr(period, key, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=f"Period {data.period_no} already exists.")
    db.refresh(period)
    return period


@router.delete("/{period_id}", dependencies=[Depends(require_admin)])
def delete_period(period_id: int, db: Session = Depends(get_db)):
    """Soft delete: the period drops out of proxy matching."""
    period = get_period_or_404(db, period_id)
    period.is_active = False
    db.commit()
    return {"message": "Period deleted successfully"}
