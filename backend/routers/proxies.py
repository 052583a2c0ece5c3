from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from datetime import date
import logging
from typing import List, Optional

from config import EMAIL_NOTIFICATIONS, ProxyPolicy, get_proxy_policy
from database import get_db
import models
import schemas
from routers.auth import get_current_user, require_staff
from services.data_access import SqlProxyDataSource
from services.proxy_engine import day_of_week, find_available, plan_day
from utils import send_proxy_notification

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/proxies",
    tags=["Daily Operations"],
    dependencies=[Depends(get_current_user)],
)


@router.get("/", response_model=List[schemas.Proxy])
def list_proxies(
    on_date: Optional[date] = Query(None, alias="date"),
    teacher_id: Optional[int] = None,
    class_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Lists proxies, newest date first, filtered by date, teacher (either side) or class."""
    query = db.query(models.Proxy).join(models.Proxy.period)
    if on_date is not None:
        query = query.filter(models.Proxy.date == on_date)
    if teacher_id is not None:
        query = query.filter(or_(
            models.Proxy.absent_teacher_id == teacher_id,
            models.Proxy.assigned_teacher_id == teacher_id,
        ))
    if class_id is not None:
        query = query.filter(models.Proxy.class_id == class_id)
    return query.order_by(models.Proxy.date.desc(), models.Period.period_no).all()


@router.post("/available-teachers", response_model=List[schemas.Candidate])
def available_teachers(
    req: schemas.AvailabilityRequest,
    db: Session = Depends(get_db),
    policy: ProxyPolicy = Depends(get_proxy_policy),
):
    """Ranks the teachers who could cover one period; best candidate first."""
    return find_available(
        SqlProxyDataSource(db),
        req.date,
        req.period_id,
        req.subject_id,
        req.absent_teacher_id,
        policy,
    )


@router.post("/auto-assign", response_model=schemas.AutoAssignResult, dependencies=[Depends(require_staff)])
def auto_assign_proxies(
    req: schemas.AutoAssignRequest,
    db: Session = Depends(get_db),
    policy: ProxyPolicy = Depends(get_proxy_policy),
):
    """
    Proposes a proxy for each of the absent teacher's class lessons on the date.
    Nothing is stored; review the proposal and send it to /proxies/assign.
    Lessons nobody can cover are listed in ``unfilled_period_ids``.
    """
    if db.get(models.Teacher, req.absent_teacher_id) is None:
        raise HTTPException(status_code=404, detail="Teacher not found.")

    run = plan_day(SqlProxyDataSource(db), req.date, req.absent_teacher_id, policy)
    return schemas.AutoAssignResult(
        date=req.date,
        absent_teacher_id=req.absent_teacher_id,
        lessons=len(run.lessons),
        assignments=run.assignments,
        unfilled_period_ids=run.unfilled_period_ids,
    )


def notify_assigned_teachers(proxies: List[models.Proxy], reason: Optional[str]):
    for proxy in proxies:
        day = day_of_week(proxy.date)
        send_proxy_notification(proxy.assigned_teacher.email, {
            "date": proxy.date.strftime('%Y-%m-%d'),
            "day": day.value.title() if day else "",
            "period_no": proxy.period.period_no,
            "time": f"{proxy.period.start_time}-{proxy.period.end_time}",
            "class_name": proxy.school_class.class_name,
            "subject": proxy.subject.name,
            "absent_name": proxy.absent_teacher.name,
            "substitute_name": proxy.assigned_teacher.name,
            "reason": reason,
        })


def get_substitute_or_400(db: Session, assignment: schemas.ProxyAssignmentInput) -> models.Teacher:
    """Resolves every id in an assignment; unknown ones are a 400."""
    for model, key, label in (
        (models.Period, assignment.period_id, "Period"),
        (models.SchoolClass, assignment.class_id, "Class"),
        (models.Subject, assignment.subject_id, "Subject"),
        (models.Teacher, assignment.assigned_teacher_id, "Teacher"),
    ):
        if db.get(model, key) is None:
            raise HTTPException(status_code=400, detail=f"{label} {key} does not exist.")
    return db.get(models.Teacher, assignment.assigned_teacher_id)


@router.post("/assign", response_model=List[schemas.Proxy], status_code=status.HTTP_201_CREATED)
def assign_proxies(
    batch: schemas.ProxyBatchCreate,
    db: Session = Depends(get_db),
    current_user: models.Teacher = Depends(require_staff),
):
    """
    Stores a batch of proxies and marks the absent teacher absent for the date,
    all in one transaction. A substitute already booked in a period makes the
    whole batch fail with 409.
    """
    if db.get(models.Teacher, batch.absent_teacher_id) is None:
        raise HTTPException(status_code=404, detail="Teacher not found.")
    if any(a.assigned_teacher_id == batch.absent_teacher_id for a in batch.assignments):
        raise HTTPException(status_code=400, detail="An absent teacher cannot cover their own lessons.")

    day = day_of_week(batch.date)
    if day is None:
        raise HTTPException(status_code=400, detail="Sunday is not a school day.")
    for assignment in batch.assignments:
        substitute = get_substitute_or_400(db, assignment)
        if not substitute.is_active:
            raise HTTPException(status_code=409, detail=f"Teacher {substitute.id} is inactive.")
        absent = db.query(models.TeacherAbsence).filter(
            models.TeacherAbsence.teacher_id == substitute.id,
            models.TeacherAbsence.date == batch.date,
        ).first()
        if absent:
            raise HTTPException(status_code=409, detail=f"Teacher {substitute.id} is absent on {batch.date}.")
        busy = db.query(models.TimetableEntry).filter(
            models.TimetableEntry.teacher_id == assignment.assigned_teacher_id,
            models.TimetableEntry.day == day,
            models.TimetableEntry.period_id == assignment.period_id,
        ).first()
        if busy:
            raise HTTPException(
                status_code=409,
                detail=f"Teacher {assignment.assigned_teacher_id} has a lesson in period {assignment.period_id}.",
            )

    absence = db.query(models.TeacherAbsence).filter(
        models.TeacherAbsence.teacher_id == batch.absent_teacher_id,
        models.TeacherAbsence.date == batch.date,
    ).first()
    if absence:
        absence.reason = batch.absence_reason
    else:
        db.add(models.TeacherAbsence(
            teacher_id=batch.absent_teacher_id, date=batch.date, reason=batch.absence_reason
        ))

    proxies = [
        models.Proxy(
            date=batch.date,
            absent_teacher_id=batch.absent_teacher_id,
            absence_reason=batch.absence_reason,
            notes=batch.notes,
            created_by=current_user.id,
            **assignment.model_dump(),
        )
        for assignment in batch.assignments
    ]
    db.add_all(proxies)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="A substitute is already booked in one of these periods.")

    for proxy in proxies:
        db.refresh(proxy)
    logger.info("Stored %s proxies for teacher %s on %s", len(proxies), batch.absent_teacher_id, batch.date)

    if EMAIL_NOTIFICATIONS:
        notify_assigned_teachers(proxies, batch.absence_reason)
    return proxies


@router.get("/teacher-load/{teacher_id}", response_model=schemas.TeacherLoad)
def get_teacher_load(
    teacher_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
):
    """Counts the proxies a teacher has covered, optionally within a date range."""
    query = db.query(models.Proxy).filter(models.Proxy.assigned_teacher_id == teacher_id)
    if start_date:
        query = query.filter(models.Proxy.date >= start_date)
    if end_date:
        query = query.filter(models.Proxy.date <= end_date)
    proxies = query.order_by(models.Proxy.date).all()
    return schemas.TeacherLoad(
        teacher_id=teacher_id,
        proxy_count=len(proxies),
        proxies=[schemas.Proxy.model_validate(p) for p in proxies],
    )


@router.get("/{proxy_id}", response_model=schemas.Proxy)
def get_proxy(proxy_id: int, db: Session = Depends(get_db)):
    proxy = db.get(models.Proxy, proxy_id)
    if not proxy:
        raise HTTPException(status_code=404, detail="Proxy not found.")
    return proxy


@router.delete("/{proxy_id}", dependencies=[Depends(require_staff)])
def delete_proxy(proxy_id: int, db: Session = Depends(get_db)):
    proxy = db.get(models.Proxy, proxy_id)
    if not proxy:
        raise HTTPException(status_code=404, detail="Proxy not found.")
    db.delete(proxy)
    db.commit()
    return {"message": "Proxy deleted successfully"}
