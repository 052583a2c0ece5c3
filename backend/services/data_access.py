from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

import models
from models import DayOfWeek, PeriodType
from services.proxy_engine import PeriodSlot, ScheduledLesson, TeacherDay


def _period_slot(period: models.Period) -> PeriodSlot:
    return PeriodSlot(
        id=period.id,
        period_no=period.period_no,
        period_type=period.period_type,
        start_time=period.start_time,
        end_time=period.end_time,
        is_active=period.is_active,
    )


class SqlProxyDataSource:
    """Reads fresh snapshots for the proxy engine from the database."""

    def __init__(self, db: Session):
        self.db = db

    def list_active_teachers(self, day: DayOfWeek, on_date: date, excluding: int) -> List[TeacherDay]:
        teachers = self.db.query(models.Teacher).filter(
            models.Teacher.is_active.is_(True),
            models.Teacher.id != excluding,
        ).order_by(models.Teacher.id).all()

        lessons: dict = {}
        for teacher_id, period_id in self.db.query(
            models.TimetableEntry.teacher_id, models.TimetableEntry.period_id
        ).filter(models.TimetableEntry.day == day):
            lessons.setdefault(teacher_id, []).append(period_id)

        proxies: dict = {}
        for teacher_id, period_id in self.db.query(
            models.Proxy.assigned_teacher_id, models.Proxy.period_id
        ).filter(models.Proxy.date == on_date):
            proxies.setdefault(teacher_id, []).append(period_id)

        absent_ids = {
            row.teacher_id for row in self.db.query(models.TeacherAbsence.teacher_id).filter(
                models.TeacherAbsence.date == on_date
            )
        }

        return [
            TeacherDay(
                id=t.id,
                name=t.name,
                subject_ids=frozenset(t.teaching_subjects or []),
                lesson_period_ids=tuple(lessons.get(t.id, [])),
                proxy_period_ids=tuple(proxies.get(t.id, [])),
                is_absent=t.id in absent_ids,
            )
            for t in teachers
        ]

    def get_period(self, period_id: int) -> Optional[PeriodSlot]:
        period = self.db.get(models.Period, period_id)
        return _period_slot(period) if period else None

    def list_class_periods(self) -> List[PeriodSlot]:
        periods = self.db.query(models.Period).filter(
            models.Period.is_active.is_(True),
            models.Period.period_type == PeriodType.CLASS,
        ).order_by(models.Period.period_no).all()
        return [_period_slot(p) for p in periods]

    def list_timetable_for_teacher(self, teacher_id: int, day: DayOfWeek) -> List[ScheduledLesson]:
        entries = self.db.query(models.TimetableEntry).join(models.TimetableEntry.period).options(
            joinedload(models.TimetableEntry.period),
            joinedload(models.TimetableEntry.school_class),
            joinedload(models.TimetableEntry.subject),
        ).filter(
            models.TimetableEntry.teacher_id == teacher_id,
            models.TimetableEntry.day == day,
        ).order_by(models.Period.period_no).all()

        return [
            ScheduledLesson(
                period=_period_slot(entry.period),
                class_id=entry.class_id,
                class_name=entry.school_class.class_name,
                subject_id=entry.subject_id,
                subject_name=entry.subject.name,
            )
            for entry in entries
        ]
