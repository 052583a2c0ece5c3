"""
Substitute (proxy) teacher matching.

find_available() ranks the teachers who could cover one period on one date.
auto_assign() walks an absent teacher's lessons for the date in period order
and greedily takes the best-ranked candidate for each lesson. Neither function
writes anything: persisting the result is the caller's job.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional, Protocol, Sequence

from config import ProxyPolicy
from models import DayOfWeek, PeriodType
from schemas import Assignment, Candidate

logger = logging.getLogger(__name__)

# date.weekday() -> school day. Sunday (6) has no lessons.
SCHOOL_DAYS = {
    0: DayOfWeek.MONDAY,
    1: DayOfWeek.TUESDAY,
    2: DayOfWeek.WEDNESDAY,
    3: DayOfWeek.THURSDAY,
    4: DayOfWeek.FRIDAY,
    5: DayOfWeek.SATURDAY,
}


def day_of_week(on_date: date) -> Optional[DayOfWeek]:
    """Returns the school day for a calendar date, or None on Sunday."""
    return SCHOOL_DAYS.get(on_date.weekday())


# --- Snapshots handed over by the data source ---

@dataclass(frozen=True)
class PeriodSlot:
    id: int
    period_no: int
    period_type: PeriodType
    start_time: str = ""
    end_time: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class TeacherDay:
    """A candidate teacher as seen on one date."""
    id: int
    name: str
    subject_ids: frozenset = frozenset()
    # Period ids of the teacher's regular lessons on that weekday
    lesson_period_ids: tuple = ()
    # Period ids of proxies already committed for the teacher on that date
    proxy_period_ids: tuple = ()
    is_absent: bool = False


@dataclass(frozen=True)
class ScheduledLesson:
    period: PeriodSlot
    class_id: int
    class_name: str
    subject_id: int
    subject_name: str


class ProxyDataSource(Protocol):
    def list_active_teachers(
        self, day: DayOfWeek, on_date: date, excluding: int
    ) -> List[TeacherDay]: ...

    def get_period(self, period_id: int) -> Optional[PeriodSlot]: ...

    def list_class_periods(self) -> List[PeriodSlot]: ...

    def list_timetable_for_teacher(
        self, teacher_id: int, day: DayOfWeek
    ) -> List[ScheduledLesson]: ...


@dataclass
class _Neighbours:
    previous_id: Optional[int] = None
    next_id: Optional[int] = None


def _neighbours(class_periods: Sequence[PeriodSlot], period_id: int) -> _Neighbours:
    ids = [p.id for p in class_periods]
    if period_id not in ids:
        return _Neighbours()
    index = ids.index(period_id)
    return _Neighbours(
        previous_id=ids[index - 1] if index > 0 else None,
        next_id=ids[index + 1] if index < len(ids) - 1 else None,
    )


def _is_adjacent_free(teacher: TeacherDay, around: _Neighbours) -> bool:
    if around.previous_id is not None and around.previous_id not in teacher.lesson_period_ids:
        return True
    if around.next_id is not None and around.next_id not in teacher.lesson_period_ids:
        return True
    return False


def score_candidate(
    total_load: int, subject_match: bool, adjacent_free: bool, policy: ProxyPolicy
) -> int:
    """Lower is better: load first, then subject fit, then a free neighbour."""
    score = total_load
    if subject_match:
        score -= policy.subject_match_bonus
    if adjacent_free:
        score -= policy.adjacent_free_bonus
    return score


def find_available(
    source: ProxyDataSource,
    on_date: date,
    period_id: int,
    subject_id: int,
    absent_teacher_id: int,
    policy: ProxyPolicy,
    tentative: Iterable[Assignment] = (),
) -> List[Candidate]:
    """
    Ranks the teachers who can cover ``period_id`` on ``on_date``.

    ``tentative`` holds assignments proposed earlier in the same run but not
    yet stored; they count exactly like committed proxies, so a teacher picked
    for this period is excluded and every pick adds to that teacher's load.

    An unknown, inactive or non-CLASS period, or a Sunday, yields an empty list.
    """
    day = day_of_week(on_date)
    if day is None:
        return []

    period = source.get_period(period_id)
    if period is None or not period.is_active or period.period_type != PeriodType.CLASS:
        logger.debug("Period %s is not a coverable class period", period_id)
        return []

    teachers = source.list_active_teachers(day, on_date, excluding=absent_teacher_id)
    around = _neighbours(source.list_class_periods(), period_id)

    pending: dict = {}
    for assignment in tentative:
        pending.setdefault(assignment.assigned_teacher_id, []).append(assignment.period_id)

    candidates: List[Candidate] = []
    for teacher in teachers:
        if teacher.id == absent_teacher_id:
            continue
        if teacher.is_absent:
            continue
        if period_id in teacher.lesson_period_ids:
            continue
        proxy_periods = list(teacher.proxy_period_ids) + pending.get(teacher.id, [])
        if period_id in proxy_periods:
            continue

        current_periods = len(teacher.lesson_period_ids)
        proxy_count = len(proxy_periods)
        total_load = current_periods + proxy_count
        if total_load >= policy.overload_threshold:
            logger.debug("Teacher %s skipped, load %s", teacher.id, total_load)
            continue

        subject_match = subject_id in teacher.subject_ids
        adjacent_free = _is_adjacent_free(teacher, around)

        candidates.append(Candidate(
            id=teacher.id,
            name=teacher.name,
            current_periods=current_periods,
            proxy_count=proxy_count,
            total_load=total_load,
            subject_match=subject_match,
            adjacent_free=adjacent_free,
            score=score_candidate(total_load, subject_match, adjacent_free, policy),
        ))

    # sorted() is stable: equal scores keep the data source's order
    return sorted(candidates, key=lambda c: c.score)


@dataclass
class AutoAssignRun:
    lessons: List[ScheduledLesson] = field(default_factory=list)
    assignments: List[Assignment] = field(default_factory=list)

    @property
    def unfilled_period_ids(self) -> List[int]:
        covered = {a.period_id for a in self.assignments}
        return [lesson.period.id for lesson in self.lessons if lesson.period.id not in covered]


def plan_day(
    source: ProxyDataSource,
    on_date: date,
    absent_teacher_id: int,
    policy: ProxyPolicy,
) -> AutoAssignRun:
    """Greedy single pass over the absent teacher's class lessons, in period order."""
    run = AutoAssignRun()
    day = day_of_week(on_date)
    if day is None:
        return run

    timetable = source.list_timetable_for_teacher(absent_teacher_id, day)
    run.lessons = [
        lesson for lesson in sorted(timetable, key=lambda entry: entry.period.period_no)
        if lesson.period.period_type == PeriodType.CLASS and lesson.period.is_active
    ]

    for lesson in run.lessons:
        ranked = find_available(
            source,
            on_date,
            lesson.period.id,
            lesson.subject_id,
            absent_teacher_id,
            policy,
            tentative=run.assignments,
        )
        if not ranked:
            logger.info(
                "No substitute for teacher %s, period %s on %s",
                absent_teacher_id, lesson.period.period_no, on_date,
            )
            continue

        best = ranked[0]
        run.assignments.append(Assignment(
            period_id=lesson.period.id,
            class_id=lesson.class_id,
            subject_id=lesson.subject_id,
            assigned_teacher_id=best.id,
            period_no=lesson.period.period_no,
            class_name=lesson.class_name,
            subject_name=lesson.subject_name,
            assigned_teacher_name=best.name,
            score=best.score,
        ))

    logger.info(
        "Auto-assign for teacher %s on %s: %s of %s lessons covered",
        absent_teacher_id, on_date, len(run.assignments), len(run.lessons),
    )
    return run


def auto_assign(
    source: ProxyDataSource,
    on_date: date,
    absent_teacher_id: int,
    policy: ProxyPolicy,
) -> List[Assignment]:
    """Proposes one substitute per coverable lesson; unfillable lessons are left out."""
    return plan_day(source, on_date, absent_teacher_id, policy).assignments
