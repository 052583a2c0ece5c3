import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Boolean, Column, Date, DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base


def utcnow():
    return datetime.now(timezone.utc)


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    COORDINATOR = "COORDINATOR"
    TEACHER = "TEACHER"


class PeriodType(str, enum.Enum):
    CLASS = "CLASS"
    RECESS = "RECESS"
    LUNCH = "LUNCH"
    OTHER = "OTHER"


class DayOfWeek(str, enum.Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"


# --- 1. Teacher Model ---
class Teacher(Base):
    """Staff member who teaches regular lessons and can cover as a proxy."""
    __tablename__ = "teachers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    employee_id = Column(String, unique=True, nullable=True)
    phone = Column(String, nullable=True)
    role = Column(Enum(UserRole), default=UserRole.TEACHER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    # Subject ids the teacher is qualified to teach
    teaching_subjects = Column(JSON, default=list, nullable=False)

    # Relationships
    timetable_entries = relationship("TimetableEntry", back_populates="teacher")
    absences = relationship("TeacherAbsence", back_populates="teacher")
    proxies_as_absent = relationship(
        "Proxy", back_populates="absent_teacher", foreign_keys="[Proxy.absent_teacher_id]"
    )
    proxies_as_assigned = relationship(
        "Proxy", back_populates="assigned_teacher", foreign_keys="[Proxy.assigned_teacher_id]"
    )


# --- 2. Subject Model ---
class Subject(Base):
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    short_code = Column(String, unique=True, index=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


# --- 3. Class Model ---
class SchoolClass(Base):
    """A class section such as 6A (standard 6, division A)."""
    __tablename__ = "classes"
    __table_args__ = (UniqueConstraint("standard", "division", name="uq_class_standard_division"),)

    id = Column(Integer, primary_key=True, index=True)
    standard = Column(String, nullable=False)
    division = Column(String, nullable=False)

    timetable_entries = relationship("TimetableEntry", back_populates="school_class")

    @property
    def class_name(self) -> str:
        return f"{self.standard}{self.division}"


# --- 4. Period Model ---
class Period(Base):
    """A fixed daily time slot. Only CLASS periods need proxy coverage."""
    __tablename__ = "periods"

    id = Column(Integer, primary_key=True, index=True)
    period_no = Column(Integer, unique=True, index=True, nullable=False)
    period_type = Column(Enum(PeriodType), default=PeriodType.CLASS, nullable=False)
    start_time = Column(String, nullable=False)  # e.g., "08:00"
    end_time = Column(String, nullable=False)    # e.g., "08:45"
    is_active = Column(Boolean, default=True, nullable=False)


# --- 5. Timetable Entry Model ---
class TimetableEntry(Base):
    """A recurring weekly lesson."""
    __tablename__ = "timetable"
    __table_args__ = (
        UniqueConstraint("teacher_id", "day", "period_id", name="uq_timetable_teacher_slot"),
        UniqueConstraint("class_id", "day", "period_id", name="uq_timetable_class_slot"),
    )

    id = Column(Integer, primary_key=True, index=True)
    teacher_id = Column(Integer, ForeignKey("teachers.id"), nullable=False, index=True)
    day = Column(Enum(DayOfWeek), nullable=False, index=True)
    period_id = Column(Integer, ForeignKey("periods.id"), nullable=False)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)

    # Relationships
    teacher = relationship("Teacher", back_populates="timetable_entries")
    period = relationship("Period")
    school_class = relationship("SchoolClass", back_populates="timetable_entries")
    subject = relationship("Subject")


# --- 6. Absence Model ---
class TeacherAbsence(Base):
    """Marks a teacher absent for a whole calendar date."""
    __tablename__ = "teacher_absences"
    __table_args__ = (UniqueConstraint("teacher_id", "date", name="uq_absence_teacher_date"),)

    id = Column(Integer, primary_key=True, index=True)
    teacher_id = Column(Integer, ForeignKey("teachers.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    reason = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    teacher = relationship("Teacher", back_populates="absences")


# --- 7. Proxy Model ---
class Proxy(Base):
    """A substitution committed for one period on one calendar date."""
    __tablename__ = "proxies"
    __table_args__ = (
        UniqueConstraint("date", "period_id", "assigned_teacher_id", name="uq_proxy_substitute_slot"),
    )

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, nullable=False, index=True)
    period_id = Column(Integer, ForeignKey("periods.id"), nullable=False)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)
    absent_teacher_id = Column(Integer, ForeignKey("teachers.id"), nullable=False)
    assigned_teacher_id = Column(Integer, ForeignKey("teachers.id"), nullable=False, index=True)
    absence_reason = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    created_by = Column(Integer, ForeignKey("teachers.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    period = relationship("Period")
    school_class = relationship("SchoolClass")
    subject = relationship("Subject")
    absent_teacher = relationship(
        "Teacher", back_populates="proxies_as_absent", foreign_keys=[absent_teacher_id]
    )
    assigned_teacher = relationship(
        "Teacher", back_populates="proxies_as_assigned", foreign_keys=[assigned_teacher_id]
    )
