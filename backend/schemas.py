from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import date, datetime
from typing import Optional, List

from models import DayOfWeek, PeriodType, UserRole

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

# --- 1. Teacher Schemas ---

class TeacherBase(BaseModel):
    """Base schema for teacher data (used for creation/update)."""
    name: str = Field(..., min_length=2)
    email: EmailStr
    employee_id: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole = UserRole.TEACHER
    teaching_subjects: List[int] = []

class TeacherCreate(TeacherBase):
    """Schema for creating a new teacher."""
    pass

class TeacherUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2)
    email: Optional[EmailStr] = None
    employee_id: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    teaching_subjects: Optional[List[int]] = None

class Teacher(TeacherBase):
    """Schema for reading teacher data (includes DB-generated fields)."""
    id: int
    is_active: bool

    # Configuration for SQLAlchemy ORM compatibility
    model_config = {
        "from_attributes": True
    }

class AbsenceUpdate(BaseModel):
    """Marks (or clears) a teacher's absence for one date."""
    date: date
    is_absent: bool = True
    reason: Optional[str] = None

class TeacherAbsence(BaseModel):
    id: int
    teacher_id: int
    date: date
    reason: Optional[str] = None

    model_config = {
        "from_attributes": True
    }

# --- 2. Subject / Class / Period Schemas ---

class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=1)
    short_code: str = Field(..., min_length=1, max_length=10)

class Subject(SubjectCreate):
    id: int
    is_active: bool

    model_config = {
        "from_attributes": True
    }

class SchoolClassCreate(BaseModel):
    standard: str = Field(..., min_length=1)
    division: str = Field(..., min_length=1)

class SchoolClass(SchoolClassCreate):
    id: int
    class_name: str

    model_config = {
        "from_attributes": True
    }

class PeriodCreate(BaseModel):
    period_no: int = Field(..., ge=1)
    period_type: PeriodType = PeriodType.CLASS
    start_time: str = Field(..., pattern=TIME_PATTERN)
    end_time: str = Field(..., pattern=TIME_PATTERN)

class Period(PeriodCreate):
    id: int
    is_active: bool

    model_config = {
        "from_attributes": True
    }

# --- 3. Timetable Schemas ---

class TimetableEntryBase(BaseModel):
    """Base schema for a single timetable slot."""
    teacher_id: int
    day: DayOfWeek
    period_id: int
    class_id: int
    subject_id: int

class TimetableEntryCreate(TimetableEntryBase):
    pass

class TimetableEntry(TimetableEntryBase):
    """Schema for reading a timetable slot from the database."""
    id: int
    period: Period
    school_class: SchoolClass
    subject: Subject

    model_config = {
        "from_attributes": True
    }

class ConflictCheck(BaseModel):
    day: DayOfWeek
    period_id: int
    teacher_id: Optional[int] = None
    class_id: Optional[int] = None

class Conflict(BaseModel):
    type: str
    message: str

# --- 4. Proxy Engine Schemas ---

class AvailabilityRequest(BaseModel):
    date: date
    period_id: int
    subject_id: int
    absent_teacher_id: int

class Candidate(BaseModel):
    """A ranked substitute and the factors behind its score."""
    id: int
    name: str
    current_periods: int
    proxy_count: int
    total_load: int
    subject_match: bool
    adjacent_free: bool
    score: int

class AutoAssignRequest(BaseModel):
    date: date
    absent_teacher_id: int

class Assignment(BaseModel):
    """A proposed proxy, not yet persisted."""
    period_id: int
    class_id: int
    subject_id: int
    assigned_teacher_id: int
    period_no: int
    class_name: str
    subject_name: str
    assigned_teacher_name: str
    score: int

class AutoAssignResult(BaseModel):
    date: date
    absent_teacher_id: int
    lessons: int
    assignments: List[Assignment]
    unfilled_period_ids: List[int]

# --- 5. Proxy Persistence Schemas ---

class ProxyAssignmentInput(BaseModel):
    period_id: int
    class_id: int
    subject_id: int
    assigned_teacher_id: int

class ProxyBatchCreate(BaseModel):
    date: date
    absent_teacher_id: int
    absence_reason: Optional[str] = None
    notes: Optional[str] = None
    assignments: List[ProxyAssignmentInput] = Field(..., min_length=1)

    @field_validator("assignments")
    @classmethod
    def periods_are_unique(cls, value: List[ProxyAssignmentInput]):
        period_ids = [a.period_id for a in value]
        if len(period_ids) != len(set(period_ids)):
            raise ValueError("Each period can only be covered once per batch.")
        return value

class Proxy(BaseModel):
    id: int
    date: date
    period_id: int
    class_id: int
    subject_id: int
    absent_teacher_id: int
    assigned_teacher_id: int
    absence_reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }

class TeacherLoad(BaseModel):
    teacher_id: int
    proxy_count: int
    proxies: List[Proxy]

# --- 6. Auth Schemas (JWT) ---

class Token(BaseModel):
    """Schema for the JWT response."""
    access_token: str
    token_type: str

class TokenData(BaseModel):
    """Schema for the data payload inside the JWT."""
    email: str | None = None
    role: UserRole = UserRole.TEACHER
