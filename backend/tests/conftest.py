import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Keep the app's own engine in memory as well
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EMAIL_NOTIFICATIONS", "false")

from database import Base, get_db
from main import app
import models
from models import DayOfWeek, PeriodType, UserRole
from routers.auth import get_current_user


@pytest.fixture
def db_session():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def admin(db_session):
    # Inactive so the signed-in admin never shows up as a substitute
    user = models.Teacher(name="Admin User", email="admin@school.edu", role=UserRole.ADMIN, is_active=False)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def client(db_session, admin):
    """Test client signed in as an admin, with the database overridden."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: admin
    yield TestClient(app)
    app.dependency_overrides.clear()


class SchoolBuilder:
    """Small helper for seeding periods, teachers and lessons."""

    def __init__(self, db):
        self.db = db
        self.periods = {}
        self.subjects = {}
        self.classes = {}

    def period(self, period_no, period_type=PeriodType.CLASS):
        start = f"{7 + period_no:02d}:00"
        end = f"{7 + period_no:02d}:45"
        period = models.Period(period_no=period_no, period_type=period_type, start_time=start, end_time=end)
        self.db.add(period)
        self.db.flush()
        self.periods[period_no] = period
        return period

    def subject(self, code):
        subject = models.Subject(name=code.title(), short_code=code)
        self.db.add(subject)
        self.db.flush()
        self.subjects[code] = subject
        return subject

    def school_class(self, standard, division):
        school_class = models.SchoolClass(standard=standard, division=division)
        self.db.add(school_class)
        self.db.flush()
        self.classes[school_class.class_name] = school_class
        return school_class

    def teacher(self, name, subjects=(), active=True):
        teacher = models.Teacher(
            name=name,
            email=f"{name.lower().replace(' ', '.')}@school.edu",
            teaching_subjects=[self.subjects[code].id for code in subjects],
            is_active=active,
        )
        self.db.add(teacher)
        self.db.flush()
        return teacher

    def lesson(self, teacher, period_no, class_name, subject_code, day=DayOfWeek.MONDAY):
        entry = models.TimetableEntry(
            teacher_id=teacher.id,
            day=day,
            period_id=self.periods[period_no].id,
            class_id=self.classes[class_name].id,
            subject_id=self.subjects[subject_code].id,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def proxy(self, on_date, period_no, class_name, subject_code, absent, assigned):
        proxy = models.Proxy(
            date=on_date,
            period_id=self.periods[period_no].id,
            class_id=self.classes[class_name].id,
            subject_id=self.subjects[subject_code].id,
            absent_teacher_id=absent.id,
            assigned_teacher_id=assigned.id,
        )
        self.db.add(proxy)
        self.db.flush()
        return proxy

    def absence(self, teacher, on_date):
        self.db.add(models.TeacherAbsence(teacher_id=teacher.id, date=on_date))
        self.db.flush()

    def commit(self):
        self.db.commit()


@pytest.fixture
def school(db_session):
    return SchoolBuilder(db_session)
