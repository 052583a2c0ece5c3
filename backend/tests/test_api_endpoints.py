from datetime import date

import pytest
from fastapi.testclient import TestClient

from database import get_db
from main import app
import models
from models import DayOfWeek, PeriodType, UserRole

MONDAY = date(2024, 9, 2)


@pytest.fixture
def seeded(school):
    """Two lessons for Tara on Monday and two free colleagues."""
    school.period(1)
    school.period(2)
    school.period(3, PeriodType.LUNCH)
    school.subject("MATH")
    school.subject("ART")
    school.school_class("6", "A")
    school.school_class("6", "B")
    tara = school.teacher("Tara Absent", subjects=["MATH"])
    school.lesson(tara, 1, "6A", "MATH")
    school.lesson(tara, 2, "6B", "ART")
    mia = school.teacher("Mia Maths", subjects=["MATH"])
    art = school.teacher("Arlo Art", subjects=["ART"])
    school.commit()
    return school, tara, mia, art


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_root_reports_db_status(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "Connected successfully" in response.json()["db_status"]


def test_period_crud_and_validation(client):
    response = client.post("/periods/", json={"period_no": 1, "start_time": "08:00", "end_time": "08:45"})
    assert response.status_code == 201
    period = response.json()
    assert period["period_type"] == "CLASS"

    response = client.post("/periods/", json={"period_no": 2, "start_time": "09:30", "end_time": "09:00"})
    assert response.status_code == 400

    response = client.post("/periods/", json={"period_no": 3, "start_time": "9am", "end_time": "10:00"})
    assert response.status_code == 422

    response = client.post("/periods/", json={"period_no": 1, "start_time": "10:00", "end_time": "10:45"})
    assert response.status_code == 409

    response = client.delete(f"/periods/{period['id']}")
    assert response.status_code == 200
    assert client.get("/periods/").json() == []

    assert client.get("/periods/999").status_code == 404


def test_subject_codes_are_unique(client):
    assert client.post("/subjects/", json={"name": "Mathematics", "short_code": "math"}).status_code == 201
    response = client.post("/subjects/", json={"name": "Maths Again", "short_code": "MATH"})
    assert response.status_code == 409
    assert [s["short_code"] for s in client.get("/subjects/").json()] == ["MATH"]


def test_classes_bulk_create_skips_existing(client):
    payload = [{"standard": "6", "division": "a"}, {"standard": "6", "division": "B"}]
    first = client.post("/classes/bulk", json=payload)
    assert first.status_code == 201
    assert [c["class_name"] for c in first.json()] == ["6A", "6B"]

    second = client.post("/classes/bulk", json=payload)
    assert second.json() == []


def test_teacher_lifecycle(client):
    payload = {"name": "New Teacher", "email": "new.teacher@school.edu", "teaching_subjects": [1]}
    response = client.post("/teachers/", json=payload)
    assert response.status_code == 201
    teacher = response.json()
    assert teacher["is_active"] is True
    assert teacher["role"] == "TEACHER"

    assert client.post("/teachers/", json=payload).status_code == 400

    response = client.put(f"/teachers/{teacher['id']}", json={"phone": "555-0100"})
    assert response.json()["phone"] == "555-0100"

    assert client.delete(f"/teachers/{teacher['id']}").status_code == 200
    assert client.get("/teachers/").json() == []
    assert len(client.get("/teachers/", params={"active": False}).json()) == 2


def test_mark_and_clear_absence(client, seeded):
    school, tara, mia, art = seeded
    response = client.put(f"/teachers/{mia.id}/absence", json={"date": "2024-09-02", "reason": "Training"})
    assert response.status_code == 200
    assert response.json()["reason"] == "Training"

    candidates = client.post("/proxies/available-teachers", json={
        "date": "2024-09-02",
        "period_id": school.periods[1].id,
        "subject_id": school.subjects["MATH"].id,
        "absent_teacher_id": tara.id,
    }).json()
    assert [c["id"] for c in candidates] == [art.id]

    client.put(f"/teachers/{mia.id}/absence", json={"date": "2024-09-02", "is_absent": False})
    assert school.db.query(models.TeacherAbsence).count() == 0


def test_teacher_timetable_is_ordered_by_day_then_period(client, seeded):
    school, tara, mia, art = seeded
    school.lesson(tara, 1, "6B", "MATH", day=DayOfWeek.FRIDAY)
    school.commit()

    entries = client.get(f"/teachers/{tara.id}/timetable").json()
    assert [(e["day"], e["period"]["period_no"]) for e in entries] == [
        ("MONDAY", 1), ("MONDAY", 2), ("FRIDAY", 1),
    ]


def test_timetable_conflicts(client, seeded):
    school, tara, mia, art = seeded
    clash = {
        "teacher_id": tara.id,
        "day": "MONDAY",
        "period_id": school.periods[1].id,
        "class_id": school.classes["6B"].id,
        "subject_id": school.subjects["MATH"].id,
    }
    response = client.post("/timetable/", json=clash)
    assert response.status_code == 409

    conflicts = client.post("/timetable/conflicts", json={
        "day": "MONDAY", "period_id": school.periods[1].id, "class_id": school.classes["6A"].id,
    }).json()
    assert [c["type"] for c in conflicts] == ["class"]

    ok = dict(clash, teacher_id=mia.id)
    assert client.post("/timetable/", json=ok).status_code == 201

    bad_ref = dict(clash, teacher_id=999, day="TUESDAY")
    assert client.post("/timetable/", json=bad_ref).status_code == 400


def test_available_teachers_endpoint_ranks_candidates(client, seeded):
    school, tara, mia, art = seeded
    response = client.post("/proxies/available-teachers", json={
        "date": "2024-09-02",
        "period_id": school.periods[1].id,
        "subject_id": school.subjects["MATH"].id,
        "absent_teacher_id": tara.id,
    })
    assert response.status_code == 200
    candidates = response.json()
    assert [c["id"] for c in candidates] == [mia.id, art.id]
    assert candidates[0] == {
        "id": mia.id,
        "name": "Mia Maths",
        "current_periods": 0,
        "proxy_count": 0,
        "total_load": 0,
        "subject_match": True,
        "adjacent_free": True,
        "score": -3,
    }


def test_available_teachers_for_lunch_period_is_empty(client, seeded):
    school, tara, mia, art = seeded
    response = client.post("/proxies/available-teachers", json={
        "date": "2024-09-02",
        "period_id": school.periods[3].id,
        "subject_id": school.subjects["MATH"].id,
        "absent_teacher_id": tara.id,
    })
    assert response.status_code == 200
    assert response.json() == []


def test_auto_assign_then_persist(client, seeded):
    school, tara, mia, art = seeded

    response = client.post("/proxies/auto-assign", json={"date": "2024-09-02", "absent_teacher_id": tara.id})
    assert response.status_code == 200
    plan = response.json()
    assert plan["lessons"] == 2
    assert plan["unfilled_period_ids"] == []
    assert [(a["period_no"], a["assigned_teacher_id"]) for a in plan["assignments"]] == [(1, mia.id), (2, art.id)]
    # Proposals are not stored
    assert school.db.query(models.Proxy).count() == 0

    batch = {
        "date": "2024-09-02",
        "absent_teacher_id": tara.id,
        "absence_reason": "Sick",
        "assignments": [
            {k: a[k] for k in ("period_id", "class_id", "subject_id", "assigned_teacher_id")}
            for a in plan["assignments"]
        ],
    }
    response = client.post("/proxies/assign", json=batch)
    assert response.status_code == 201
    assert len(response.json()) == 2

    absence = school.db.query(models.TeacherAbsence).one()
    assert absence.teacher_id == tara.id
    assert absence.reason == "Sick"

    # Same substitutes, same periods: rejected as a whole
    response = client.post("/proxies/assign", json=batch)
    assert response.status_code == 409
    assert school.db.query(models.Proxy).count() == 2

    listed = client.get("/proxies/", params={"date": "2024-09-02", "teacher_id": mia.id}).json()
    assert [p["assigned_teacher_id"] for p in listed] == [mia.id]

    load = client.get(f"/proxies/teacher-load/{art.id}").json()
    assert load["proxy_count"] == 1

    # Once stored, Arlo is booked in period 2 and Mia carries one proxy
    candidates = client.post("/proxies/available-teachers", json={
        "date": "2024-09-02",
        "period_id": school.periods[2].id,
        "subject_id": school.subjects["ART"].id,
        "absent_teacher_id": tara.id,
    }).json()
    assert [(c["id"], c["proxy_count"]) for c in candidates] == [(mia.id, 1)]


def test_auto_assign_unknown_teacher(client):
    response = client.post("/proxies/auto-assign", json={"date": "2024-09-02", "absent_teacher_id": 404})
    assert response.status_code == 404


def test_auto_assign_on_sunday_is_empty(client, seeded):
    school, tara, mia, art = seeded
    response = client.post("/proxies/auto-assign", json={"date": "2024-09-08", "absent_teacher_id": tara.id})
    assert response.status_code == 200
    assert response.json()["assignments"] == []
    assert response.json()["lessons"] == 0


def test_assign_rejects_busy_or_self_cover(client, seeded):
    school, tara, mia, art = seeded
    school.lesson(mia, 2, "6A", "MATH")
    school.commit()

    base = {"date": "2024-09-02", "absent_teacher_id": tara.id}
    busy = dict(base, assignments=[{
        "period_id": school.periods[2].id,
        "class_id": school.classes["6B"].id,
        "subject_id": school.subjects["ART"].id,
        "assigned_teacher_id": mia.id,
    }])
    assert client.post("/proxies/assign", json=busy).status_code == 409

    self_cover = dict(base, assignments=[{
        "period_id": school.periods[1].id,
        "class_id": school.classes["6A"].id,
        "subject_id": school.subjects["MATH"].id,
        "assigned_teacher_id": tara.id,
    }])
    assert client.post("/proxies/assign", json=self_cover).status_code == 400

    duplicate_period = dict(base, assignments=busy["assignments"] * 2)
    assert client.post("/proxies/assign", json=duplicate_period).status_code == 422


def cover_period_one(school, tara, substitute_id, **overrides):
    assignment = {
        "period_id": school.periods[1].id,
        "class_id": school.classes["6A"].id,
        "subject_id": school.subjects["MATH"].id,
        "assigned_teacher_id": substitute_id,
    }
    assignment.update(overrides)
    return {"date": "2024-09-02", "absent_teacher_id": tara.id, "assignments": [assignment]}


def test_assign_rejects_unknown_references(client, seeded):
    school, tara, mia, art = seeded

    response = client.post("/proxies/assign", json=cover_period_one(school, tara, 9999))
    assert response.status_code == 400
    assert response.json()["detail"] == "Teacher 9999 does not exist."

    for field in ("period_id", "class_id", "subject_id"):
        payload = cover_period_one(school, tara, mia.id, **{field: 9999})
        assert client.post("/proxies/assign", json=payload).status_code == 400

    assert school.db.query(models.Proxy).count() == 0
    assert client.get("/dashboard/stats", params={"today": "2024-09-02"}).status_code == 200


def test_assign_rejects_absent_or_inactive_substitute(client, seeded):
    school, tara, mia, art = seeded
    school.absence(mia, MONDAY)
    art.is_active = False
    school.commit()

    assert client.post("/proxies/assign", json=cover_period_one(school, tara, mia.id)).status_code == 409
    assert client.post("/proxies/assign", json=cover_period_one(school, tara, art.id)).status_code == 409
    assert school.db.query(models.Proxy).count() == 0
    # Absence on another date does not block
    payload = cover_period_one(school, tara, mia.id)
    payload["date"] = "2024-09-03"
    assert client.post("/proxies/assign", json=payload).status_code == 201


def test_teacher_load_applies_each_date_bound(client, seeded):
    school, tara, mia, art = seeded
    school.proxy(date(2024, 9, 2), 1, "6A", "MATH", absent=tara, assigned=mia)
    school.proxy(date(2024, 9, 9), 1, "6A", "MATH", absent=tara, assigned=mia)
    school.commit()

    def count(**params):
        return client.get(f"/proxies/teacher-load/{mia.id}", params=params).json()["proxy_count"]

    assert count() == 2
    assert count(start_date="2024-09-05") == 1
    assert count(end_date="2024-09-05") == 1
    assert count(start_date="2024-09-01", end_date="2024-09-10") == 2


def test_delete_proxy(client, seeded):
    school, tara, mia, art = seeded
    proxy = school.proxy(MONDAY, 1, "6A", "MATH", absent=tara, assigned=mia)
    school.commit()

    assert client.get(f"/proxies/{proxy.id}").status_code == 200
    assert client.delete(f"/proxies/{proxy.id}").status_code == 200
    assert client.get(f"/proxies/{proxy.id}").status_code == 404


def test_dashboard_stats(client, seeded):
    school, tara, mia, art = seeded
    school.proxy(MONDAY, 1, "6A", "MATH", absent=tara, assigned=mia)
    school.absence(tara, MONDAY)
    school.commit()

    stats = client.get("/dashboard/stats", params={"today": "2024-09-02"}).json()
    assert stats["total_teachers"] == 3
    assert stats["absent_today"] == 1
    assert stats["proxies_today"] == 1
    assert len(stats["proxy_trend"]) == 7
    assert stats["proxy_trend"][-1] == {"date": "2024-09-02", "count": 1}
    assert stats["recent_proxies"][0]["assigned_teacher"] == "Mia Maths"


@pytest.fixture
def anonymous_client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_login_and_role_checks(anonymous_client, db_session):
    db_session.add(models.Teacher(name="Tom Teacher", email="tom@school.edu", role=UserRole.TEACHER))
    db_session.commit()

    assert anonymous_client.get("/periods/").status_code == 401
    assert anonymous_client.post("/token", data={"username": "tom@elsewhere.com", "password": "x"}).status_code == 401

    response = anonymous_client.post("/token", data={"username": "tom@school.edu", "password": "x"})
    assert response.status_code == 200
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}

    assert anonymous_client.get("/me", headers=headers).json()["email"] == "tom@school.edu"
    assert anonymous_client.get("/periods/", headers=headers).status_code == 200
    response = anonymous_client.post(
        "/periods/", json={"period_no": 1, "start_time": "08:00", "end_time": "08:45"}, headers=headers
    )
    assert response.status_code == 403
