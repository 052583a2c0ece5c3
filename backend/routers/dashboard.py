from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session
from datetime import date, timedelta
from typing import Any, Dict

from database import get_db
import models
from routers.auth import get_current_user

router = APIRouter(
    prefix="/dashboard",
    tags=["Dashboard"],
    dependencies=[Depends(get_current_user)],
)

TREND_DAYS = 7
RECENT_LIMIT = 5


@router.get("/stats")
def get_stats(today: date | None = None, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Headline numbers for today plus the proxy trend over the last week."""
    today = today or date.today()
    week_start = today - timedelta(days=TREND_DAYS - 1)

    total_teachers = db.query(models.Teacher).filter(models.Teacher.is_active.is_(True)).count()
    absent_today = db.query(models.TeacherAbsence).filter(models.TeacherAbsence.date == today).count()
    proxies_today = db.query(models.Proxy).filter(models.Proxy.date == today).count()

    counts = dict(
        db.query(models.Proxy.date, func.count(models.Proxy.id)).filter(
            models.Proxy.date >= week_start,
            models.Proxy.date <= today,
        ).group_by(models.Proxy.date).all()
    )
    trend = []
    for offset in range(TREND_DAYS):
        day = week_start + timedelta(days=offset)
        trend.append({"date": day.isoformat(), "count": counts.get(day, 0)})

    recent = db.query(models.Proxy).order_by(models.Proxy.created_at.desc(), models.Proxy.id.desc()).limit(RECENT_LIMIT).all()

    return {
        "total_teachers": total_teachers,
        "absent_today": absent_today,
        "proxies_today": proxies_today,
        "proxy_trend": trend,
        "recent_proxies": [
            {
                "id": p.id,
                "date": p.date.isoformat(),
                "period_no": p.period.period_no,
                "class_name": p.school_class.class_name,
                "subject": p.subject.short_code,
                "absent_teacher": p.absent_teacher.name,
                "assigned_teacher": p.assigned_teacher.name,
            }
            for p in recent
        ],
    }
