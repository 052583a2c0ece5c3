import logging
import os
import time

from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import uvicorn

from config import LOG_LEVEL
from database import Base, engine, get_db
from errors import register_error_handlers
from logger import setup_logging
import models  # noqa: F401  registers the tables on Base
from routers import auth, classes, dashboard, periods, proxies, subjects, teacher, timetable

setup_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create all tables in the database (runs on startup)
Base.metadata.create_all(bind=engine)

# Initialize FastAPI app
app = FastAPI(
    title="School Proxy Manager API",
    description="Timetables, absences and substitute (proxy) teacher assignment.",
    version="1.0.0",
)

# --- Add CORS Middleware for Frontend ---
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000

    level = logging.INFO
    if response.status_code >= 500:
        level = logging.ERROR
    elif response.status_code >= 400:
        level = logging.WARNING
    logger.log(level, "%s %s -> %s (%.1fms)", request.method, request.url.path, response.status_code, duration_ms)
    return response


# --- Router Registration ---
for module in (auth, teacher, subjects, classes, periods, timetable, proxies, dashboard):
    app.include_router(module.router)
    logger.debug("Registered router %s", module.__name__)


# --- Root Endpoint (Test & DB Status) ---
@app.get("/")
def read_root(db: Session = Depends(get_db)):
    """Simple check to ensure the service is running and connected to DB."""
    try:
        db.execute(text("SELECT 1"))
        teacher_count = db.query(models.Teacher).count()
        return {
            "message": "School Proxy Manager API is running!",
            "db_status": f"Connected successfully. Teacher count: {teacher_count}"
        }
    except SQLAlchemyError as e:
        logger.error("Database check failed: %s", e)
        return {
            "message": "API is running, but DB connection failed.",
            "error": "Database error (check DB service logs)."
        }

# --- Healthcheck Endpoint ---
@app.get("/health")
def health_check():
    return {"status": "ok"}


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("main:app", host="127.0.0.1", port=port, reload=True)
