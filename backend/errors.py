import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError

logger = logging.getLogger(__name__)


async def database_unavailable_handler(request: Request, exc: OperationalError):
    logger.error("Database connection error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Service temporarily unavailable. Please try again later."},
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Unexpected database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Failed to process request: {request.url.path}"},
    )


def register_error_handlers(app: FastAPI) -> None:
    # OperationalError is matched before its SQLAlchemyError base
    app.add_exception_handler(OperationalError, database_unavailable_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
