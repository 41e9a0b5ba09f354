from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pathlib import Path
import os
import logging
from dotenv import load_dotenv

load_dotenv(dotenv_path=Path(__file__).parent / ".env")

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

from weekgrid.routers.timesheets import router as timesheets_router
from weekgrid.services.errors import (
    NoOpenWeekError,
    PersistenceFailure,
    StateGuardFailure,
    TimesheetError,
    TimesheetNotFound,
    ValidationError,
)

app = FastAPI(title="Weekgrid API")

app.include_router(timesheets_router)

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in CORS_ORIGINS],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _status_for(exc: TimesheetError) -> int:
    if isinstance(exc, ValidationError):
        return 422
    if isinstance(exc, StateGuardFailure):
        return 403 if exc.reason == StateGuardFailure.FORBIDDEN else 409
    if isinstance(exc, (TimesheetNotFound, NoOpenWeekError)):
        return 404
    if isinstance(exc, PersistenceFailure):
        return 503
    return 400


@app.exception_handler(TimesheetError)
def timesheet_error_handler(request: Request, exc: TimesheetError):
    status = _status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.code)
    else:
        logger.info("%s %s -> %d %s", request.method, request.url.path, status, exc.code)
    return JSONResponse(status_code=status, content={"detail": exc.message, "code": exc.code})


@app.get("/health")
def health():
    return {"ok": True}
