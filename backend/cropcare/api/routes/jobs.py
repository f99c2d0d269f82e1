"""Operational endpoints for the plan maintenance jobs."""
from __future__ import annotations

from typing import Callable, Dict, Tuple

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from cropcare.api.schemas.jobs import JobRunRequest, JobRunResponse
from cropcare.core.config import settings
from cropcare.db.deps import get_db
from cropcare.observability.metrics import log_metric, timed
from cropcare.observability.tracing import trace
from cropcare.services.job_runner import refresh_notifications_for_all_plans, run_cleanup_job

router = APIRouter()


def _cleanup_counts(db: Session) -> Tuple[int, int]:
    result = run_cleanup_job(db)
    return result.plans_deleted, result.plans_deleted


def _notification_counts(db: Session) -> Tuple[int, int]:
    result = refresh_notifications_for_all_plans(db)
    return result.plans_processed, result.notifications_scheduled


# job name -> (plans processed, items written)
JOB_RUNNERS: Dict[str, Callable[[Session], Tuple[int, int]]] = {
    "cleanup": _cleanup_counts,
    "notifications": _notification_counts,
}


def _clock(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


@router.get("/jobs", tags=["jobs"])
def get_jobs_config(request: Request) -> dict:
    return {
        "scheduler_enabled": settings.scheduler_enabled,
        "schedule": {
            "timezone": settings.scheduler_timezone,
            "cleanup_time": _clock(settings.cleanup_job_hour, settings.cleanup_job_minute),
            "notifications_time": _clock(settings.notification_job_hour, settings.notification_job_minute),
        },
        "request_id": getattr(request.state, "request_id", None) or "",
    }


@router.post("/jobs/run-now", response_model=JobRunResponse, tags=["jobs"])
def run_job_now(
    request: Request,
    payload: JobRunRequest,
    db: Session = Depends(get_db),
) -> JobRunResponse:
    """Run one maintenance job inline. Only available when DEBUG is on."""
    if not settings.debug:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Run-now only allowed in debug mode")

    job_metadata = {"job": payload.job}
    with trace("jobs.run_now", metadata=job_metadata), timed("jobs.run_now", metadata=job_metadata):
        processed, written = JOB_RUNNERS[payload.job](db)
    log_metric("jobs.run_now.success", 1, metadata=job_metadata)

    return JobRunResponse(
        job=payload.job,
        plans_processed=processed,
        items_written=written,
        request_id=getattr(request.state, "request_id", None) or "",
    )
