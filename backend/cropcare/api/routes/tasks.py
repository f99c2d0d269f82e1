"""Expanded task API routes."""
from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from cropcare.api.deps import get_current_user_id
from cropcare.api.routes.plans import serialize_summary
from cropcare.api.schemas.tasks import PlanTasksResponse, TaskInstancePayload, UpcomingTasksResponse
from cropcare.core.clock import local_today
from cropcare.db.deps import get_db
from cropcare.observability.metrics import log_metric
from cropcare.observability.tracing import trace
from cropcare.services.plan_rules import MAX_WINDOW_DAYS, TaskInstance
from cropcare.services.task_queries import get_tasks_in_range, get_tasks_on_date, get_upcoming_tasks

router = APIRouter()

DEFAULT_RANGE_DAYS = 7


@router.get("/plans/{plan_id}/tasks", response_model=PlanTasksResponse, tags=["tasks"])
def list_plan_tasks(
    plan_id: str,
    http_request: Request,
    from_: Optional[date] = Query(default=None, alias="from"),
    to: Optional[date] = Query(default=None),
    language: Optional[str] = Query(default=None, max_length=8),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> PlanTasksResponse:
    """Tasks of one plan due in `[from, to]`; defaults to the coming week."""
    request_id = getattr(http_request.state, "request_id", None)
    start = from_ or local_today()
    end = to
    if end is None:
        latest_start = date.max - timedelta(days=DEFAULT_RANGE_DAYS)
        end = start + timedelta(days=DEFAULT_RANGE_DAYS) if start <= latest_start else date.max

    metadata: Dict[str, Any] = {
        "route": "/plans/{plan_id}/tasks",
        "from": start.isoformat(),
        "to": end.isoformat(),
        "language": language,
    }
    with trace("task.range", metadata=metadata, plan_id=plan_id):
        tasks = get_tasks_in_range(db, user_id, plan_id, start, end, language)

    log_metric("task.range.count", len(tasks), metadata={"plan_id": plan_id})
    return PlanTasksResponse(
        plan_id=plan_id,
        from_date=start,
        to_date=end,
        tasks=_serialize_tasks(tasks),
        request_id=request_id or "",
    )


@router.get("/plans/{plan_id}/tasks/{on_date}", response_model=PlanTasksResponse, tags=["tasks"])
def list_plan_tasks_on_date(
    plan_id: str,
    on_date: date,
    http_request: Request,
    language: Optional[str] = Query(default=None, max_length=8),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> PlanTasksResponse:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("task.on_date", metadata={"date": on_date.isoformat(), "language": language}, plan_id=plan_id):
        tasks = get_tasks_on_date(db, user_id, plan_id, on_date, language)
    return PlanTasksResponse(
        plan_id=plan_id,
        from_date=on_date,
        to_date=on_date,
        tasks=_serialize_tasks(tasks),
        request_id=request_id or "",
    )


@router.get("/tasks/upcoming", response_model=UpcomingTasksResponse, tags=["tasks"])
def list_upcoming_tasks(
    http_request: Request,
    window_days: int = Query(default=7, ge=0, le=MAX_WINDOW_DAYS),
    language: Optional[str] = Query(default=None, max_length=8),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> UpcomingTasksResponse:
    """Upcoming tasks across every active plan of the caller."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace("task.upcoming", metadata={"window_days": window_days, "language": language}):
        upcoming = get_upcoming_tasks(db, user_id, window_days=window_days, language=language)

    log_metric("task.upcoming.count", len(upcoming.tasks), metadata={"plans": len(upcoming.plans)})
    return UpcomingTasksResponse(
        window_start=upcoming.window_start,
        window_end=upcoming.window_end,
        plans=[serialize_summary(plan) for plan in upcoming.plans],
        tasks=_serialize_tasks(upcoming.tasks),
        request_id=request_id or "",
    )


def _serialize_tasks(tasks: List[TaskInstance]) -> List[TaskInstancePayload]:
    return [
        TaskInstancePayload(
            plan_id=task.plan_id,
            crop_name=task.crop_name,
            plan_title=task.plan_title,
            task_type=task.task_type,
            title=task.title,
            due_date=task.due_date,
            time_of_day=task.time_of_day,
            time_hhmm=task.time_hhmm,
            notes=task.notes,
            water_amount_hint=task.water_amount_hint,
        )
        for task in tasks
    ]
