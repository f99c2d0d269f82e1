"""Notification configuration and scheduling routes."""
from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from cropcare.api.deps import get_current_user_id
from cropcare.api.schemas.notifications import (
    NotificationScheduleRequest,
    NotificationScheduleResponse,
    NotificationTriggerPayload,
)
from cropcare.core.config import settings
from cropcare.db.deps import get_db
from cropcare.observability.metrics import log_metric
from cropcare.observability.tracing import trace
from cropcare.services.notifications.projection import schedule_plan_notifications


router = APIRouter()


@router.get("/notifications/config", tags=["notifications"])
def get_notifications_config(request: Request) -> dict:
    request_id = getattr(request.state, "request_id", None)
    with trace("notifications.config", metadata={"provider": settings.notifications_provider}):
        log_metric("notifications.config.success", 1, metadata={"provider": settings.notifications_provider})
        return {
            "enabled": settings.notifications_enabled,
            "provider": settings.notifications_provider,
            "window_days": settings.notification_window_days,
            "cap": settings.notification_cap,
            "timezone": settings.notification_timezone,
            "request_id": request_id or "",
        }


@router.post(
    "/plans/{plan_id}/notifications",
    response_model=NotificationScheduleResponse,
    tags=["notifications"],
)
def schedule_notifications_endpoint(
    plan_id: str,
    http_request: Request,
    payload: Optional[NotificationScheduleRequest] = None,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> NotificationScheduleResponse:
    """Replace the plan's device reminders with a fresh projection."""
    request_id = getattr(http_request.state, "request_id", None)
    payload = payload or NotificationScheduleRequest()
    result = schedule_plan_notifications(
        db,
        user_id,
        plan_id,
        window_days=payload.window_days,
        language=payload.language,
    )
    return NotificationScheduleResponse(
        plan_id=result.plan_id,
        status=result.status,
        reason=result.reason,
        scheduled=len(result.scheduled_ids),
        cancelled=result.cancelled,
        failed=result.failed,
        triggers=[
            NotificationTriggerPayload(
                id=trigger.id,
                trigger_at=trigger.trigger_at,
                title=trigger.payload.title,
                body=trigger.payload.body,
                data=trigger.payload.data,
            )
            for trigger in result.triggers
        ],
        request_id=request_id or "",
    )
