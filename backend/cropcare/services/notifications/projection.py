"""Projection of plan tasks onto device reminders, and full-replace scheduling."""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import List, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cropcare.core.clock import farm_timezone
from cropcare.core.config import settings
from cropcare.core.errors import StorageError
from cropcare.observability.metrics import log_metric
from cropcare.observability.tracing import trace
from cropcare.services.notifications.base import (
    NotificationPayload,
    NotificationService,
    NotificationTrigger,
)
from cropcare.services.notifications.factory import get_notification_service
from cropcare.services.plan_generator import get_plan_row, to_plan_document
from cropcare.services.plan_rules import (
    MAX_WINDOW_DAYS,
    PlanDocument,
    TaskInstance,
    default_hhmm,
    is_valid_hhmm,
)
from cropcare.services.rule_expander import expand_plan

logger = logging.getLogger(__name__)


@dataclass
class ScheduleResult:
    plan_id: str
    status: str
    reason: str
    triggers: List[NotificationTrigger] = field(default_factory=list)
    scheduled_ids: List[str] = field(default_factory=list)
    cancelled: int = 0
    failed: int = 0


def clamp_window_days(window_days: Optional[int]) -> int:
    if window_days is None:
        window_days = settings.notification_window_days
    return min(MAX_WINDOW_DAYS, max(1, int(window_days)))


def trigger_id(plan_id: str, due_date: date, hhmm: str, title: str) -> str:
    title_hash = hashlib.sha1(title.encode("utf-8")).hexdigest()[:8]
    return f"{plan_id}:{due_date.isoformat()}:{hhmm.replace(':', '')}:{title_hash}"


def _trigger_time(instance: TaskInstance, tz: ZoneInfo) -> datetime:
    hhmm = instance.time_hhmm if is_valid_hhmm(instance.time_hhmm) else default_hhmm(instance.time_of_day)
    hour, minute = (int(part) for part in hhmm.split(":"))
    return datetime.combine(instance.due_date, time(hour, minute), tzinfo=tz)


def project_notifications(
    plan: PlanDocument,
    *,
    window_days: Optional[int] = None,
    language: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[NotificationTrigger]:
    """
    Expand the plan from today over the window and turn each instance into a trigger.

    Triggers at or before `now` are dropped. The result is ordered by trigger
    time then title and capped at `settings.notification_cap`, keeping the
    earliest ones.
    """
    tz = farm_timezone()
    current = now or datetime.now(tz)
    if current.tzinfo is None:
        current = current.replace(tzinfo=tz)
    today = current.astimezone(tz).date()
    days = clamp_window_days(window_days)

    instances = expand_plan(plan, today, today + timedelta(days=days), language or settings.default_language)
    triggers: List[NotificationTrigger] = []
    for instance in instances:
        trigger_at = _trigger_time(instance, tz)
        if trigger_at <= current:
            continue
        hhmm = trigger_at.strftime("%H:%M")
        triggers.append(
            NotificationTrigger(
                id=trigger_id(plan.id, instance.due_date, hhmm, instance.title),
                trigger_at=trigger_at,
                payload=NotificationPayload(
                    title=f"Time to {instance.title}",
                    body=instance.plan_title or instance.crop_name,
                    data={
                        "plan_id": plan.id,
                        "due_date": instance.due_date.isoformat(),
                        "task_title": instance.title,
                        "task_type": instance.task_type,
                    },
                ),
            )
        )

    triggers.sort(key=lambda trigger: (trigger.trigger_at, trigger.payload.data["task_title"]))
    return triggers[: max(0, settings.notification_cap)]


def schedule_plan_notifications(
    db: Session,
    user_id: Optional[UUID],
    plan_id: str,
    *,
    window_days: Optional[int] = None,
    language: Optional[str] = None,
    now: Optional[datetime] = None,
    service: Optional[NotificationService] = None,
) -> ScheduleResult:
    """Cancel every reminder registered for the plan, then register the fresh projection."""
    plan = get_plan_row(db, user_id, plan_id)
    triggers = project_notifications(to_plan_document(plan), window_days=window_days, language=language, now=now)

    if not settings.notifications_enabled:
        log_metric("notifications.skipped", 1, metadata={"plan_id": plan_id})
        return ScheduleResult(
            plan_id=plan_id,
            status="skipped",
            reason="notifications disabled",
            triggers=triggers,
        )

    provider = service or get_notification_service()
    metadata = {"provider": settings.notifications_provider, "triggers": len(triggers)}
    cancelled = 0
    failed = 0
    scheduled_ids: List[str] = []
    with trace("notifications.schedule", metadata=metadata, plan_id=plan_id):
        for notification_id in list(plan.notification_ids or []):
            try:
                provider.cancel_by_id(notification_id)
                cancelled += 1
            except Exception:
                logger.exception("Failed to cancel notification %s for plan %s", notification_id, plan_id)

        for trigger in triggers:
            try:
                result = provider.schedule(trigger)
            except Exception:
                failed += 1
                logger.exception("Failed to schedule notification %s", trigger.id)
                continue
            if result.status == "failed":
                failed += 1
                logger.warning("Provider rejected notification %s: %s", trigger.id, result.reason)
                continue
            scheduled_ids.append(trigger.id)

        try:
            plan.notification_ids = scheduled_ids
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageError("Could not record scheduled notifications; please retry.") from exc

    log_metric("notifications.scheduled", len(scheduled_ids), metadata={"plan_id": plan_id})
    if failed:
        log_metric("notifications.failed", failed, metadata={"plan_id": plan_id})
    return ScheduleResult(
        plan_id=plan_id,
        status="scheduled",
        reason=f"{len(scheduled_ids)} scheduled, {cancelled} cancelled",
        triggers=triggers,
        scheduled_ids=scheduled_ids,
        cancelled=cancelled,
        failed=failed,
    )
