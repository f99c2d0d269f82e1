"""Batch job runners for the retention sweep and notification refresh."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from cropcare.db.models.farming_plan import FarmingPlan
from cropcare.services.notifications.projection import schedule_plan_notifications
from cropcare.services.plan_cleanup import sweep_expired_plans


logger = logging.getLogger(__name__)


@dataclass
class CleanupJobResult:
    plans_deleted: int


@dataclass
class NotificationJobResult:
    plans_processed: int
    notifications_scheduled: int
    failures: int = 0


def run_cleanup_job(db: Session, *, today: Optional[date] = None) -> CleanupJobResult:
    return CleanupJobResult(plans_deleted=sweep_expired_plans(db, today=today))


def refresh_notifications_for_all_plans(db: Session, *, now: Optional[datetime] = None) -> NotificationJobResult:
    plan_keys = (
        db.query(FarmingPlan.user_id, FarmingPlan.id)
        .filter(FarmingPlan.status == "active")
        .order_by(FarmingPlan.user_id, FarmingPlan.id)
        .all()
    )
    processed = 0
    scheduled = 0
    failures = 0
    for user_id, plan_id in plan_keys:
        try:
            result = schedule_plan_notifications(db, user_id, plan_id, now=now)
        except Exception:  # pragma: no cover - defensive guard
            failures += 1
            logger.exception("Notification refresh failed for plan %s", plan_id)
            continue
        processed += 1
        scheduled += len(result.scheduled_ids)
    return NotificationJobResult(
        plans_processed=processed,
        notifications_scheduled=scheduled,
        failures=failures,
    )
