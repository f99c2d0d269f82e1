"""Retention sweep for plans past their cleanup date."""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cropcare.core.clock import local_today
from cropcare.core.errors import StorageError
from cropcare.db.models.farming_plan import FarmingPlan
from cropcare.observability.metrics import log_metric
from cropcare.observability.tracing import trace

logger = logging.getLogger(__name__)


def sweep_expired_plans(db: Session, user_id: Optional[UUID] = None, today: Optional[date] = None) -> int:
    """
    Delete plans whose cleanup date is strictly before `today`.

    Scoped to one user when `user_id` is given, otherwise all users. A single
    conditional DELETE, so repeated or overlapping runs just delete nothing.
    """
    cutoff = today or local_today()
    metadata = {"cutoff": cutoff.isoformat(), "scope": "user" if user_id else "all"}
    with trace("plan.cleanup", metadata=metadata):
        stmt = delete(FarmingPlan).where(FarmingPlan.cleanup_after_date < cutoff)
        if user_id is not None:
            stmt = stmt.where(FarmingPlan.user_id == user_id)
        try:
            result = db.execute(stmt.execution_options(synchronize_session=False))
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Cleanup sweep failed (cutoff=%s)", cutoff)
            raise StorageError("Could not delete expired plans; please retry.") from exc

    deleted = result.rowcount or 0
    if deleted:
        logger.info("Cleanup sweep removed %d plan(s) with cleanup date before %s", deleted, cutoff)
    log_metric("cleanup.deleted", deleted, metadata=metadata)
    return deleted
