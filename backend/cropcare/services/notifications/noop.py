"""Provider used when no push backend is configured; it only logs."""
from __future__ import annotations

import logging

from cropcare.services.notifications.base import NotificationResult, NotificationService, NotificationTrigger

logger = logging.getLogger(__name__)

_NOOP = NotificationResult(status="noop", reason="notification provider is noop")


class NoopNotificationService(NotificationService):
    def schedule(self, trigger: NotificationTrigger) -> NotificationResult:
        logger.info(
            "Would remind at %s: %s (id=%s)",
            trigger.trigger_at.isoformat(),
            trigger.payload.title,
            trigger.id,
        )
        return _NOOP

    def cancel_by_id(self, notification_id: str) -> NotificationResult:
        logger.debug("Would cancel reminder id=%s", notification_id)
        return _NOOP
