"""Notification service interface."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict


@dataclass(frozen=True)
class NotificationResult:
    status: str
    reason: str


@dataclass
class NotificationPayload:
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class NotificationTrigger:
    """A device reminder for one task instance at a concrete local time."""

    id: str
    trigger_at: datetime
    payload: NotificationPayload


class NotificationService:
    """Base interface for notification providers."""

    def schedule(self, trigger: NotificationTrigger) -> NotificationResult:
        raise NotImplementedError

    def cancel_by_id(self, notification_id: str) -> NotificationResult:
        raise NotImplementedError
