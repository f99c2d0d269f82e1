"""Schemas for plan notification scheduling."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from cropcare.services.plan_rules import MAX_WINDOW_DAYS


class NotificationScheduleRequest(BaseModel):
    window_days: Optional[int] = Field(default=None, ge=1, le=MAX_WINDOW_DAYS)
    language: Optional[str] = None


class NotificationTriggerPayload(BaseModel):
    id: str
    trigger_at: datetime
    title: str
    body: str
    data: Dict[str, Any]


class NotificationScheduleResponse(BaseModel):
    plan_id: str
    status: str
    reason: str
    scheduled: int
    cancelled: int
    failed: int
    triggers: List[NotificationTriggerPayload]
    request_id: str
