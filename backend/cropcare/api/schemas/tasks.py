"""Schemas for expanded task listings."""
from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel

from cropcare.api.schemas.plans import PlanSummary


class TaskInstancePayload(BaseModel):
    plan_id: str
    crop_name: str
    plan_title: str
    task_type: str
    title: str
    due_date: date
    time_of_day: str
    time_hhmm: str
    notes: Optional[str] = None
    water_amount_hint: Optional[str] = None


class PlanTasksResponse(BaseModel):
    plan_id: str
    from_date: date
    to_date: date
    tasks: List[TaskInstancePayload]
    request_id: str


class UpcomingTasksResponse(BaseModel):
    window_start: date
    window_end: date
    plans: List[PlanSummary]
    tasks: List[TaskInstancePayload]
    request_id: str
