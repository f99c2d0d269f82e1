"""Schemas for plan creation and plan reads."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class PlanCreateRequest(BaseModel):
    crop_type: Optional[str] = Field(default=None, max_length=120)
    crop_name: Optional[str] = Field(default=None, max_length=120)
    area_acres: float
    # Dates stay strings here; the service accepts ISO and DD/MM/YYYY forms.
    planting_date: str
    expected_harvest_date: Optional[str] = None


class PlanCreateResponse(BaseModel):
    plan_id: str
    source: str
    created: bool
    request_id: str


class PlanSummary(BaseModel):
    plan_id: str
    crop_name: str
    title: str
    status: str
    source: Optional[str]
    planting_date: date
    expected_harvest_date: date
    next_due_date: Optional[date] = None
    next_task_title: Optional[str] = None
    upcoming_count: int = 0


class PlanListResponse(BaseModel):
    plans: List[PlanSummary]
    request_id: str


class PlanDetailResponse(BaseModel):
    id: str
    crop_type: str
    crop_name: str
    crop_family: str
    area_acres: float
    planting_date: date
    expected_harvest_date: date
    cleanup_after_date: date
    status: str
    source: Optional[str]
    title: str
    overview: Optional[str] = None
    oracle_error: Optional[str] = None
    watering_rules: List[Dict[str, Any]]
    recurring_tasks: List[Dict[str, Any]]
    one_off_tasks: List[Dict[str, Any]]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    request_id: str


class PlanStatusUpdateRequest(BaseModel):
    status: Literal["active", "completed"]


class PlanStatusResponse(BaseModel):
    plan_id: str
    status: str
    request_id: str


class PlanCleanupResponse(BaseModel):
    deleted: int
    request_id: str
