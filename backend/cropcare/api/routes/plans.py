"""Farming plan API routes."""
from __future__ import annotations

from time import perf_counter
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from cropcare.api.deps import get_current_user_id, get_oracle
from cropcare.api.schemas.plans import (
    PlanCleanupResponse,
    PlanCreateRequest,
    PlanCreateResponse,
    PlanDetailResponse,
    PlanListResponse,
    PlanStatusResponse,
    PlanStatusUpdateRequest,
    PlanSummary,
)
from cropcare.db.deps import get_db
from cropcare.db.models.farming_plan import FarmingPlan
from cropcare.observability.metrics import log_metric
from cropcare.observability.tracing import trace
from cropcare.services.plan_cleanup import sweep_expired_plans
from cropcare.services.plan_generator import set_plan_status, to_plan_document, upsert_plan
from cropcare.services.plan_oracle import PlanOracle
from cropcare.services.plan_rules import LocalizedText
from cropcare.services.task_queries import RankedPlan, get_plan, list_plan_summaries

router = APIRouter()


@router.post("/plans", response_model=PlanCreateResponse, status_code=status.HTTP_201_CREATED, tags=["plans"])
def create_plan_endpoint(
    payload: PlanCreateRequest,
    http_request: Request,
    user_id: UUID = Depends(get_current_user_id),
    oracle: Optional[PlanOracle] = Depends(get_oracle),
    db: Session = Depends(get_db),
) -> PlanCreateResponse:
    """Create (or reuse) the plan for a crop, planting date and area."""
    request_id = getattr(http_request.state, "request_id", None)
    start = perf_counter()
    result = upsert_plan(
        db,
        user_id,
        crop_type=payload.crop_type,
        crop_name=payload.crop_name,
        area_acres=payload.area_acres,
        planting_date=payload.planting_date,
        expected_harvest_date=payload.expected_harvest_date,
        oracle=oracle,
    )
    latency_ms = (perf_counter() - start) * 1000
    log_metric("plan.create.success", 1, metadata={"source": result.source, "created": result.created})
    log_metric("plan.create.latency_ms", latency_ms, metadata={"source": result.source})
    return PlanCreateResponse(
        plan_id=result.plan_id,
        source=result.source,
        created=result.created,
        request_id=request_id or "",
    )


@router.get("/plans", response_model=PlanListResponse, tags=["plans"])
def list_plans_endpoint(
    http_request: Request,
    language: Optional[str] = Query(default=None, max_length=8),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> PlanListResponse:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("plan.list", metadata={"route": "/plans", "language": language}):
        plans = list_plan_summaries(db, user_id, language=language)
    log_metric("plan.list.count", len(plans))
    return PlanListResponse(plans=[serialize_summary(plan) for plan in plans], request_id=request_id or "")


@router.post("/plans/cleanup", response_model=PlanCleanupResponse, tags=["plans"])
def cleanup_plans_endpoint(
    http_request: Request,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> PlanCleanupResponse:
    """Delete the caller's plans whose cleanup date has passed."""
    request_id = getattr(http_request.state, "request_id", None)
    deleted = sweep_expired_plans(db, user_id=user_id)
    return PlanCleanupResponse(deleted=deleted, request_id=request_id or "")


@router.get("/plans/{plan_id}", response_model=PlanDetailResponse, tags=["plans"])
def get_plan_endpoint(
    plan_id: str,
    http_request: Request,
    language: Optional[str] = Query(default=None, max_length=8),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> PlanDetailResponse:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("plan.detail", metadata={"route": "/plans/{plan_id}"}, plan_id=plan_id):
        plan = get_plan(db, user_id, plan_id)
        detail = _serialize_plan(plan, language)
    return PlanDetailResponse(**detail, request_id=request_id or "")


@router.patch("/plans/{plan_id}/status", response_model=PlanStatusResponse, tags=["plans"])
def update_plan_status_endpoint(
    plan_id: str,
    payload: PlanStatusUpdateRequest,
    http_request: Request,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> PlanStatusResponse:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("plan.status", metadata={"status": payload.status}, plan_id=plan_id):
        plan = set_plan_status(db, user_id, plan_id, payload.status)
    log_metric("plan.status.updated", 1, metadata={"status": plan.status})
    return PlanStatusResponse(plan_id=plan.id, status=plan.status, request_id=request_id or "")


def serialize_summary(plan: RankedPlan) -> PlanSummary:
    return PlanSummary(
        plan_id=plan.plan_id,
        crop_name=plan.crop_name,
        title=plan.title,
        status=plan.status,
        source=plan.source,
        planting_date=plan.planting_date,
        expected_harvest_date=plan.expected_harvest_date,
        next_due_date=plan.next_due_date,
        next_task_title=plan.next_task_title,
        upcoming_count=plan.upcoming_count,
    )


def _serialize_plan(plan: FarmingPlan, language: Optional[str]) -> Dict[str, Any]:
    overview = None
    if plan.overview_i18n:
        overview = LocalizedText.model_validate(plan.overview_i18n).resolve(language)
    return {
        "id": plan.id,
        "crop_type": plan.crop_type,
        "crop_name": plan.crop_name,
        "crop_family": plan.crop_family,
        "area_acres": plan.area_acres,
        "planting_date": plan.planting_date,
        "expected_harvest_date": plan.expected_harvest_date,
        "cleanup_after_date": plan.cleanup_after_date,
        "status": plan.status,
        "source": plan.source,
        "title": to_plan_document(plan).plan_title(language),
        "overview": overview,
        "oracle_error": plan.oracle_error,
        "watering_rules": list(plan.watering_rules or []),
        "recurring_tasks": list(plan.recurring_tasks or []),
        "one_off_tasks": list(plan.one_off_tasks or []),
        "created_at": plan.created_at,
        "updated_at": plan.updated_at,
    }
