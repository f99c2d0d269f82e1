"""Read-side helpers: upcoming tasks across plans, per-range and per-day expansion."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cropcare.core.clock import local_today
from cropcare.core.config import settings
from cropcare.core.errors import AuthError, StorageError, ValidationError
from cropcare.db.models.farming_plan import FarmingPlan
from cropcare.services.plan_generator import get_plan_row, to_plan_document
from cropcare.services.plan_rules import MAX_WINDOW_DAYS, TaskInstance
from cropcare.services.rule_expander import dedupe_instances, expand_plan

logger = logging.getLogger(__name__)

SUMMARY_PREVIEW_DAYS = 7

_NUMBER = r"(\d+(?:\.\d+)?)"
_RANGE = _NUMBER + r"(?:\s*(?:-|–|to)\s*" + _NUMBER + r")?"
_MM_RE = re.compile(_RANGE + r"\s*mm\b", re.IGNORECASE)
_LITRE_RE = re.compile(_RANGE + r"\s*(?:litres|liters|litre|liter|l)\b", re.IGNORECASE)


@dataclass
class RankedPlan:
    plan_id: str
    crop_name: str
    title: str
    status: str
    source: Optional[str]
    planting_date: date
    expected_harvest_date: date
    updated_at: Optional[datetime]
    next_due_date: Optional[date] = None
    next_task_title: Optional[str] = None
    upcoming_count: int = 0


@dataclass
class UpcomingTasks:
    window_start: date
    window_end: date
    plans: List[RankedPlan] = field(default_factory=list)
    tasks: List[TaskInstance] = field(default_factory=list)


def extract_water_amount_hint(notes: Optional[str]) -> Optional[str]:
    """Pull an "n-m mm" or "n-m L" amount out of free text; None when nothing matches."""
    if not notes:
        return None
    for pattern, unit in ((_MM_RE, "mm"), (_LITRE_RE, "L")):
        match = pattern.search(notes)
        if match:
            low, high = match.group(1), match.group(2)
            amount = f"{low}-{high}" if high else low
            return f"{amount} {unit}"
    return None


def _active_plans(db: Session, user_id: Optional[UUID]) -> List[FarmingPlan]:
    if user_id is None:
        raise AuthError("User must be signed in to read farming plans.")
    try:
        return db.query(FarmingPlan).filter(FarmingPlan.user_id == user_id, FarmingPlan.status == "active").all()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError("Could not load farming plans; please retry.") from exc


def _updated_ts(value: Optional[datetime]) -> float:
    if value is None:
        return 0.0
    if value.tzinfo is None:
        # SQLite hands back naive values for timezone-aware columns.
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _rank_key(plan: RankedPlan) -> Tuple:
    return (
        plan.next_due_date is None,
        plan.next_due_date or date.max,
        plan.expected_harvest_date,
        -_updated_ts(plan.updated_at),
        plan.title,
    )


def _ranked_plan(row: FarmingPlan, title: str, instances: List[TaskInstance]) -> RankedPlan:
    first = instances[0] if instances else None
    return RankedPlan(
        plan_id=row.id,
        crop_name=row.crop_name,
        title=title,
        status=row.status,
        source=row.source,
        planting_date=row.planting_date,
        expected_harvest_date=row.expected_harvest_date,
        updated_at=row.updated_at,
        next_due_date=first.due_date if first else None,
        next_task_title=first.title if first else None,
        upcoming_count=len(instances),
    )


def _expand_active_plans(
    db: Session,
    user_id: Optional[UUID],
    start: date,
    end: date,
    language: Optional[str],
) -> List[Tuple[RankedPlan, List[TaskInstance]]]:
    expanded = []
    for row in _active_plans(db, user_id):
        document = to_plan_document(row)
        instances = expand_plan(document, start, end, language)
        expanded.append((_ranked_plan(row, document.plan_title(language), instances), instances))
    expanded.sort(key=lambda item: _rank_key(item[0]))
    return expanded


def get_upcoming_tasks(
    db: Session,
    user_id: Optional[UUID],
    *,
    window_days: int = 7,
    language: Optional[str] = None,
    today: Optional[date] = None,
) -> UpcomingTasks:
    """Expand every active plan over `[today, today + window_days]` and merge the results."""
    if not 0 <= window_days <= MAX_WINDOW_DAYS:
        raise ValidationError(f"window_days must be between 0 and {MAX_WINDOW_DAYS}.")
    start = today or local_today()
    end = start + timedelta(days=window_days)
    language = language or settings.default_language

    expanded = _expand_active_plans(db, user_id, start, end, language)
    merged: List[TaskInstance] = []
    for _, instances in expanded:
        merged.extend(instances)
    merged = dedupe_instances(merged)
    merged.sort(
        key=lambda instance: (
            instance.due_date,
            instance.plan_expected_harvest_date,
            instance.plan_title,
            instance.title,
        )
    )
    logger.debug("Upcoming window %s..%s: %d plans, %d tasks", start, end, len(expanded), len(merged))
    return UpcomingTasks(
        window_start=start,
        window_end=end,
        plans=[plan for plan, _ in expanded],
        tasks=merged,
    )


def list_plan_summaries(
    db: Session,
    user_id: Optional[UUID],
    *,
    language: Optional[str] = None,
    today: Optional[date] = None,
) -> List[RankedPlan]:
    start = today or local_today()
    end = start + timedelta(days=SUMMARY_PREVIEW_DAYS)
    expanded = _expand_active_plans(db, user_id, start, end, language or settings.default_language)
    return [plan for plan, _ in expanded]


def get_tasks_in_range(
    db: Session,
    user_id: Optional[UUID],
    plan_id: str,
    start: date,
    end: date,
    language: Optional[str] = None,
) -> List[TaskInstance]:
    if end < start:
        raise ValidationError("'from' must be on or before 'to'.")
    plan = get_plan_row(db, user_id, plan_id)
    return expand_plan(to_plan_document(plan), start, end, language or settings.default_language)


def get_tasks_on_date(
    db: Session,
    user_id: Optional[UUID],
    plan_id: str,
    on_date: date,
    language: Optional[str] = None,
) -> List[TaskInstance]:
    """Tasks due on one date, with a water-amount hint on watering tasks where the notes carry one."""
    plan = get_plan_row(db, user_id, plan_id)
    instances = expand_plan(to_plan_document(plan), on_date, on_date, language or settings.default_language)
    detailed: List[TaskInstance] = []
    for instance in instances:
        if instance.task_type == "watering":
            hint = extract_water_amount_hint(instance.notes)
            if hint:
                instance = instance.model_copy(update={"water_amount_hint": hint})
        detailed.append(instance)
    return detailed


def get_plan(db: Session, user_id: Optional[UUID], plan_id: str) -> FarmingPlan:
    return get_plan_row(db, user_id, plan_id)
