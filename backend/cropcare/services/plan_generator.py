"""Plan creation: input validation, deterministic ids and the oracle/heuristic policy.

A plan is generated at most once per id. The oracle, when configured, gets a
single attempt per plan id; the attempt is claimed with a conditional write
so concurrent first-time upserts do not both call it. Oracle failures are
recorded on the plan and the heuristic builder fills in the content.
"""
from __future__ import annotations

import hashlib
import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cropcare.core.config import settings
from cropcare.core.errors import AuthError, NotFoundError, OracleError, StorageError, ValidationError
from cropcare.db.models.farming_plan import FarmingPlan
from cropcare.observability.metrics import log_metric, timed
from cropcare.observability.tracing import trace
from cropcare.services.crop_catalog import normalize_crop_name
from cropcare.services.heuristic_plan import build_heuristic_plan
from cropcare.services.plan_oracle import OracleRequest, PlanOracle, plan_content_from_oracle
from cropcare.services.plan_rules import (
    LATEST_PLANTING_DATE,
    MAX_AREA_ACRES,
    MAX_PLAN_HORIZON_DAYS,
    PlanContent,
    PlanDocument,
    slugify,
)
from cropcare.services.user_service import get_or_create_user

logger = logging.getLogger(__name__)

PLAN_STATUSES = ("active", "completed")

_DAY_FIRST_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class PlanInputs:
    crop_type: str
    crop_name: str
    area_acres: float
    planting_date: date
    expected_harvest_date: Optional[date]


@dataclass
class UpsertResult:
    plan_id: str
    source: str
    created: bool


def parse_plan_date(value: Any, field: str = "date") -> date:
    """Accept date objects, ISO dates and day-first DD/MM/YYYY forms."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value or "").strip()
    if not raw:
        raise ValidationError(f"{field} is required.")
    if _ISO_RE.match(raw):
        try:
            return date.fromisoformat(raw)
        except ValueError:
            raise ValidationError(f"{field} {raw!r} is not a real calendar date.")
    normalized = re.sub(r"\s+", "", raw).replace(".", "/").replace("\\", "/").replace("-", "/")
    match = _DAY_FIRST_RE.match(normalized)
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            raise ValidationError(f"{field} {raw!r} is not a real calendar date.")
    raise ValidationError(f"{field} {raw!r} is not a recognised date (use YYYY-MM-DD).")


def validate_plan_inputs(
    *,
    crop_type: Optional[str],
    crop_name: Optional[str],
    area_acres: Any,
    planting_date: Any,
    expected_harvest_date: Any = None,
) -> PlanInputs:
    name = (crop_name or crop_type or "").strip()
    kind = (crop_type or crop_name or "").strip()
    if not name:
        raise ValidationError("crop_name or crop_type is required.")

    try:
        area = float(area_acres)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("area_acres must be a number.")
    if not math.isfinite(area) or area <= 0:
        raise ValidationError("area_acres must be greater than zero.")
    if area > MAX_AREA_ACRES:
        raise ValidationError(f"area_acres must be at most {MAX_AREA_ACRES:,.0f}.")

    planting = parse_plan_date(planting_date, "planting_date")
    if planting > LATEST_PLANTING_DATE:
        raise ValidationError(f"planting_date must be on or before {LATEST_PLANTING_DATE.isoformat()}.")
    harvest = None
    if expected_harvest_date not in (None, ""):
        harvest = parse_plan_date(expected_harvest_date, "expected_harvest_date")
        if (harvest - planting).days > MAX_PLAN_HORIZON_DAYS:
            raise ValidationError(
                f"expected_harvest_date must be within {MAX_PLAN_HORIZON_DAYS} days of planting_date."
            )

    return PlanInputs(
        crop_type=kind,
        crop_name=name,
        area_acres=area,
        planting_date=planting,
        expected_harvest_date=harvest,
    )


def area_key(area_acres: float) -> Decimal:
    return Decimal(str(area_acres)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def derive_plan_id(crop_name: str, planting_date: date, area_acres: float) -> str:
    """Same crop, planting date and (rounded) area always map to the same id."""
    fingerprint = f"{normalize_crop_name(crop_name)}|{planting_date.isoformat()}|{area_key(area_acres)}"
    digest = hashlib.sha256(fingerprint.encode("utf-8")).hexdigest()[:16]
    return f"{slugify(crop_name, 40) or 'crop'}-{digest}"


def upsert_plan(
    db: Session,
    user_id: Optional[UUID],
    *,
    crop_type: Optional[str],
    crop_name: Optional[str],
    area_acres: Any,
    planting_date: Any,
    expected_harvest_date: Any = None,
    oracle: Optional[PlanOracle] = None,
    now: Optional[datetime] = None,
) -> UpsertResult:
    """Create the plan for these inputs if needed and return its id."""
    if user_id is None:
        raise AuthError("User must be signed in to save a farming plan.")
    inputs = validate_plan_inputs(
        crop_type=crop_type,
        crop_name=crop_name,
        area_acres=area_acres,
        planting_date=planting_date,
        expected_harvest_date=expected_harvest_date,
    )
    plan_id = derive_plan_id(inputs.crop_name, inputs.planting_date, inputs.area_acres)
    moment = now or datetime.now(timezone.utc)

    metadata = {"crop": inputs.crop_name, "oracle_configured": oracle is not None}
    with trace("plan.upsert", metadata=metadata, plan_id=plan_id), timed("plan.upsert"):
        try:
            return _upsert(db, user_id, plan_id, inputs, oracle, moment)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Storage failure while upserting plan %s", plan_id)
            raise StorageError("Could not save the farming plan; please retry.") from exc


def _upsert(
    db: Session,
    user_id: UUID,
    plan_id: str,
    inputs: PlanInputs,
    oracle: Optional[PlanOracle],
    now: datetime,
) -> UpsertResult:
    get_or_create_user(db, user_id)
    db.commit()

    existing = db.get(FarmingPlan, (user_id, plan_id))
    if existing is not None and existing.has_rule_content:
        logger.info("Plan %s already generated (source=%s); reusing it", plan_id, existing.source)
        return UpsertResult(plan_id=plan_id, source=existing.source, created=False)

    created = existing is None
    heuristic = build_heuristic_plan(
        crop_name=inputs.crop_name,
        crop_type=inputs.crop_type,
        planting_date=inputs.planting_date,
        expected_harvest_date=inputs.expected_harvest_date,
    )

    if oracle is None or (existing is not None and existing.oracle_attempted_at is not None):
        row = existing or _new_plan_row(user_id, plan_id, inputs, heuristic, now)
        _apply_content(row, heuristic, now)
        db.add(row)
        db.commit()
        log_metric("plan.heuristic.used", 1, metadata={"reason": "no_oracle" if oracle is None else "already_attempted"})
        return UpsertResult(plan_id=plan_id, source=heuristic.source, created=created)

    if not _claim_oracle_attempt(db, user_id, plan_id, inputs, heuristic, now):
        logger.info("Oracle attempt for plan %s already claimed; storing heuristic content", plan_id)
        _store_if_empty(db, user_id, plan_id, heuristic, now)
        return UpsertResult(plan_id=plan_id, source=heuristic.source, created=False)

    content = heuristic
    error: Optional[str] = None
    try:
        generated = oracle.generate(_oracle_request(inputs))
        content = plan_content_from_oracle(
            generated,
            crop_family=heuristic.crop_family,
            planting_date=inputs.planting_date,
            expected_harvest_date=inputs.expected_harvest_date,
        )
    except OracleError as exc:
        error = exc.message or "Plan generation failed"
        logger.warning("Oracle failed for plan %s, falling back to heuristic: %s", plan_id, error)
        log_metric("plan.oracle.fallback", 1, metadata={"plan_id": plan_id})

    row = db.get(FarmingPlan, (user_id, plan_id))
    if row is None:
        raise StorageError(f"Plan {plan_id} vanished while it was being generated.")
    _apply_content(row, content, now)
    row.oracle_error = error
    if content.source == "oracle":
        row.generated_at = now
    db.commit()
    return UpsertResult(plan_id=plan_id, source=content.source, created=created)


def _oracle_request(inputs: PlanInputs) -> OracleRequest:
    return OracleRequest(
        cropType=inputs.crop_type,
        cropName=inputs.crop_name,
        areaAcres=inputs.area_acres,
        plantingDateISO=inputs.planting_date.isoformat(),
        expectedHarvestDateISO=inputs.expected_harvest_date.isoformat() if inputs.expected_harvest_date else None,
        country=settings.oracle_country,
    )


def _new_plan_row(
    user_id: UUID, plan_id: str, inputs: PlanInputs, content: PlanContent, now: datetime
) -> FarmingPlan:
    return FarmingPlan(
        user_id=user_id,
        id=plan_id,
        crop_type=inputs.crop_type,
        crop_name=inputs.crop_name,
        crop_family=content.crop_family,
        area_acres=inputs.area_acres,
        planting_date=content.planting_date,
        expected_harvest_date=content.expected_harvest_date,
        cleanup_after_date=content.cleanup_after_date,
        status="active",
        watering_rules=[],
        recurring_tasks=[],
        one_off_tasks=[],
        notification_ids=[],
        created_at=now,
        updated_at=now,
    )


def _content_values(content: PlanContent, now: datetime) -> Dict[str, Any]:
    return {
        "source": content.source,
        "crop_family": content.crop_family,
        "planting_date": content.planting_date,
        "expected_harvest_date": content.expected_harvest_date,
        "cleanup_after_date": content.cleanup_after_date,
        "title_i18n": content.title_i18n.model_dump(mode="json") if content.title_i18n else None,
        "overview_i18n": content.overview_i18n.model_dump(mode="json") if content.overview_i18n else None,
        "watering_rules": [rule.model_dump(mode="json", exclude_none=True) for rule in content.watering_rules],
        "recurring_tasks": [rule.model_dump(mode="json", exclude_none=True) for rule in content.recurring_tasks],
        "one_off_tasks": [task.model_dump(mode="json", exclude_none=True) for task in content.one_off_tasks],
        "status": "active",
        "updated_at": now,
    }


def _apply_content(row: FarmingPlan, content: PlanContent, now: datetime) -> None:
    for key, value in _content_values(content, now).items():
        setattr(row, key, value)


def _claim_oracle_attempt(
    db: Session,
    user_id: UUID,
    plan_id: str,
    inputs: PlanInputs,
    heuristic: PlanContent,
    now: datetime,
) -> bool:
    """Mark the oracle attempt for this plan; True only for the caller that set the mark."""
    existing = db.get(FarmingPlan, (user_id, plan_id))
    if existing is None:
        placeholder = _new_plan_row(user_id, plan_id, inputs, heuristic, now)
        placeholder.oracle_attempted_at = now
        db.add(placeholder)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            return False
        return True

    result = db.execute(
        update(FarmingPlan)
        .where(
            FarmingPlan.user_id == user_id,
            FarmingPlan.id == plan_id,
            FarmingPlan.oracle_attempted_at.is_(None),
        )
        .values(oracle_attempted_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def _store_if_empty(db: Session, user_id: UUID, plan_id: str, content: PlanContent, now: datetime) -> None:
    db.execute(
        update(FarmingPlan)
        .where(
            FarmingPlan.user_id == user_id,
            FarmingPlan.id == plan_id,
            FarmingPlan.source.is_(None),
        )
        .values(**_content_values(content, now))
        .execution_options(synchronize_session=False)
    )
    db.commit()


def get_plan_row(db: Session, user_id: Optional[UUID], plan_id: str) -> FarmingPlan:
    if user_id is None:
        raise AuthError("User must be signed in to read farming plans.")
    try:
        plan = db.get(FarmingPlan, (user_id, plan_id))
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError("Could not load the farming plan; please retry.") from exc
    if plan is None:
        raise NotFoundError(f"Plan {plan_id} not found.")
    return plan


def to_plan_document(plan: FarmingPlan) -> PlanDocument:
    return PlanDocument.model_validate(
        {
            "id": plan.id,
            "crop_name": plan.crop_name,
            "planting_date": plan.planting_date,
            "expected_harvest_date": plan.expected_harvest_date,
            "title_i18n": plan.title_i18n,
            "watering_rules": plan.watering_rules or [],
            "recurring_tasks": plan.recurring_tasks or [],
            "one_off_tasks": plan.one_off_tasks or [],
        }
    )


def set_plan_status(db: Session, user_id: Optional[UUID], plan_id: str, status: str) -> FarmingPlan:
    if status not in PLAN_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(PLAN_STATUSES)}.")
    plan = get_plan_row(db, user_id, plan_id)
    if plan.status == status:
        return plan
    try:
        plan.status = status
        plan.updated_at = datetime.now(timezone.utc)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError("Could not update the plan status; please retry.") from exc
    logger.info("Plan %s moved to %s", plan_id, status)
    return plan
