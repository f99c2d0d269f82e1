"""LLM-backed generation oracle for localized plan content."""
from __future__ import annotations

import json
import logging
from datetime import date, timedelta
from typing import List, Optional

import openai
from pydantic import BaseModel, Field

from cropcare.core.config import settings
from cropcare.core.errors import OracleError
from cropcare.observability.metrics import log_metric
from cropcare.observability.tracing import trace
from cropcare.services.plan_rules import (
    MAX_PLAN_HORIZON_DAYS,
    TASK_TYPES,
    LocalizedText,
    OneOffTask,
    PlanContent,
    RecurringTaskRule,
    WateringRule,
    dedupe_one_off_tasks,
    make_one_off_task,
    make_recurring_rule,
    slugify,
)

logger = logging.getLogger(__name__)


class OracleRequest(BaseModel):
    cropType: str
    cropName: str
    areaAcres: float
    plantingDateISO: str
    expectedHarvestDateISO: Optional[str] = None
    country: str


class OracleDates(BaseModel):
    plantingDateISO: str
    expectedHarvestDateISO: Optional[str] = None


class OracleWateringRule(BaseModel):
    startDay: int = 0
    endDay: int = 0
    everyDays: int = 1
    title: Optional[LocalizedText] = None
    notes: Optional[LocalizedText] = None


class OracleRecurringTask(BaseModel):
    type: str = "general"
    title: Optional[LocalizedText] = None
    startDay: int = 0
    endDay: int = 0
    everyDays: Optional[int] = None
    notes: Optional[LocalizedText] = None


class OracleOneOffTask(BaseModel):
    type: str = "general"
    title: Optional[LocalizedText] = None
    dueDateISO: str = ""
    notes: Optional[LocalizedText] = None


class OraclePlan(BaseModel):
    """Structured plan returned by the oracle."""

    title: LocalizedText
    overview: LocalizedText
    dates: OracleDates
    wateringRules: List[OracleWateringRule] = Field(default_factory=list)
    recurringTasks: List[OracleRecurringTask] = Field(default_factory=list)
    oneOffTasks: List[OracleOneOffTask] = Field(default_factory=list)


class PlanOracle:
    """Base interface for generation oracles."""

    def generate(self, request: OracleRequest) -> OraclePlan:
        raise NotImplementedError


class OpenAIPlanOracle(PlanOracle):
    def __init__(self, client: "openai.OpenAI", model: str):
        self._client = client
        self._model = model

    def generate(self, request: OracleRequest) -> OraclePlan:
        system_prompt, user_prompt = _build_prompts(request)
        metadata = {"crop": request.cropName, "model": self._model, "planting": request.plantingDateISO}
        try:
            with trace("plan.oracle.generate", metadata=metadata):
                completion = self._client.chat.completions.create(
                    model=self._model,
                    response_format={"type": "json_object"},
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                )
            content = completion.choices[0].message.content or "{}"
            return OraclePlan.model_validate_json(content)
        except Exception as exc:
            log_metric("plan.oracle.failure", 1, metadata={"error": type(exc).__name__})
            raise OracleError(f"Plan generation failed: {exc}") from exc


def get_plan_oracle() -> Optional[PlanOracle]:
    """Return the configured oracle, or None when generation is disabled or unconfigured."""
    if not settings.oracle_enabled:
        return None
    if not settings.openai_api_key:
        logger.info("OPENAI_API_KEY missing; plans will use the heuristic builder.")
        return None
    client = openai.OpenAI(api_key=settings.openai_api_key, timeout=settings.oracle_timeout_seconds)
    return OpenAIPlanOracle(client, settings.oracle_model)


def _build_prompts(request: OracleRequest) -> tuple[str, str]:
    schema_json = json.dumps(OraclePlan.model_json_schema(), indent=2)
    system_prompt = (
        "You are an agronomy assistant for smallholder farmers. "
        "Produce a practical crop-care schedule. Every text field is an object with "
        "English (en), Hindi (hi) and Bengali (bn) translations. "
        "Day offsets are days after planting (day 0 is the planting date). "
        "Dates are ISO calendar dates (YYYY-MM-DD)."
    )
    user_prompt = (
        f"Crop: {request.cropName} (type: {request.cropType})\n"
        f"Area: {request.areaAcres} acres\n"
        f"Planting date: {request.plantingDateISO}\n"
        f"Expected harvest: {request.expectedHarvestDateISO or 'estimate from crop maturity'}\n"
        f"Country: {request.country}\n\n"
        "Include irrigation cadence rules, recurring scouting/maintenance tasks and one-off "
        "fertilizer, pest, disease and harvest tasks.\n"
        "Return strictly valid JSON matching this schema:\n"
        f"{schema_json}"
    )
    return system_prompt, user_prompt


def _parse_iso(value: Optional[str]) -> Optional[date]:
    try:
        return date.fromisoformat((value or "").strip())
    except ValueError:
        return None


def _task_type(raw: Optional[str]) -> str:
    value = (raw or "").strip().lower()
    return value if value in TASK_TYPES else "general"


def _english(text: Optional[LocalizedText]) -> str:
    return ((text.en if text else None) or "").strip()


def _day_window(start: int, end: int, horizon: int) -> tuple[int, int]:
    start = min(max(0, int(start or 0)), horizon)
    return start, min(max(start, int(end or 0)), horizon)


def plan_content_from_oracle(
    generated: OraclePlan,
    *,
    crop_family: str,
    planting_date: date,
    expected_harvest_date: Optional[date],
) -> PlanContent:
    """Map oracle output onto the typed rule model; values it cannot hold raise OracleError."""
    try:
        return _map_oracle_plan(
            generated,
            crop_family=crop_family,
            planting_date=planting_date,
            expected_harvest_date=expected_harvest_date,
        )
    except (ValueError, OverflowError) as exc:
        raise OracleError(f"Oracle returned an unusable plan: {exc}") from exc


def _map_oracle_plan(
    generated: OraclePlan,
    *,
    crop_family: str,
    planting_date: date,
    expected_harvest_date: Optional[date],
) -> PlanContent:
    harvest = _parse_iso(generated.dates.expectedHarvestDateISO) or expected_harvest_date or planting_date
    if harvest <= planting_date:
        harvest = planting_date + timedelta(days=1)
    horizon = (harvest - planting_date).days
    if horizon > MAX_PLAN_HORIZON_DAYS:
        raise OracleError(f"Oracle harvest date {harvest.isoformat()} is {horizon} days after planting.")

    watering: List[WateringRule] = []
    for rule in generated.wateringRules:
        start, end = _day_window(rule.startDay, rule.endDay, horizon)

        watering.append(
            WateringRule(
                start_day=start,
                end_day=end,
                every_days=max(1, int(rule.everyDays or 1)),
                title=_english(rule.title) or None,
                title_i18n=rule.title,
                notes=_english(rule.notes),
                notes_i18n=rule.notes,
            )
        )

    recurring: List[RecurringTaskRule] = []
    for idx, rule in enumerate(generated.recurringTasks):
        start, end = _day_window(rule.startDay, rule.endDay, horizon)
        title_en = _english(rule.title)
        task_type = _task_type(rule.type)
        recurring.append(
            make_recurring_rule(
                rule_id=f"{slugify(task_type)}-{slugify(title_en or f'task-{idx}')}",
                task_type=task_type,
                title=title_en or "Task",
                title_i18n=rule.title,
                start_day=start,
                end_day=end,
                every_days=max(1, int(rule.everyDays or 7)),
                notes=_english(rule.notes),
                notes_i18n=rule.notes,
            )
        )

    tasks: List[OneOffTask] = []
    for idx, task in enumerate(generated.oneOffTasks):
        due = _parse_iso(task.dueDateISO)
        if due is None:
            logger.debug("Dropping oracle task %s with unparseable due date %r", idx, task.dueDateISO)
            continue
        title_en = _english(task.title)
        task_type = _task_type(task.type)
        tasks.append(
            make_one_off_task(
                task_id=f"{slugify(task_type)}-{slugify(title_en or f'task-{idx}')}-{due.isoformat()}",
                task_type=task_type,
                title=title_en or "Task",
                title_i18n=task.title,
                due_date=due,
                notes=_english(task.notes),
                notes_i18n=task.notes,
            )
        )

    return PlanContent(
        source="oracle",
        crop_family=crop_family,
        planting_date=planting_date,
        expected_harvest_date=harvest,
        cleanup_after_date=harvest + timedelta(days=1),
        title_i18n=generated.title,
        overview_i18n=generated.overview,
        watering_rules=watering,
        recurring_tasks=recurring,
        one_off_tasks=dedupe_one_off_tasks(tasks),
    )
