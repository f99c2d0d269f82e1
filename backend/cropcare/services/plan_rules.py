"""Typed rule model shared by the generator, the expander and the notification projection."""
from __future__ import annotations

import re
from datetime import date, timedelta
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

TaskType = Literal["watering", "fertilizer", "pest", "disease", "field", "harvest", "general"]
TimeOfDay = Literal["morning", "afternoon", "evening", "night"]
LanguageCode = Literal["en", "hi", "bn"]

TASK_TYPES: tuple[str, ...] = ("watering", "fertilizer", "pest", "disease", "field", "harvest", "general")

# Cadence rules with every_days at or above this value document a policy
# ("stop irrigation here") and never produce occurrences.
STOP_EVERY_DAYS = 9999

# Longest planting-to-harvest season a plan may span (ratoon sugarcane fits).
MAX_PLAN_HORIZON_DAYS = 3 * 365
# Plans must be able to reach harvest + 1 without leaving the calendar.
LATEST_PLANTING_DATE = date.max - timedelta(days=MAX_PLAN_HORIZON_DAYS + 1)
MAX_AREA_ACRES = 1_000_000.0
# Upper bound for any expansion window (upcoming tasks, reminders).
MAX_WINDOW_DAYS = 120

DEFAULT_WATERING_TITLE = "Water/irrigate (as per stage)"

TIME_OF_DAY_BY_TYPE: dict[str, TimeOfDay] = {
    "watering": "morning",
    "fertilizer": "morning",
    "pest": "evening",
    "disease": "morning",
    "field": "afternoon",
    "harvest": "morning",
    "general": "afternoon",
}

DEFAULT_HHMM_BY_TIME_OF_DAY: dict[str, str] = {
    "morning": "07:00",
    "afternoon": "13:00",
    "evening": "18:00",
    "night": "20:30",
}

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_SLUG_RE = re.compile(r"[^a-z0-9]+")


def normalize_language(language: Optional[str]) -> LanguageCode:
    raw = (language or "").strip().lower()
    if raw in ("hi", "hn"):
        return "hi"
    if raw == "bn":
        return "bn"
    return "en"


def infer_time_of_day(task_type: str) -> TimeOfDay:
    return TIME_OF_DAY_BY_TYPE.get(task_type, "afternoon")


def default_hhmm(time_of_day: str) -> str:
    return DEFAULT_HHMM_BY_TIME_OF_DAY.get(time_of_day, "13:00")


def is_valid_hhmm(value: Optional[str]) -> bool:
    return bool(value) and bool(_HHMM_RE.match(value or ""))


def slugify(value: Optional[str], max_length: int = 80) -> str:
    slug = _SLUG_RE.sub("-", (value or "").strip().lower()).strip("-")
    return slug[:max_length]


class LocalizedText(BaseModel):
    """One field per supported locale."""

    en: Optional[str] = None
    hi: Optional[str] = None
    bn: Optional[str] = None

    def resolve(self, language: Optional[str]) -> Optional[str]:
        """Requested language, then English, then the first other locale present."""
        lang = normalize_language(language)
        for code in (lang, "en", "hi", "bn"):
            value = getattr(self, code)
            if value:
                return value
        return None


def resolve_text(localized: Optional[LocalizedText], raw: Optional[str], language: Optional[str]) -> Optional[str]:
    if localized is not None:
        picked = localized.resolve(language)
        if picked:
            return picked
    return raw or None


class CadenceRule(BaseModel):
    """A rule producing occurrences every `every_days` between two day offsets from planting."""

    start_day: int = Field(..., ge=0)
    end_day: int = Field(..., ge=0)
    every_days: int = Field(..., ge=1)
    title: Optional[str] = None
    title_i18n: Optional[LocalizedText] = None
    notes: Optional[str] = None
    notes_i18n: Optional[LocalizedText] = None

    @model_validator(mode="after")
    def _check_window(self) -> "CadenceRule":
        if self.start_day > self.end_day:
            raise ValueError(f"start_day {self.start_day} is after end_day {self.end_day}")
        return self

    @property
    def is_stop(self) -> bool:
        return self.every_days >= STOP_EVERY_DAYS

    @property
    def rule_task_type(self) -> str:
        return "general"

    @property
    def rule_time_of_day(self) -> TimeOfDay:
        return infer_time_of_day(self.rule_task_type)

    @property
    def rule_time_hhmm(self) -> str:
        return default_hhmm(self.rule_time_of_day)

    def default_title(self) -> str:
        return self.title or "Task"


class WateringRule(CadenceRule):
    @property
    def rule_task_type(self) -> str:
        return "watering"

    def default_title(self) -> str:
        return self.title or DEFAULT_WATERING_TITLE


class RecurringTaskRule(CadenceRule):
    id: str
    task_type: TaskType = "general"
    title: str
    time_of_day: Optional[TimeOfDay] = None
    time_hhmm: Optional[str] = None

    @property
    def rule_task_type(self) -> str:
        return self.task_type

    @property
    def rule_time_of_day(self) -> TimeOfDay:
        return self.time_of_day or infer_time_of_day(self.task_type)

    @property
    def rule_time_hhmm(self) -> str:
        if is_valid_hhmm(self.time_hhmm):
            return self.time_hhmm  # type: ignore[return-value]
        return default_hhmm(self.rule_time_of_day)


class OneOffTask(BaseModel):
    id: str
    task_type: TaskType = "general"
    title: str
    title_i18n: Optional[LocalizedText] = None
    due_date: date
    time_of_day: Optional[TimeOfDay] = None
    time_hhmm: Optional[str] = None
    notes: Optional[str] = None
    notes_i18n: Optional[LocalizedText] = None

    @property
    def resolved_time_of_day(self) -> TimeOfDay:
        return self.time_of_day or infer_time_of_day(self.task_type)

    @property
    def resolved_time_hhmm(self) -> str:
        if is_valid_hhmm(self.time_hhmm):
            return self.time_hhmm  # type: ignore[return-value]
        return default_hhmm(self.resolved_time_of_day)


def make_recurring_rule(
    *,
    task_type: str,
    title: str,
    start_day: int,
    end_day: int,
    every_days: int,
    notes: Optional[str] = None,
    time_of_day: Optional[TimeOfDay] = None,
    rule_id: Optional[str] = None,
    **extra,
) -> RecurringTaskRule:
    """Build a recurring rule with inferred time-of-day and HH:mm."""
    resolved = time_of_day or infer_time_of_day(task_type)
    return RecurringTaskRule(
        id=rule_id or f"{slugify(task_type)}-{slugify(title)}",
        task_type=task_type,  # type: ignore[arg-type]
        title=title,
        start_day=start_day,
        end_day=end_day,
        every_days=every_days,
        time_of_day=resolved,
        time_hhmm=default_hhmm(resolved),
        notes=notes,
        **extra,
    )


def make_one_off_task(
    *,
    task_type: str,
    title: str,
    due_date: date,
    notes: Optional[str] = None,
    time_of_day: Optional[TimeOfDay] = None,
    task_id: Optional[str] = None,
    **extra,
) -> OneOffTask:
    """Build a one-off task with inferred time-of-day and HH:mm."""
    resolved = time_of_day or infer_time_of_day(task_type)
    return OneOffTask(
        id=task_id or f"{slugify(task_type)}-{slugify(title)}-{due_date.isoformat()}",
        task_type=task_type,  # type: ignore[arg-type]
        title=title,
        due_date=due_date,
        time_of_day=resolved,
        time_hhmm=default_hhmm(resolved),
        notes=notes,
        **extra,
    )


def dedupe_one_off_tasks(tasks: List[OneOffTask]) -> List[OneOffTask]:
    """Drop repeated (type, title, due date) entries, keep the first, order by due date."""
    seen: set[tuple[str, str, date]] = set()
    unique: List[OneOffTask] = []
    for task in tasks:
        key = (task.task_type, task.title, task.due_date)
        if key in seen:
            continue
        seen.add(key)
        unique.append(task)
    unique.sort(key=lambda task: task.due_date)
    return unique


class PlanContent(BaseModel):
    """The generated part of a plan: dates plus the three rule collections."""

    source: Literal["oracle", "heuristic"]
    crop_family: str = "generic"
    planting_date: date
    expected_harvest_date: date
    cleanup_after_date: date
    title_i18n: Optional[LocalizedText] = None
    overview_i18n: Optional[LocalizedText] = None
    watering_rules: List[WateringRule] = Field(default_factory=list)
    recurring_tasks: List[RecurringTaskRule] = Field(default_factory=list)
    one_off_tasks: List[OneOffTask] = Field(default_factory=list)


class PlanDocument(BaseModel):
    """Read-only view of a stored plan, the input of the expander."""

    id: str
    crop_name: str
    planting_date: date
    expected_harvest_date: date
    title_i18n: Optional[LocalizedText] = None
    watering_rules: List[WateringRule] = Field(default_factory=list)
    recurring_tasks: List[RecurringTaskRule] = Field(default_factory=list)
    one_off_tasks: List[OneOffTask] = Field(default_factory=list)

    def plan_title(self, language: Optional[str]) -> str:
        return resolve_text(self.title_i18n, None, language) or self.crop_name


class TaskInstance(BaseModel):
    plan_id: str
    crop_name: str
    plan_title: str
    plan_expected_harvest_date: date
    task_type: str
    title: str
    due_date: date
    time_of_day: TimeOfDay
    time_hhmm: str
    notes: Optional[str] = None
    water_amount_hint: Optional[str] = None
