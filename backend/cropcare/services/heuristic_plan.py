"""Deterministic, table-driven plan builder used when the oracle is unavailable."""
from __future__ import annotations

from datetime import date, timedelta
from typing import List, Optional

from cropcare.services.crop_catalog import CropFamily, maturity_days_for, resolve_crop_family
from cropcare.services.plan_rules import (
    STOP_EVERY_DAYS,
    OneOffTask,
    PlanContent,
    RecurringTaskRule,
    WateringRule,
    dedupe_one_off_tasks,
    make_one_off_task,
    make_recurring_rule,
)

MONSOON_MONTHS = range(6, 10)

SCOUTING_TITLE = "Field scouting (pests, disease, weeds, moisture)"
DRAINAGE_TITLE = "Check drainage & remove standing water (monsoon)"
HARVEST_TITLE = "Harvest window starts (plan labor, bags, storage, drying)"


def resolve_harvest_date(planting_date: date, override: Optional[date], maturity_days: int) -> date:
    """Explicit override pushed strictly after planting, else planting + maturity."""
    if override is None:
        return planting_date + timedelta(days=maturity_days)
    if override <= planting_date:
        return planting_date + timedelta(days=1)
    return override


def is_monsoon_planting(planting_date: date) -> bool:
    return planting_date.month in MONSOON_MONTHS


def build_heuristic_plan(
    *,
    crop_name: str,
    crop_type: str,
    planting_date: date,
    expected_harvest_date: Optional[date] = None,
) -> PlanContent:
    family = resolve_crop_family(crop_name, crop_type)
    harvest = resolve_harvest_date(planting_date, expected_harvest_date, maturity_days_for(family))
    # With an override the rule horizon follows the real season length.
    horizon = max(1, (harvest - planting_date).days)
    monsoon = is_monsoon_planting(planting_date)

    recurring: List[RecurringTaskRule] = [
        make_recurring_rule(
            task_type="field",
            title=SCOUTING_TITLE,
            start_day=7,
            end_day=max(7, horizon),
            every_days=7,
            notes=(
                "Walk the plot early morning; check undersides of leaves, new growth, and waterlogging. "
                "Act only if thresholds are met."
            ),
        )
    ]
    if monsoon:
        recurring.append(
            make_recurring_rule(
                task_type="field",
                title=DRAINAGE_TITLE,
                # First check once the field has seen five days of weather.
                start_day=5,
                end_day=max(5, horizon),
                every_days=5,
                notes="Prevent root rot and nutrient loss; keep bunds/field channels clear.",
            )
        )

    if family is CropFamily.RICE:
        watering, tasks = _rice_template(planting_date, horizon)
    elif family is CropFamily.WHEAT:
        watering, tasks = [], _wheat_template(planting_date)
    else:
        watering, tasks = _generic_template(planting_date, horizon, monsoon)

    tasks.append(
        make_one_off_task(
            task_type="harvest",
            title=HARVEST_TITLE,
            due_date=harvest,
            notes=(
                "Harvest at physiological maturity; avoid harvesting immediately after rain. "
                "Dry/grade produce for better price."
            ),
        )
    )

    return PlanContent(
        source="heuristic",
        crop_family=family.value,
        planting_date=planting_date,
        expected_harvest_date=harvest,
        cleanup_after_date=harvest + timedelta(days=1),
        watering_rules=watering,
        recurring_tasks=recurring,
        one_off_tasks=dedupe_one_off_tasks(tasks),
    )


def _on(planting_date: date, day: int) -> date:
    return planting_date + timedelta(days=day)


def _rice_template(planting_date: date, horizon: int) -> tuple[List[WateringRule], List[OneOffTask]]:
    watering = [
        # Day 0 is transplanting/basal day; standing water starts the day after.
        WateringRule(
            start_day=1,
            end_day=30,
            every_days=1,
            notes=(
                "Maintain shallow water layer (2-3 cm) after establishment; "
                "skip if continuous rainfall and waterlogging risk."
            ),
        ),
        WateringRule(
            start_day=31,
            end_day=max(31, horizon - 15),
            every_days=2,
            notes="Irrigate to keep soil moist; avoid long dry gaps during tillering and panicle initiation.",
        ),
        WateringRule(
            start_day=max(0, horizon - 14),
            end_day=max(max(0, horizon - 14), horizon),
            every_days=STOP_EVERY_DAYS,
            notes="Stop irrigation ~10-14 days before harvest to improve grain maturity and ease harvesting.",
        ),
    ]
    tasks = [
        make_one_off_task(
            task_type="fertilizer",
            title="Basal fertilization (FYM/compost + recommended NPK) and zinc if needed",
            due_date=planting_date,
            notes=(
                "Apply well-decomposed FYM/compost. Use soil-test based NPK; "
                "consider zinc sulfate in zinc-deficient areas."
            ),
        ),
        make_one_off_task(
            task_type="fertilizer",
            title="Top dress nitrogen (tillering stage)",
            due_date=_on(planting_date, 25),
            notes="Split N improves uptake; apply just before irrigation or rainfall.",
        ),
        make_one_off_task(
            task_type="fertilizer",
            title="Top dress nitrogen/potash (panicle initiation)",
            due_date=_on(planting_date, 55),
            notes="Critical for grain formation; avoid over-N in cloudy/humid conditions.",
        ),
        make_one_off_task(
            task_type="pest",
            title="Install pheromone/light traps (stem borer/leaf folder monitoring)",
            due_date=_on(planting_date, 10),
            notes="Use traps for monitoring; spray only if infestation crosses thresholds.",
        ),
    ]
    return watering, tasks


_WHEAT_IRRIGATIONS: tuple[tuple[int, str, str], ...] = (
    (
        21,
        "Irrigation #1 (Crown Root Initiation - CRI)",
        "Most critical irrigation for wheat. If rainfall occurred recently and soil is moist, adjust accordingly.",
    ),
    (40, "Irrigation #2 (Tillering)", "Avoid water stress; do not over-irrigate in cold foggy spells."),
    (60, "Irrigation #3 (Jointing/Booting)", "Supports spike development; ensure good drainage after irrigation."),
    (80, "Irrigation #4 (Heading/Flowering)", "Avoid stress; irrigate in morning hours when possible."),
    (95, "Irrigation #5 (Milking/Dough stage)", "Last critical irrigation; stop irrigation 10-12 days before harvest."),
)


def _wheat_template(planting_date: date) -> List[OneOffTask]:
    tasks = [
        make_one_off_task(task_type="watering", title=title, due_date=_on(planting_date, day), notes=notes)
        for day, title, notes in _WHEAT_IRRIGATIONS
    ]
    tasks.extend(
        [
            make_one_off_task(
                task_type="fertilizer",
                title="Basal dose (FYM/compost + recommended NPK)",
                due_date=planting_date,
                notes="Use soil-test based recommendations; place fertilizer below seed zone where applicable.",
            ),
            make_one_off_task(
                task_type="fertilizer",
                title="Top dress nitrogen (after first irrigation / CRI)",
                due_date=_on(planting_date, 22),
                notes="Split N reduces lodging risk and improves grain filling.",
            ),
            make_one_off_task(
                task_type="disease",
                title="Rust/leaf blight monitoring and preventive spray decision",
                due_date=_on(planting_date, 55),
                notes=(
                    "In humid/foggy weather, rust risk rises. "
                    "Use resistant varieties and spray only if symptoms appear."
                ),
            ),
        ]
    )
    return tasks


def _generic_template(
    planting_date: date, horizon: int, monsoon: bool
) -> tuple[List[WateringRule], List[OneOffTask]]:
    if monsoon:
        mid_notes = "Irrigate during dry spells; skip after good rainfall. Ensure drainage to prevent fungal diseases."
    else:
        mid_notes = "Irrigate every 2 days (adjust for soil type); avoid wetting foliage late evening."
    taper_start = max(0, horizon - 9)
    watering = [
        WateringRule(
            start_day=0,
            end_day=14,
            every_days=1,
            notes="Keep soil consistently moist for establishment; avoid waterlogging. Mulch helps in hot weather.",
        ),
        WateringRule(start_day=15, end_day=max(15, horizon - 10), every_days=2, notes=mid_notes),
        WateringRule(
            start_day=taper_start,
            end_day=max(taper_start, horizon),
            every_days=3,
            notes="Reduce irrigation close to harvest to improve quality and reduce post-harvest rot.",
        ),
    ]
    tasks = [
        make_one_off_task(
            task_type="fertilizer",
            title="Basal nutrition (FYM/compost + recommended NPK)",
            due_date=planting_date,
            notes=(
                "Incorporate compost and basal P & K. Use soil test when available. "
                "Apply biofertilizers if using organic methods."
            ),
        ),
        make_one_off_task(
            task_type="fertilizer",
            title="Top dressing (nitrogen) + micronutrient check",
            due_date=_on(planting_date, 25),
            notes=(
                "Split nitrogen improves uptake. If leaf yellowing/poor growth, "
                "consider micronutrients (Zn/B) as per symptoms."
            ),
        ),
        make_one_off_task(
            task_type="pest",
            title="Install sticky/pheromone traps (monitoring)",
            due_date=_on(planting_date, 10),
            notes="Use traps for monitoring; keep field clean to reduce pest carryover.",
        ),
        make_one_off_task(
            task_type="disease",
            title="Preventive fungal risk check (humidity/leaf wetness)",
            due_date=_on(planting_date, 20),
            notes=(
                "Avoid overhead irrigation at night; ensure airflow. "
                "Use recommended protectant fungicide only if risk is high."
            ),
        ),
    ]
    return watering, tasks
