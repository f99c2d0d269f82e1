"""Expansion of stored plan rules into dated task instances.

Pure and synchronous: the same plan, window and language always produce the
same list in the same order, and the plan is never modified.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Iterator, List, Optional

from cropcare.services.plan_rules import (
    CadenceRule,
    PlanDocument,
    TaskInstance,
    resolve_text,
)


def expand_plan(
    plan: PlanDocument,
    range_start: date,
    range_end: date,
    language: Optional[str] = None,
) -> List[TaskInstance]:
    """Return the deduplicated instances of `plan` due within `[range_start, range_end]`."""
    start = max(range_start, plan.planting_date)
    end = min(range_end, plan.expected_harvest_date)
    if end < start:
        return []

    plan_title = plan.plan_title(language)
    results: List[TaskInstance] = []

    for task in plan.one_off_tasks:
        if not start <= task.due_date <= end:
            continue
        results.append(
            TaskInstance(
                plan_id=plan.id,
                crop_name=plan.crop_name,
                plan_title=plan_title,
                plan_expected_harvest_date=plan.expected_harvest_date,
                task_type=task.task_type,
                title=resolve_text(task.title_i18n, task.title, language) or task.title,
                due_date=task.due_date,
                time_of_day=task.resolved_time_of_day,
                time_hhmm=task.resolved_time_hhmm,
                notes=resolve_text(task.notes_i18n, task.notes, language),
            )
        )

    rules: Iterable[CadenceRule] = [*plan.recurring_tasks, *plan.watering_rules]
    for rule in rules:
        if rule.is_stop:
            continue
        title = resolve_text(rule.title_i18n, rule.title, language) or rule.default_title()
        notes = resolve_text(rule.notes_i18n, rule.notes, language)
        for due in cadence_occurrences(rule, plan.planting_date, start, end):
            results.append(
                TaskInstance(
                    plan_id=plan.id,
                    crop_name=plan.crop_name,
                    plan_title=plan_title,
                    plan_expected_harvest_date=plan.expected_harvest_date,
                    task_type=rule.rule_task_type,
                    title=title,
                    due_date=due,
                    time_of_day=rule.rule_time_of_day,
                    time_hhmm=rule.rule_time_hhmm,
                    notes=notes,
                )
            )

    return order_instances(dedupe_instances(results))


def cadence_occurrences(rule: CadenceRule, planting_date: date, start: date, end: date) -> Iterator[date]:
    """Yield the rule's occurrences inside `[start, end]`, stepping forward from the first one."""
    step = rule.every_days
    # Work in day offsets from planting so oversized rules never leave the calendar.
    first = rule.start_day
    last = min(rule.end_day, (end - planting_date).days)
    behind = (start - planting_date).days - first
    if behind > 0:
        # Round up to the first occurrence on or after start.
        first += -(-behind // step) * step
    for offset in range(first, last + 1, step):
        yield planting_date + timedelta(days=offset)


def dedupe_instances(instances: Iterable[TaskInstance]) -> List[TaskInstance]:
    """Keep the first instance per (plan id, due date, title)."""
    seen: set[tuple[str, date, str]] = set()
    unique: List[TaskInstance] = []
    for instance in instances:
        key = (instance.plan_id, instance.due_date, instance.title)
        if key in seen:
            continue
        seen.add(key)
        unique.append(instance)
    return unique


def order_instances(instances: List[TaskInstance]) -> List[TaskInstance]:
    # str comparison is ordinal on code points, which keeps the order locale-independent.
    return sorted(instances, key=lambda instance: (instance.due_date, instance.title))
