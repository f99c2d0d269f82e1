from __future__ import annotations

from datetime import date

import pytest

from cropcare.services.crop_catalog import CropFamily, match_crop_family, maturity_days_for, resolve_crop_family
from cropcare.services.heuristic_plan import (
    DRAINAGE_TITLE,
    HARVEST_TITLE,
    SCOUTING_TITLE,
    build_heuristic_plan,
    resolve_harvest_date,
)
from cropcare.services.plan_rules import STOP_EVERY_DAYS


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Rice", CropFamily.RICE),
        ("Basmati paddy", CropFamily.RICE),
        ("sweet corn", CropFamily.MAIZE),
        ("Corn", CropFamily.MAIZE),
        ("sweet potato", CropFamily.GENERIC),
        ("Potato (Kufri Jyoti)", CropFamily.POTATO),
        ("peppercorn", CropFamily.GENERIC),
        ("Sugar cane", CropFamily.SUGARCANE),
        ("", CropFamily.GENERIC),
        (None, CropFamily.GENERIC),
    ],
)
def test_crop_family_matching(name, expected) -> None:
    assert match_crop_family(name) is expected


def test_crop_type_consulted_when_name_is_unknown() -> None:
    assert resolve_crop_family("Swarna", "paddy") is CropFamily.RICE
    assert resolve_crop_family("Wheat", "paddy") is CropFamily.WHEAT


def test_maturity_table() -> None:
    assert maturity_days_for(CropFamily.RICE) == 120
    assert maturity_days_for(CropFamily.SUGARCANE) == 330
    assert maturity_days_for(CropFamily.GENERIC) == 110


def test_harvest_override_is_pushed_after_planting() -> None:
    planting = date(2024, 3, 1)

    assert resolve_harvest_date(planting, None, 95) == date(2024, 6, 4)
    assert resolve_harvest_date(planting, date(2024, 2, 1), 95) == date(2024, 3, 2)
    assert resolve_harvest_date(planting, planting, 95) == date(2024, 3, 2)
    assert resolve_harvest_date(planting, date(2024, 5, 1), 95) == date(2024, 5, 1)


def test_rice_template_in_monsoon() -> None:
    content = build_heuristic_plan(crop_name="Rice", crop_type="cereal", planting_date=date(2024, 6, 1))

    assert content.source == "heuristic"
    assert content.crop_family == "rice"
    assert content.expected_harvest_date == date(2024, 9, 29)
    assert content.cleanup_after_date == date(2024, 9, 30)
    assert [rule.title for rule in content.recurring_tasks] == [SCOUTING_TITLE, DRAINAGE_TITLE]
    assert [rule.every_days for rule in content.watering_rules] == [1, 2, STOP_EVERY_DAYS]
    assert content.watering_rules[2].start_day == 106
    assert content.one_off_tasks[0].due_date == date(2024, 6, 1)
    assert content.one_off_tasks[-1].title == HARVEST_TITLE
    assert content.one_off_tasks[-1].due_date == date(2024, 9, 29)


def test_wheat_uses_irrigation_milestones() -> None:
    content = build_heuristic_plan(crop_name="wheat", crop_type="cereal", planting_date=date(2024, 11, 10))

    assert content.watering_rules == []
    assert [rule.title for rule in content.recurring_tasks] == [SCOUTING_TITLE]
    irrigation_days = [
        (task.due_date - date(2024, 11, 10)).days for task in content.one_off_tasks if task.task_type == "watering"
    ]
    assert irrigation_days == [21, 40, 60, 80, 95]


def test_generic_template_follows_override_horizon() -> None:
    content = build_heuristic_plan(
        crop_name="okra",
        crop_type="vegetable",
        planting_date=date(2024, 2, 1),
        expected_harvest_date=date(2024, 4, 11),
    )

    assert content.crop_family == "generic"
    phases = [(rule.start_day, rule.end_day, rule.every_days) for rule in content.watering_rules]
    assert phases == [(0, 14, 1), (15, 60, 2), (61, 70, 3)]
    assert "Irrigate every 2 days" in content.watering_rules[1].notes
    assert content.recurring_tasks[0].end_day == 70


def test_one_off_tasks_are_sorted_and_unique() -> None:
    content = build_heuristic_plan(crop_name="tomato", crop_type="vegetable", planting_date=date(2024, 7, 15))

    keys = [(task.task_type, task.title, task.due_date) for task in content.one_off_tasks]
    assert len(keys) == len(set(keys))
    assert [task.due_date for task in content.one_off_tasks] == sorted(task.due_date for task in content.one_off_tasks)
    assert "skip after good rainfall" in content.watering_rules[1].notes
