from __future__ import annotations

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cropcare.core.errors import AuthError, NotFoundError, ValidationError
from cropcare.db.models.farming_plan import FarmingPlan
from cropcare.db.models.user import User
from cropcare.services.plan_generator import set_plan_status, upsert_plan
from cropcare.services.plan_oracle import OracleDates, OraclePlan, OracleWateringRule, PlanOracle
from cropcare.services.plan_rules import LocalizedText
from cropcare.services import task_queries
from cropcare.services.task_queries import (
    extract_water_amount_hint,
    get_tasks_in_range,
    get_tasks_on_date,
    get_upcoming_tasks,
    list_plan_summaries,
)

TODAY = date(2024, 6, 1)


def _session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_fk(conn, record):  # pragma: no cover
        cursor = conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    User.__table__.create(bind=engine)
    FarmingPlan.__table__.create(bind=engine)
    return TestingSession


class _StaticOracle(PlanOracle):
    def generate(self, request):
        return OraclePlan(
            title=LocalizedText(en="Drip tomatoes", hi="ड्रिप टमाटर"),
            overview=LocalizedText(en="Drip irrigated tomato"),
            dates=OracleDates(plantingDateISO=request.plantingDateISO, expectedHarvestDateISO="2024-08-30"),
            wateringRules=[
                OracleWateringRule(
                    startDay=0,
                    endDay=60,
                    everyDays=2,
                    title=LocalizedText(en="Drip irrigation"),
                    notes=LocalizedText(en="Run drip for 40 min, about 2 to 3 L per plant."),
                ),
            ],
        )


def _seed(session, user_id, crop_name, planting, oracle=None):
    return upsert_plan(
        session,
        user_id,
        crop_type="crop",
        crop_name=crop_name,
        area_acres=1,
        planting_date=planting,
        oracle=oracle,
        now=datetime(2024, 5, 1, tzinfo=timezone.utc),
    ).plan_id


@pytest.mark.parametrize(
    "notes, expected",
    [
        ("Apply 25-30 mm of water per irrigation", "25-30 mm"),
        ("Give 5 litres per plant", "5 L"),
        ("about 2 to 3 L per plant", "2-3 L"),
        ("Use 1.5 liters in the evening", "1.5 L"),
        ("Maintain shallow water layer (2-3 cm)", None),
        ("Check 10 leaves per plant", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_water_amount_hint(notes, expected) -> None:
    assert extract_water_amount_hint(notes) == expected


def test_upcoming_tasks_rank_plans_and_merge_instances() -> None:
    TestingSession = _session()
    user_id = uuid4()
    session = TestingSession()
    try:
        rice_id = _seed(session, user_id, "Rice", "2024-06-01")
        okra_id = _seed(session, user_id, "Okra", "2024-05-20")
        wheat_id = _seed(session, user_id, "Wheat", "2024-11-10")

        upcoming = get_upcoming_tasks(session, user_id, window_days=7, today=TODAY)
    finally:
        session.close()

    assert upcoming.window_start == TODAY
    assert upcoming.window_end == date(2024, 6, 8)
    assert [plan.plan_id for plan in upcoming.plans] == [okra_id, rice_id, wheat_id]
    assert upcoming.plans[0].next_due_date == TODAY
    assert upcoming.plans[2].next_due_date is None
    assert upcoming.plans[2].upcoming_count == 0
    assert upcoming.tasks[0].plan_id == okra_id
    assert all(TODAY <= task.due_date <= date(2024, 6, 8) for task in upcoming.tasks)
    keys = [(task.due_date, task.plan_expected_harvest_date, task.plan_title, task.title) for task in upcoming.tasks]
    assert keys == sorted(keys)


def test_upcoming_tasks_skip_completed_plans_and_allow_zero_window() -> None:
    TestingSession = _session()
    user_id = uuid4()
    session = TestingSession()
    try:
        rice_id = _seed(session, user_id, "Rice", "2024-06-01")
        okra_id = _seed(session, user_id, "Okra", "2024-05-20")
        set_plan_status(session, user_id, okra_id, "completed")

        upcoming = get_upcoming_tasks(session, user_id, window_days=0, today=TODAY)
    finally:
        session.close()

    assert upcoming.window_end == TODAY
    assert [plan.plan_id for plan in upcoming.plans] == [rice_id]
    assert {task.plan_id for task in upcoming.tasks} == {rice_id}


def test_upcoming_requires_caller() -> None:
    TestingSession = _session()
    session = TestingSession()
    try:
        with pytest.raises(AuthError):
            get_upcoming_tasks(session, None, today=TODAY)
    finally:
        session.close()


def test_plan_summaries_preview_next_task() -> None:
    TestingSession = _session()
    user_id = uuid4()
    session = TestingSession()
    try:
        tomato_id = _seed(session, user_id, "Tomato", "2024-06-01", oracle=_StaticOracle())
        summaries = list_plan_summaries(session, user_id, language="hi", today=TODAY)
    finally:
        session.close()

    assert len(summaries) == 1
    assert summaries[0].plan_id == tomato_id
    assert summaries[0].title == "ड्रिप टमाटर"
    assert summaries[0].source == "oracle"
    assert summaries[0].next_due_date == TODAY
    assert summaries[0].next_task_title == "Drip irrigation"
    assert summaries[0].upcoming_count == 4


def test_tasks_on_date_attach_water_hint() -> None:
    TestingSession = _session()
    user_id = uuid4()
    session = TestingSession()
    try:
        tomato_id = _seed(session, user_id, "Tomato", "2024-06-01", oracle=_StaticOracle())
        on_watering_day = get_tasks_on_date(session, user_id, tomato_id, date(2024, 6, 3))
        off_day = get_tasks_on_date(session, user_id, tomato_id, date(2024, 6, 4))
    finally:
        session.close()

    assert [task.title for task in on_watering_day] == ["Drip irrigation"]
    assert on_watering_day[0].water_amount_hint == "2-3 L"
    assert off_day == []


def test_heuristic_watering_without_amount_has_no_hint() -> None:
    TestingSession = _session()
    user_id = uuid4()
    session = TestingSession()
    try:
        rice_id = _seed(session, user_id, "Rice", "2024-06-01")
        tasks = get_tasks_on_date(session, user_id, rice_id, date(2024, 6, 2))
    finally:
        session.close()

    watering = [task for task in tasks if task.task_type == "watering"]
    assert len(watering) == 1
    assert watering[0].water_amount_hint is None


def test_tasks_in_range_and_unknown_plan() -> None:
    TestingSession = _session()
    user_id = uuid4()
    session = TestingSession()
    try:
        rice_id = _seed(session, user_id, "Rice", "2024-06-01")
        tasks = get_tasks_in_range(session, user_id, rice_id, date(2024, 6, 1), date(2024, 6, 30))

        with pytest.raises(ValidationError):
            get_tasks_in_range(session, user_id, rice_id, date(2024, 6, 30), date(2024, 6, 1))
        with pytest.raises(NotFoundError):
            get_tasks_in_range(session, user_id, "nope", date(2024, 6, 1), date(2024, 6, 30))
        with pytest.raises(NotFoundError):
            get_tasks_on_date(session, uuid4(), rice_id, date(2024, 6, 1))
    finally:
        session.close()

    assert tasks[0].due_date == date(2024, 6, 1)
    assert tasks[-1].due_date <= date(2024, 6, 30)
    assert any(task.task_type == "pest" and task.due_date == date(2024, 6, 11) for task in tasks)


@pytest.mark.parametrize("window_days", [-1, 121, 10**7])
def test_upcoming_window_out_of_bounds_is_rejected(window_days) -> None:
    TestingSession = _session()
    session = TestingSession()
    try:
        with pytest.raises(ValidationError):
            get_upcoming_tasks(session, uuid4(), window_days=window_days, today=TODAY)
    finally:
        session.close()


def test_upcoming_defaults_to_farm_local_today(monkeypatch) -> None:
    monkeypatch.setattr(task_queries, "local_today", lambda: TODAY)
    TestingSession = _session()
    user_id = uuid4()
    session = TestingSession()
    try:
        _seed(session, user_id, "Rice", "2024-06-01")
        upcoming = get_upcoming_tasks(session, user_id, window_days=2)
    finally:
        session.close()

    assert upcoming.window_start == TODAY
    assert upcoming.window_end == date(2024, 6, 3)
