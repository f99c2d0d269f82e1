from __future__ import annotations

import hashlib
from datetime import date, datetime, timezone
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cropcare.core.config import settings
from cropcare.db.models.farming_plan import FarmingPlan
from cropcare.db.models.user import User
from cropcare.services.heuristic_plan import build_heuristic_plan
from cropcare.services.job_runner import refresh_notifications_for_all_plans
from cropcare.services.notifications.base import NotificationResult, NotificationService
from cropcare.services.notifications.factory import get_notification_service
from cropcare.services.notifications.noop import NoopNotificationService
from cropcare.services.notifications.projection import project_notifications, schedule_plan_notifications
from cropcare.services.plan_generator import upsert_plan
from cropcare.services.plan_rules import DEFAULT_WATERING_TITLE, PlanDocument

KOLKATA = ZoneInfo("Asia/Kolkata")
NOW = datetime(2024, 6, 1, 8, 0, tzinfo=KOLKATA)


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


class _RecordingService(NotificationService):
    def __init__(self, reject_titles=()):
        self.scheduled = []
        self.cancelled = []
        self.reject_titles = set(reject_titles)

    def schedule(self, trigger):
        if trigger.payload.data["task_title"] in self.reject_titles:
            raise RuntimeError("device refused")
        self.scheduled.append(trigger.id)
        return NotificationResult(status="scheduled", reason="ok")

    def cancel_by_id(self, notification_id):
        self.cancelled.append(notification_id)
        return NotificationResult(status="cancelled", reason="ok")


@pytest.fixture(autouse=True)
def _notification_settings(monkeypatch):
    monkeypatch.setattr(settings, "notification_timezone", "Asia/Kolkata")
    monkeypatch.setattr(settings, "notification_cap", 60)
    monkeypatch.setattr(settings, "notification_window_days", 45)


def _rice_document() -> PlanDocument:
    content = build_heuristic_plan(crop_name="rice", crop_type="cereal", planting_date=date(2024, 6, 1))
    return PlanDocument(
        id="rice-plan",
        crop_name="rice",
        planting_date=content.planting_date,
        expected_harvest_date=content.expected_harvest_date,
        watering_rules=content.watering_rules,
        recurring_tasks=content.recurring_tasks,
        one_off_tasks=content.one_off_tasks,
    )


def _seed_plan(session, user_id) -> str:
    return upsert_plan(
        session,
        user_id,
        crop_type="cereal",
        crop_name="Rice",
        area_acres=2,
        planting_date="2024-06-01",
        now=datetime(2024, 5, 31, tzinfo=timezone.utc),
    ).plan_id


def test_projection_drops_past_triggers_and_uses_default_times() -> None:
    triggers = project_notifications(_rice_document(), window_days=0, now=NOW)

    assert len(triggers) == 1
    trigger = triggers[0]
    title_hash = hashlib.sha1(DEFAULT_WATERING_TITLE.encode("utf-8")).hexdigest()[:8]
    assert trigger.id == f"rice-plan:2024-06-02:0700:{title_hash}"
    assert trigger.trigger_at == datetime(2024, 6, 2, 7, 0, tzinfo=KOLKATA)
    assert trigger.payload.title == f"Time to {DEFAULT_WATERING_TITLE}"
    assert trigger.payload.body == "rice"
    assert trigger.payload.data == {
        "plan_id": "rice-plan",
        "due_date": "2024-06-02",
        "task_title": DEFAULT_WATERING_TITLE,
        "task_type": "watering",
    }


def test_projection_is_ordered_and_capped(monkeypatch) -> None:
    full = project_notifications(_rice_document(), window_days=500, now=NOW)
    monkeypatch.setattr(settings, "notification_cap", 5)
    capped = project_notifications(_rice_document(), window_days=500, now=NOW)

    assert len(full) == 60
    assert [trigger.id for trigger in capped] == [trigger.id for trigger in full[:5]]
    order = [(trigger.trigger_at, trigger.payload.data["task_title"]) for trigger in full]
    assert order == sorted(order)
    assert all(trigger.trigger_at > NOW for trigger in full)


def test_projection_mixes_time_of_day_buckets() -> None:
    triggers = project_notifications(_rice_document(), window_days=10, now=NOW)

    times = {trigger.payload.data["task_title"]: trigger.trigger_at.strftime("%H:%M") for trigger in triggers}
    assert times[DEFAULT_WATERING_TITLE] == "07:00"
    assert times["Install pheromone/light traps (stem borer/leaf folder monitoring)"] == "18:00"
    assert times["Check drainage & remove standing water (monsoon)"] == "13:00"


def test_schedule_skipped_when_disabled(monkeypatch) -> None:
    monkeypatch.setattr(settings, "notifications_enabled", False)
    TestingSession = _session()
    user_id = uuid4()
    service = _RecordingService()
    session = TestingSession()
    try:
        plan_id = _seed_plan(session, user_id)
        result = schedule_plan_notifications(session, user_id, plan_id, now=NOW, service=service)
    finally:
        session.close()

    assert result.status == "skipped"
    assert result.triggers
    assert service.scheduled == []


def test_schedule_replaces_previous_batch(monkeypatch) -> None:
    monkeypatch.setattr(settings, "notifications_enabled", True)
    TestingSession = _session()
    user_id = uuid4()
    service = _RecordingService()
    session = TestingSession()
    try:
        plan_id = _seed_plan(session, user_id)
        first = schedule_plan_notifications(session, user_id, plan_id, window_days=10, now=NOW, service=service)
        stored_first = list(session.get(FarmingPlan, (user_id, plan_id)).notification_ids)

        later = datetime(2024, 6, 3, 8, 0, tzinfo=KOLKATA)
        second = schedule_plan_notifications(session, user_id, plan_id, window_days=10, now=later, service=service)
        stored_second = list(session.get(FarmingPlan, (user_id, plan_id)).notification_ids)
    finally:
        session.close()

    assert first.status == "scheduled"
    assert first.cancelled == 0
    assert stored_first == first.scheduled_ids
    assert second.cancelled == len(stored_first)
    assert service.cancelled == stored_first
    assert stored_second == second.scheduled_ids
    assert all(trigger.trigger_at > later for trigger in second.triggers)


def test_schedule_skips_failing_entries(monkeypatch) -> None:
    monkeypatch.setattr(settings, "notifications_enabled", True)
    TestingSession = _session()
    user_id = uuid4()
    service = _RecordingService(reject_titles={DEFAULT_WATERING_TITLE})
    session = TestingSession()
    try:
        plan_id = _seed_plan(session, user_id)
        result = schedule_plan_notifications(session, user_id, plan_id, window_days=10, now=NOW, service=service)
    finally:
        session.close()

    assert result.failed == 10
    assert len(result.scheduled_ids) == len(result.triggers) - 10
    watering_hash = hashlib.sha1(DEFAULT_WATERING_TITLE.encode("utf-8")).hexdigest()[:8]
    assert not [trigger_id for trigger_id in result.scheduled_ids if trigger_id.endswith(watering_hash)]


def test_refresh_job_visits_active_plans(monkeypatch) -> None:
    monkeypatch.setattr(settings, "notifications_enabled", False)
    TestingSession = _session()
    session = TestingSession()
    try:
        _seed_plan(session, uuid4())
        _seed_plan(session, uuid4())
        result = refresh_notifications_for_all_plans(session, now=NOW)
    finally:
        session.close()

    assert result.plans_processed == 2
    assert result.notifications_scheduled == 0
    assert result.failures == 0


def test_factory_defaults_to_noop() -> None:
    get_notification_service.cache_clear()
    try:
        service = get_notification_service()
    finally:
        get_notification_service.cache_clear()

    assert isinstance(service, NoopNotificationService)
