from __future__ import annotations

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from cropcare.core import clock
from cropcare.core.config import settings


def test_local_now_uses_the_farm_timezone(monkeypatch) -> None:
    monkeypatch.setattr(settings, "notification_timezone", "Pacific/Kiritimati")

    assert clock.local_now().utcoffset() == timedelta(hours=14)
    assert clock.farm_timezone().key == "Pacific/Kiritimati"


def test_local_today_follows_farm_midnight_not_utc(monkeypatch) -> None:
    # 20:00 UTC on June 1st is already June 2nd in Kolkata.
    utc_evening = datetime(2024, 6, 1, 20, 0, tzinfo=ZoneInfo("UTC"))
    monkeypatch.setattr(settings, "notification_timezone", "Asia/Kolkata")
    monkeypatch.setattr(clock, "local_now", lambda: utc_evening.astimezone(clock.farm_timezone()))

    assert clock.local_today() == date(2024, 6, 2)
