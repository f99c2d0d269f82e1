"""Farm-local clock; every "today" in the service is taken here."""
from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from cropcare.core.config import settings


def farm_timezone() -> ZoneInfo:
    return ZoneInfo(settings.notification_timezone)


def local_now() -> datetime:
    return datetime.now(farm_timezone())


def local_today() -> date:
    """Calendar date in the farm timezone, which can differ from the server's near midnight."""
    return local_now().date()
