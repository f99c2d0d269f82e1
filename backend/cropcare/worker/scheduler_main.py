"""Dedicated APScheduler worker process for plan maintenance."""
from __future__ import annotations

import logging
import signal
import threading
from typing import Callable, NamedTuple

from apscheduler.schedulers.background import BackgroundScheduler

from cropcare.core.config import settings
from cropcare.core.logging import configure_logging
from cropcare.db.session import SessionLocal
from cropcare.services.job_runner import refresh_notifications_for_all_plans, run_cleanup_job

logger = logging.getLogger(__name__)


class DailyJob(NamedTuple):
    job_id: str
    func: Callable[[], None]
    hour_setting: str
    minute_setting: str


def _with_session(job_name: str, work: Callable) -> None:
    session = SessionLocal()
    try:
        summary = work(session)
        logger.info("%s finished: %s", job_name, summary)
    except Exception:  # pragma: no cover - a failed run must not stop the scheduler
        logger.exception("%s failed", job_name)
    finally:
        session.close()


def run_cleanup() -> None:
    _with_session(
        "Plan cleanup",
        lambda session: f"plans_deleted={run_cleanup_job(session).plans_deleted}",
    )


def run_notification_refresh() -> None:
    def refresh(session) -> str:
        result = refresh_notifications_for_all_plans(session)
        return (
            f"plans={result.plans_processed} scheduled={result.notifications_scheduled} "
            f"failures={result.failures}"
        )

    _with_session("Notification refresh", refresh)


DAILY_JOBS = (
    DailyJob("plan_cleanup_job", run_cleanup, "cleanup_job_hour", "cleanup_job_minute"),
    DailyJob(
        "notification_refresh_job",
        run_notification_refresh,
        "notification_job_hour",
        "notification_job_minute",
    ),
)


def register_jobs(scheduler: BackgroundScheduler) -> None:
    for job in DAILY_JOBS:
        hour = getattr(settings, job.hour_setting)
        minute = getattr(settings, job.minute_setting)
        scheduler.add_job(
            job.func,
            trigger="cron",
            hour=hour,
            minute=minute,
            id=job.job_id,
            replace_existing=True,
        )
        logger.info("Registered %s at %02d:%02d %s", job.job_id, hour, minute, settings.scheduler_timezone)


def main() -> None:
    configure_logging(log_level=settings.log_level)
    scheduler = BackgroundScheduler(timezone=settings.scheduler_timezone)

    if not settings.scheduler_enabled:
        logger.warning("Scheduler disabled via config; worker will idle")
    else:
        register_jobs(scheduler)
        scheduler.start()
        if settings.jobs_run_on_startup:
            for job in DAILY_JOBS:
                job.func()

    stopped = threading.Event()

    def shutdown(signum, frame):  # pragma: no cover - signal handler
        logger.info("Scheduler worker stopping (signal=%s)", signum)
        if scheduler.running:
            scheduler.shutdown(wait=False)
        stopped.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, shutdown)
    stopped.wait()


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
