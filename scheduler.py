import logging
from datetime import date
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings
from database import session_scope
from services import RecurringService


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# (job id, source label, trigger factory, misfire grace seconds)
MATERIALIZE_JOBS = (
    ("recurring_daily", "daily_03:15", lambda: CronTrigger(hour=3, minute=15), 3600),
    ("recurring_hourly_safety", "hourly_safety_net", lambda: IntervalTrigger(hours=1), 300),
)


def materialize_due_rules(source: str = "manual", today: Optional[date] = None) -> int:
    """One materialization pass over every user; failures are logged, not raised."""
    logger.info(f"scheduler_run: source={source}")
    try:
        with session_scope() as session:
            inserted = RecurringService(session).materialize_all(today)
    except Exception:
        # The batch was rolled back; the next tick picks the same rules up again.
        logger.exception(f"scheduler_run_failed: source={source}")
        return 0
    logger.info(f"scheduler_run: source={source} occurrences_inserted={inserted}")
    return inserted


class SchedulerManager:
    def __init__(self) -> None:
        self.scheduler = BackgroundScheduler(timezone=get_settings().timezone)

    def start(self) -> None:
        materialize_due_rules("startup")
        for job_id, source, trigger, grace in MATERIALIZE_JOBS:
            self.scheduler.add_job(
                materialize_due_rules,
                trigger(),
                args=[source],
                id=job_id,
                replace_existing=True,
                misfire_grace_time=grace,
            )
        self.scheduler.start()
        logger.info("Scheduler started with daily 03:15 and hourly safety net")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
