import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from config import get_settings
from database import session_scope
from recurrence import TemplateSyncEngine, local_today
from services import get_current_user_id


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def generate_current_year(source: str = "manual", year: Optional[int] = None) -> int:
    year = year or local_today().year
    logger.info(f"scheduler_run: source={source} year={year}")
    with session_scope() as session:
        engine = TemplateSyncEngine(session, get_current_user_id())
        count = engine.sync_all(year)
    logger.info(f"scheduler_run: source={source} year={year} entries_added={count}")
    return count


class SchedulerManager:
    def __init__(self) -> None:
        settings = get_settings()
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _run_job(self, source: str = "manual") -> None:
        generate_current_year(source)

    def start(self) -> None:
        self._run_job("startup")

        # Generation is scoped to one year; the daily run picks up the new
        # year on January 1st.
        trigger = CronTrigger(hour=0, minute=30)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["daily_00:30"],
            id="generate_current_year",
            replace_existing=True,
            misfire_grace_time=3600,
        )

        self.scheduler.start()
        logger.info("Scheduler started with daily 00:30 template generation")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
