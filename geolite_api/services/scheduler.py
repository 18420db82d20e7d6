"""
Weekly refresh trigger backed by APScheduler
"""

import logging
import threading
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .refresh import RefreshCoordinator

logger = logging.getLogger("geolite.scheduler")

JOB_ID = "geolite_weekly_refresh"


class RefreshScheduler:
    """Fires RefreshCoordinator.refresh_now() on a cron schedule (UTC).

    Runs in its own thread pool, never on request-serving threads. Once the
    shared shutdown event is set, fired jobs return without refreshing.
    """

    def __init__(self, refresher: RefreshCoordinator, shutdown_event: threading.Event,
                 day_of_week: str = "sun", hour: int = 0, minute: int = 0, enabled: bool = True):
        self.refresher = refresher
        self.enabled = enabled
        self._shutdown = shutdown_event
        self._trigger = CronTrigger(day_of_week=day_of_week, hour=hour, minute=minute, timezone="UTC")
        self._scheduler = BackgroundScheduler(timezone="UTC")

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def _run_job(self):
        if self._shutdown.is_set():
            logger.info("Scheduled database update skipped: shutting down", extra={"component": "scheduler"})
            return
        try:
            self.refresher.refresh_now()
        except Exception:
            # Outcomes are logged by the coordinator; this only guards the schedule
            logger.exception("Scheduled database update crashed", extra={"component": "scheduler"})

    def start(self):
        if not self.enabled:
            logger.info("Scheduled database updates disabled", extra={"component": "scheduler"})
            return
        self._scheduler.add_job(
            self._run_job,
            self._trigger,
            id=JOB_ID,
            name="Weekly GeoLite2 database update",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Scheduled database updates started", extra={
            "component": "scheduler",
            "next_run": str(self.next_run_time()),
        })

    def next_run_time(self) -> Optional[datetime]:
        job = self._scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Stop firing new jobs and wait up to `timeout` for a running refresh to finish"""
        if not self._scheduler.running:
            return True
        self._scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped", extra={"component": "scheduler"})
        return self.refresher.wait_idle(timeout)
