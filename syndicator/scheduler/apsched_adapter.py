"""APScheduler wrapper triggering per-site pipeline runs."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..config import ScheduleConfig, ScheduleType
from ..models import Site


def site_job_id(site_id: str) -> str:
    return f"site::{site_id}"


class APSchedulerAdapter:
    """Schedule pipeline runs for cron-enabled sites; a trigger only, no workflow state."""

    def __init__(
        self,
        schedule: ScheduleConfig,
        scheduler: BackgroundScheduler | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.schedule = schedule
        self.scheduler = scheduler or BackgroundScheduler(timezone=timezone.utc)
        self.logger = logger or structlog.get_logger("syndicator.scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_site(self, site: Site, callback: Callable[[str], object]) -> bool:
        """Register ``callback(site_id)``; sites without ``cron_enabled`` are skipped."""

        if not site.cron_enabled:
            self.logger.info("site_not_scheduled", site_id=site.id, reason="cron_disabled")
            return False
        self.scheduler.add_job(
            callback,
            trigger=self.build_trigger(),
            id=site_job_id(site.id),
            args=[site.id],
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info("job_scheduled", site_id=site.id, schedule=self.schedule.model_dump(mode="json"))
        return True

    def remove_site(self, site_id: str) -> None:
        try:
            self.scheduler.remove_job(site_job_id(site_id))
        except Exception:  # noqa: BLE001
            self.logger.warning("job_remove_failed", site_id=site_id)

    def build_trigger(self):
        schedule = self.schedule
        if schedule.type is ScheduleType.CRON:
            return CronTrigger.from_crontab(str(schedule.value), timezone=timezone.utc)
        if schedule.type is ScheduleType.INTERVAL:
            if isinstance(schedule.value, (int, float)):
                return IntervalTrigger(seconds=float(schedule.value))
            if isinstance(schedule.value, dict):
                return IntervalTrigger(**schedule.value)
            raise ValueError("Interval schedule requires seconds or kwargs dict")
        if schedule.type is ScheduleType.ONCE:
            if schedule.value:
                run_date = datetime.fromisoformat(str(schedule.value))
            else:
                run_date = datetime.now(timezone.utc)
            return DateTrigger(run_date=run_date)
        raise ValueError(f"Unknown schedule type: {schedule.type}")


__all__ = ["APSchedulerAdapter", "site_job_id"]
