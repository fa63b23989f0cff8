# printshop/worker/expiry_sweeper.py
"""
APScheduler worker that reclaims prepaid orders whose payment window lapsed.

- one interval job (EXPIRY_SWEEP_INTERVAL_SECONDS, default 30 s), first run at start-up
- max_instances=1 + coalesce: passes never overlap, missed runs collapse into one
- every cancel is a conditional write; losing a race to a manual action or
  a payment is expected and only logged at debug
- start/stop/get_status/run_once service functions

Settings (see printshop/core/config.py):
  EXPIRY_SWEEP_ENABLED=True
  EXPIRY_SWEEP_INTERVAL_SECONDS=30
  SCHEDULER_TIMEZONE=UTC
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MAX_INSTANCES, EVENT_JOB_MISSED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError

from printshop.core.config import Settings, get_settings
from printshop.core.exceptions import AlreadyTransitioned
from printshop.core.logging import get_logger
from printshop.services.lifecycle import OrderLifecycleEngine

logger = get_logger(__name__)

JOB_ID_EXPIRE_ORDERS = "expire_unpaid_orders"


@dataclass
class SweepReport:
    scanned: int = 0
    cancelled: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)


class ExpirySweeper:
    def __init__(self, engine: OrderLifecycleEngine, settings: Optional[Settings] = None):
        self.engine = engine
        self.settings = settings or get_settings()
        self._scheduler: Optional[BackgroundScheduler] = None
        self._last_run_at: Optional[datetime] = None
        self._last_report: Optional[SweepReport] = None

    # -------- one pass --------
    def run_once(self, now: Optional[datetime] = None) -> SweepReport:
        now = now or self.engine.clock()
        report = SweepReport()
        candidates = self.engine.store.select_overdue_ids(now)
        report.scanned = len(candidates)

        for order_id in candidates:
            try:
                self.engine.expire_order(order_id, now)
            except AlreadyTransitioned:
                logger.debug("expiry_skip_race", order_id=order_id)
                report.skipped.append(order_id)
            else:
                report.cancelled.append(order_id)

        if report.cancelled:
            logger.info("expiry_sweep_done", scanned=report.scanned, cancelled=len(report.cancelled))
        self._last_run_at = now
        self._last_report = report
        return report

    def _job(self) -> None:
        try:
            self.run_once()
        except SQLAlchemyError:
            logger.exception("expiry_sweep_db_error")

    # -------- scheduler --------
    def _on_scheduler_event(self, event) -> None:
        job_id = getattr(event, "job_id", "?")
        if event.code == EVENT_JOB_MISSED:
            logger.warning("scheduler_job_missed", job_id=job_id)
        elif event.code == EVENT_JOB_MAX_INSTANCES:
            logger.warning("scheduler_job_max_instances", job_id=job_id)
        elif event.code == EVENT_JOB_ERROR:
            logger.error("scheduler_job_error", job_id=job_id, error=str(getattr(event, "exception", "")))

    def start(self) -> None:
        if self.running:
            return
        tz = self.settings.SCHEDULER_TIMEZONE or "UTC"
        scheduler = BackgroundScheduler(timezone=tz, daemon=True)
        scheduler.add_listener(self._on_scheduler_event, EVENT_JOB_MISSED | EVENT_JOB_MAX_INSTANCES | EVENT_JOB_ERROR)
        interval = int(self.settings.EXPIRY_SWEEP_INTERVAL_SECONDS)
        scheduler.add_job(
            self._job,
            trigger=IntervalTrigger(seconds=interval),
            id=JOB_ID_EXPIRE_ORDERS,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=interval,
            next_run_time=datetime.now(timezone.utc),
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("expiry_sweeper_started", interval_seconds=interval, timezone=tz)

    def stop(self, wait: bool = True) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
        self._scheduler = None
        logger.info("expiry_sweeper_stopped")

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def get_status(self) -> Dict[str, Any]:
        job = self._scheduler.get_job(JOB_ID_EXPIRE_ORDERS) if self._scheduler is not None else None
        report = self._last_report
        return {
            "running": self.running,
            "job_id": JOB_ID_EXPIRE_ORDERS,
            "next_run_time": job.next_run_time.isoformat() if job is not None and job.next_run_time else None,
            "last_run_at": self._last_run_at.isoformat() if self._last_run_at else None,
            "last_cancelled": len(report.cancelled) if report else 0,
            "last_skipped": len(report.skipped) if report else 0,
        }


__all__ = ["ExpirySweeper", "SweepReport", "JOB_ID_EXPIRE_ORDERS"]
