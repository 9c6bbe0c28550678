"""
Background scheduler for periodic availability checks
"""

import logging
import math
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from error_handling import RunInProgressError
from models import Title
from services.check_config import CheckConfig
from services.check_executor import CheckExecutor
from services.justwatch import JustWatchClient
from services.staleness import count_never_checked, select_stale, staleness_cutoff

logger = logging.getLogger(__name__)


def compute_batch_size(total_titles: int, tick_interval_minutes: int, check_frequency_days: int) -> int:
    """
    Titles to check per tick so the whole catalog is covered every period.

    With a 15 minute tick and a 7 day target there are 672 runs per period,
    so 6720 titles need 10 per run. Never less than 1.
    """
    runs_per_period = (check_frequency_days * 24 * 60) / tick_interval_minutes
    return max(1, math.ceil(total_titles / runs_per_period))


def plan_batch_size(steady_state_batch: int, never_checked: int, reserve_cap: int) -> int:
    """
    Total titles to request this tick.

    Up to ``reserve_cap`` slots go to never-checked titles on top of the
    steady-state share, so a bulk import doesn't wait a whole cycle. The
    selector orders never-checked titles first, so one selection of this
    size yields both groups.
    """
    reserved = min(reserve_cap, never_checked)
    remainder = max(0, steady_state_batch - reserved)
    return reserved + remainder


class AvailabilityScheduler:
    """Runs a staleness-driven availability check every tick"""

    def __init__(self, app, config: Optional[CheckConfig] = None, client=None):
        """
        Initialize scheduler

        Args:
            app: Flask app instance
            config: CheckConfig (defaults used when omitted)
            client: JustWatch client (a JustWatchClient is created when omitted)
        """
        self.app = app
        self.config = config or CheckConfig()
        self.client = client or JustWatchClient(timeout=self.config.request_timeout_seconds)
        self.executor = CheckExecutor(self.client, self.config)
        self.running = False
        self.thread = None
        self.last_run = None
        self.next_tick_at = None
        # One run at a time, whether from the tick or a manual trigger
        self._run_lock = threading.Lock()

    @property
    def in_progress(self) -> bool:
        return self._run_lock.locked()

    def start(self):
        """Start the scheduler"""
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.running = True
        self.thread = threading.Thread(target=self._run, daemon=True)
        self.thread.start()
        logger.info(f"Availability scheduler started (tick: {self.config.tick_interval_minutes} minutes)")

    def stop(self):
        """Stop the scheduler"""
        self.running = False
        if self.thread:
            self.thread.join(timeout=5)
        self.next_tick_at = None
        logger.info("Availability scheduler stopped")

    def get_status(self) -> dict:
        return {
            "running": self.running,
            "in_progress": self.in_progress,
            "config": self.config.to_dict(),
            "next_tick_at": self.next_tick_at.isoformat() if self.next_tick_at else None,
            "last_run": self.last_run,
        }

    def _sleep_until(self, deadline: float):
        """Sleep in small steps until the monotonic deadline, or until stopped"""
        while self.running and time.monotonic() < deadline:
            time.sleep(min(1.0, max(0.0, deadline - time.monotonic())))

    def _run(self):
        """Main scheduler loop - one check run per tick"""
        # Let the app finish starting up before the first run
        self._sleep_until(time.monotonic() + self.config.startup_delay_seconds)

        while self.running:
            tick_started = time.monotonic()
            try:
                self.run_once()
            except RunInProgressError:
                logger.warning("Skipping tick: a check run is already in progress")
            except Exception as e:
                logger.error(f"Error in availability scheduler: {e}", exc_info=True)
                try:
                    from models import db

                    with self.app.app_context():
                        db.session.rollback()
                except Exception:
                    logger.debug("Rollback after failed run also failed", exc_info=True)

            deadline = tick_started + self.config.tick_interval_seconds
            self.next_tick_at = datetime.now(timezone.utc) + timedelta(
                seconds=max(0.0, deadline - time.monotonic())
            )
            self._sleep_until(deadline)

    def run_once(self, now: Optional[datetime] = None) -> dict:
        """
        Run exactly one check cycle synchronously.

        Used by the background loop on every tick and by the manual trigger.

        Returns:
            Summary dict with batch sizing and checked/errors/skipped counts

        Raises:
            RunInProgressError: if another run hasn't finished yet
        """
        if not self._run_lock.acquire(blocking=False):
            raise RunInProgressError("An availability check run is already in progress")

        try:
            with self.app.app_context():
                return self._check_catalog(now)
        finally:
            self._run_lock.release()

    def run_backfill(self, limit: int = 100) -> dict:
        """
        Backfill missing full paths while holding the run lock.

        Backfill searches go through the same rate-limited client as checks,
        so they never overlap a check run.

        Raises:
            RunInProgressError: if a check run (or another backfill) is in flight
        """
        from services.backfill import backfill_full_paths

        if not self._run_lock.acquire(blocking=False):
            raise RunInProgressError("An availability check run is in progress; try the backfill later")

        try:
            with self.app.app_context():
                return backfill_full_paths(self.client, delay_seconds=self.config.api_delay_seconds, limit=limit)
        finally:
            self._run_lock.release()

    def _check_catalog(self, now: Optional[datetime]) -> dict:
        if now is None:
            now = datetime.now(timezone.utc)
        started_at = datetime.now(timezone.utc)

        # Only resolved titles are eligible; batch size still scales on the whole catalog
        catalog = Title.checkable().all()
        total_titles = Title.query.count()
        unresolved = total_titles - len(catalog)
        batch_size = compute_batch_size(
            total_titles, self.config.tick_interval_minutes, self.config.check_frequency_days
        )
        never_checked = count_never_checked(catalog)
        requested = plan_batch_size(batch_size, never_checked, self.config.never_checked_reserve)

        titles = select_stale(catalog, requested, self.config.check_frequency_days, now)
        logger.info(
            f"Checking {len(titles)} of {total_titles} titles "
            f"(batch size: {batch_size}, never checked: {never_checked}, "
            f"requested: {requested}, unresolved: {unresolved})"
        )

        stats = self.executor.process_batch(titles, now)

        logger.info(
            f"Availability check complete: {stats['checked']} checked, "
            f"{stats['errors']} errors, {stats['skipped']} skipped"
        )
        logger.info(
            "Next run will check titles not updated since: "
            f"{staleness_cutoff(self.config.check_frequency_days, now).isoformat()}"
        )

        summary = {
            "started_at": started_at.isoformat(),
            "finished_at": datetime.now(timezone.utc).isoformat(),
            "total_titles": total_titles,
            "batch_size": batch_size,
            "never_checked": never_checked,
            "unresolved": unresolved,
            "requested": requested,
            "selected": len(titles),
            **stats,
        }
        self.last_run = summary
        return summary
