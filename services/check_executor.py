"""
Check Executor - runs availability lookups for a batch of titles

Titles are processed strictly one after another with a pause between
JustWatch calls. Each title's log rows and last_checked update are committed
before moving on, so a run cut short keeps everything it finished.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from models import AvailabilityLog, Service, db
from services.justwatch import RateLimitError, extract_service_slugs

logger = logging.getLogger(__name__)


def utc_naive(value: datetime) -> datetime:
    """Convert to a naive UTC datetime for storage"""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class CheckExecutor:
    """Checks titles against JustWatch and records availability"""

    def __init__(self, client, config):
        """
        Args:
            client: JustWatchClient (or anything with get_title_offers(title))
            config: CheckConfig with pacing and backoff delays
        """
        self.client = client
        self.config = config

    def process_batch(self, titles: Iterable, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Check each title in order.

        Args:
            titles: Titles to check, in the order they should be processed
            now: Run timestamp used for last_checked and the log check date

        Returns:
            Dict with checked, errors and skipped counts

        Raises:
            SQLAlchemyError: if writing results fails (the run is aborted)
        """
        if now is None:
            now = datetime.now(timezone.utc)
        checked_at = utc_naive(now)

        services = Service.query.order_by(Service.id).all()
        stats = {"checked": 0, "errors": 0, "skipped": 0}

        for title in titles:
            if not title.is_resolved:
                logger.warning(f"Skipping {title.name} (id={title.id}) - no JustWatch ID")
                stats["skipped"] += 1
                continue

            previous = title.last_checked
            try:
                offers = self.client.get_title_offers(title)
            except RateLimitError as e:
                stats["errors"] += 1
                logger.warning(
                    f"Rate limited checking {title.name}: {e}. "
                    f"Backing off for {self.config.rate_limit_backoff_ms}ms"
                )
                time.sleep(self.config.rate_limit_backoff_seconds)
                continue
            except Exception as e:
                stats["errors"] += 1
                logger.error(f"Error checking {title.name} (id={title.id}): {e}")
                time.sleep(self.config.api_delay_seconds)
                continue

            available = extract_service_slugs(offers)
            self._record_check(title, services, available, checked_at)
            stats["checked"] += 1
            logger.info(
                f"Checked {title.name}: "
                f"{', '.join(sorted(available)) or 'not streaming'} "
                f"(last checked: {previous.isoformat() if previous else 'never'})"
            )

            time.sleep(self.config.api_delay_seconds)

        return stats

    @staticmethod
    def _record_check(title, services, available_slugs, checked_at: datetime):
        """Write one log row per known service and stamp the title, in one commit"""
        try:
            for service in services:
                AvailabilityLog.record(title.id, service.id, checked_at.date(), service.slug in available_slugs)
            title.mark_checked(checked_at)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
