"""
Availability check configuration

One immutable ``CheckConfig`` is built at startup and injected into the
scheduler and executor. When an external platform cron also drives the
manual trigger, ``verify_tick_interval`` makes sure both agree on the cadence.
"""

import logging
import os
import re
from dataclasses import asdict, dataclass
from typing import Mapping, Optional

from marshmallow import ValidationError

from schemas import CheckConfigSchema

logger = logging.getLogger(__name__)

# Defaults
DEFAULT_TICK_INTERVAL_MINUTES = 15
DEFAULT_CHECK_FREQUENCY_DAYS = 7
DEFAULT_API_DELAY_MS = 500
DEFAULT_RATE_LIMIT_BACKOFF_MS = 5000
DEFAULT_NEVER_CHECKED_RESERVE = 20
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30
DEFAULT_STARTUP_DELAY_SECONDS = 30

_EVERY_N_MINUTES = re.compile(r"^\*/(\d+)$")


class ConfigurationError(Exception):
    """Raised when check configuration is invalid or inconsistent"""

    pass


@dataclass(frozen=True)
class CheckConfig:
    """Settings for the availability check scheduler"""

    tick_interval_minutes: int = DEFAULT_TICK_INTERVAL_MINUTES
    check_frequency_days: int = DEFAULT_CHECK_FREQUENCY_DAYS
    api_delay_ms: int = DEFAULT_API_DELAY_MS
    rate_limit_backoff_ms: int = DEFAULT_RATE_LIMIT_BACKOFF_MS
    never_checked_reserve: int = DEFAULT_NEVER_CHECKED_RESERVE
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS
    startup_delay_seconds: int = DEFAULT_STARTUP_DELAY_SECONDS

    @property
    def api_delay_seconds(self) -> float:
        return self.api_delay_ms / 1000.0

    @property
    def rate_limit_backoff_seconds(self) -> float:
        return self.rate_limit_backoff_ms / 1000.0

    @property
    def tick_interval_seconds(self) -> int:
        return self.tick_interval_minutes * 60

    def to_dict(self) -> dict:
        return asdict(self)


def load_check_config(environ: Optional[Mapping[str, str]] = None) -> CheckConfig:
    """
    Build a CheckConfig from environment variables.

    Unset variables fall back to the defaults above.

    Raises:
        ConfigurationError: if any variable fails validation
    """
    if environ is None:
        environ = os.environ

    try:
        values = CheckConfigSchema().load(dict(environ))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid check configuration: {e.messages}") from e

    config = CheckConfig(**values)
    if config.rate_limit_backoff_ms < config.api_delay_ms:
        raise ConfigurationError("Rate limit backoff must be at least the API delay")
    return config


def parse_cron_interval(expression: str) -> Optional[int]:
    """
    Return the interval in minutes described by a cron expression.

    Supported forms:
        "*/N * * * *"  every N minutes
        "* * * * *"    every minute
        "0 * * * *"    every hour
        "0 */N * * *"  every N hours

    Returns None for anything else.
    """
    parts = expression.strip().split()
    if len(parts) != 5:
        return None

    minute, hour = parts[0], parts[1]

    match = _EVERY_N_MINUTES.match(minute)
    if match:
        return int(match.group(1))

    if minute == "*" and hour == "*":
        return 1

    if minute == "0":
        match = _EVERY_N_MINUTES.match(hour)
        if match:
            return int(match.group(1)) * 60
        if hour == "*":
            return 60

    return None


def verify_tick_interval(config: CheckConfig, cron_expression: str) -> int:
    """
    Check that the platform's registered schedule matches the configured tick.

    Returns:
        The parsed interval in minutes

    Raises:
        ConfigurationError: if the expression can't be parsed or doesn't match
    """
    interval = parse_cron_interval(cron_expression)
    if interval is None:
        raise ConfigurationError(f'Could not parse cron expression: "{cron_expression}"')

    if interval != config.tick_interval_minutes:
        raise ConfigurationError(
            f'Schedule mismatch: cron "{cron_expression}" runs every {interval} minutes '
            f"but CHECK_TICK_INTERVAL_MINUTES is {config.tick_interval_minutes}"
        )

    logger.info(f'Check schedule validated: "{cron_expression}" = {interval} minutes')
    return interval
