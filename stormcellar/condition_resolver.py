"""Pick the weather condition code that best represents the current local hour."""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from stormcellar.errors import NoDataAvailable
from stormcellar.models import ForecastPayload, HourlyForecast
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="condition_resolver")


class ResolutionSource(str, Enum):
    """Which step of the fallback chain produced a condition code."""
    EXACT_HOUR = "exact_hour"
    RECENT_HOUR = "recent_hour"
    CURRENT = "current"


@dataclass(frozen=True)
class Resolution:
    """Selected condition code and where it came from."""
    code: int
    source: ResolutionSource
    hour_start: Optional[int] = None  # epoch seconds of the hourly entry used, if any


def hour_start_epoch(epoch_seconds: int | float, tz: dt.tzinfo) -> int:
    """Truncate an epoch timestamp to the start of its hour in `tz`."""
    local = dt.datetime.fromtimestamp(epoch_seconds, tz=tz)
    return int(local.replace(minute=0, second=0, microsecond=0).timestamp())


def _fmt_epoch(epoch_seconds: int, tz: dt.tzinfo) -> str:
    return dt.datetime.fromtimestamp(epoch_seconds, tz=tz).isoformat()


class ConditionResolver:
    """
    Select the condition code for a reference instant from a forecast payload.

    Fallback chain, each step tried only when the previous one yields no
    usable entry:

    1. the first hourly entry whose local hour equals the local hour of `now`
    2. the hourly entry with the latest `dt` at or before `now` (untruncated)
    3. the `current` block
    4. NoDataAvailable

    An hourly entry with an empty `weather` list is not usable; the chain
    falls through to the next step instead of failing.
    """

    def __init__(self, tz: dt.tzinfo | str) -> None:
        self.tz = ZoneInfo(tz) if isinstance(tz, str) else tz

    def select(self, forecast: ForecastPayload, now: dt.datetime) -> int:
        """Return the condition code for `now`, or raise NoDataAvailable."""
        return self.resolve(forecast, now).code

    def resolve(self, forecast: ForecastPayload, now: dt.datetime) -> Resolution:
        """Like select(), but also report which fallback step was used."""
        if now.tzinfo is None:
            raise ValueError("now must be a timezone-aware datetime")

        now_epoch = int(now.timestamp())
        now_hour_start = hour_start_epoch(now_epoch, self.tz)

        exact = self._exact_hour_entry(forecast, now_hour_start)
        if exact is not None and exact.condition_code is not None:
            logger.info("Found current hour weather data")
            return Resolution(exact.condition_code, ResolutionSource.EXACT_HOUR, exact.dt)

        if exact is None:
            logger.warning("Current hour data not available, using most recent hour")
        else:
            logger.warning(
                f"Current hour entry {_fmt_epoch(exact.dt, self.tz)} has no conditions, using most recent hour"
            )

        recent = self._most_recent_past_entry(forecast, now_epoch)
        if recent is not None and recent.condition_code is not None:
            logger.info(f"Using weather data from {_fmt_epoch(recent.dt, self.tz)}")
            return Resolution(recent.condition_code, ResolutionSource.RECENT_HOUR, recent.dt)

        current_code = forecast.current.condition_code if forecast.current is not None else None
        if current_code is not None:
            logger.warning("Using current weather data as final fallback")
            return Resolution(current_code, ResolutionSource.CURRENT)

        raise NoDataAvailable("No weather data available")

    def _exact_hour_entry(self, forecast: ForecastPayload, now_hour_start: int) -> Optional[HourlyForecast]:
        # Duplicates for the same hour are not validated; first in payload order wins.
        for entry in forecast.hourly:
            if hour_start_epoch(entry.dt, self.tz) == now_hour_start:
                return entry
        return None

    @staticmethod
    def _most_recent_past_entry(forecast: ForecastPayload, now_epoch: int) -> Optional[HourlyForecast]:
        # Compared against the raw instant, not the truncated hour.
        past = [entry for entry in forecast.hourly if entry.dt <= now_epoch]
        if not past:
            return None
        return max(past, key=lambda entry: entry.dt)
