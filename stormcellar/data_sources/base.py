"""Interfaces and helpers for forecast data sources."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

from stormcellar.models import ForecastPayload


class ForecastProvider(Protocol):
    """Interface for anything that can return the forecast for the configured location."""

    def fetch_forecast(self) -> ForecastPayload:
        """Return the latest forecast, raising FetchError on failure."""
        ...


@dataclass
class CallableForecastProvider(ForecastProvider):
    """Wrap a zero-argument callable so backends and test fakes can be swapped."""

    fetch: Callable[[], ForecastPayload]

    def fetch_forecast(self) -> ForecastPayload:
        """Delegate to the configured callable."""
        return self.fetch()
