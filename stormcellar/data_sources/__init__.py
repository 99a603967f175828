"""Forecast providers the pipeline can poll."""

from .base import CallableForecastProvider, ForecastProvider
from .openweather_client import ONECALL_URL, build_forecast_provider, fetch_forecast

__all__ = [
    "ForecastProvider",
    "CallableForecastProvider",
    "ONECALL_URL",
    "build_forecast_provider",
    "fetch_forecast",
]
