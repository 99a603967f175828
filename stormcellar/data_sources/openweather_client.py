"""Helpers for fetching the hourly forecast from the OpenWeatherMap One Call API."""
from __future__ import annotations

import functools
from typing import Iterable

import requests
from pydantic import ValidationError

from stormcellar.config import Settings
from stormcellar.data_sources.base import CallableForecastProvider, ForecastProvider
from stormcellar.errors import FetchError
from stormcellar.models import ForecastPayload
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="openweather_client")

session = requests.Session()

ONECALL_URL = "https://api.openweathermap.org/data/3.0/onecall"

# Only the current and hourly blocks are used.
DEFAULT_EXCLUDE = ("minutely", "daily", "alerts")

_BODY_SNIPPET_CHARS = 500


def fetch_forecast(
    latitude: float,
    longitude: float,
    api_key: str,
    *,
    exclude: Iterable[str] = DEFAULT_EXCLUDE,
    timeout: float = 10,
) -> ForecastPayload:
    """Fetch the current and hourly forecast for the given coordinates.

    Transport failures, non-2xx responses, non-JSON bodies and payloads of
    the wrong shape all raise FetchError.
    """
    params = {
        "lat": latitude,
        "lon": longitude,
        "appid": api_key,
        "exclude": ",".join(exclude),
    }

    logger.info("Fetching weather data...")
    try:
        resp = session.get(ONECALL_URL, params=params, timeout=timeout)
    except requests.exceptions.RequestException as exc:
        url = getattr(exc.request, "url", None) or ONECALL_URL
        logger.error(f"Error fetching weather data from {mask_url(url)}: {exc.__class__.__name__}")
        raise FetchError(f"Weather request failed: {exc.__class__.__name__}") from exc

    if not 200 <= resp.status_code < 300:
        body = (getattr(resp, "text", "") or "")[:_BODY_SNIPPET_CHARS]
        logger.error(f"API Response: {resp.status_code} {body}")
        raise FetchError(
            f"Weather API returned HTTP {resp.status_code}",
            status_code=resp.status_code,
            body=body,
        )

    try:
        data = resp.json()
    except ValueError as exc:
        raise FetchError("Weather API returned a non-JSON body", status_code=resp.status_code) from exc

    try:
        payload = ForecastPayload.model_validate(data)
    except ValidationError as exc:
        raise FetchError(f"Unexpected weather payload shape: {exc.error_count()} error(s)") from exc

    logger.info(f"Weather data fetched successfully ({len(payload.hourly)} hourly entries)")
    return payload


def build_forecast_provider(settings: Settings) -> ForecastProvider:
    """Bind the configured location and credential into a ForecastProvider."""
    return CallableForecastProvider(
        fetch=functools.partial(
            fetch_forecast,
            settings.lat,
            settings.lon,
            settings.openweather_api_key,
            timeout=settings.http_timeout_seconds,
        )
    )
