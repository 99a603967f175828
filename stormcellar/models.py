"""Pydantic models for the parts of the One Call forecast payload we consume.

Parsing is lenient below the top level: a malformed condition, hourly entry
or current block becomes unusable on its own instead of rejecting the
whole payload, so the resolver can fall through to the next candidate.
"""

from collections.abc import Mapping
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="models")


class WeatherCondition(BaseModel):
    """One entry of a `weather` list; `id` is the provider's condition code."""
    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    main: str | None = None
    description: str | None = None
    icon: str | None = None

    @field_validator("*", mode="wrap")
    @classmethod
    def invalid_field_is_none(cls, v, handler):
        try:
            return handler(v)
        except ValidationError:
            return None


class _ConditionBlock(BaseModel):
    model_config = ConfigDict(extra="ignore")

    weather: List[WeatherCondition] = Field(default_factory=list)

    @field_validator("weather", mode="before")
    @classmethod
    def coerce_weather_list(cls, v):
        if v is None:
            return []
        if not isinstance(v, list):
            logger.warning(f"Ignoring non-list weather block: {v!r}")
            return []
        # Non-object items keep their position but carry no condition code.
        return [item if isinstance(item, Mapping) else {} for item in v]

    @property
    def condition_code(self) -> Optional[int]:
        """First condition id, or None when the block carries no usable condition."""
        if not self.weather:
            return None
        return self.weather[0].id


class HourlyForecast(_ConditionBlock):
    """Forecast for the hour starting at `dt` (epoch seconds)."""
    dt: int


class CurrentConditions(_ConditionBlock):
    """Provider's own best estimate of conditions right now."""
    dt: int | None = None

    @field_validator("dt", mode="wrap")
    @classmethod
    def invalid_dt_is_none(cls, v, handler):
        try:
            return handler(v)
        except ValidationError:
            return None


class ForecastPayload(BaseModel):
    """Shape-checked One Call response restricted to the current and hourly blocks."""
    model_config = ConfigDict(extra="ignore")

    lat: float | None = None
    lon: float | None = None
    timezone: str | None = None
    timezone_offset: int | None = None
    current: CurrentConditions | None = None
    hourly: List[HourlyForecast] = Field(default_factory=list)

    @field_validator("lat", "lon", "timezone", "timezone_offset", mode="wrap")
    @classmethod
    def invalid_info_is_none(cls, v, handler):
        try:
            return handler(v)
        except ValidationError:
            return None

    @field_validator("current", mode="wrap")
    @classmethod
    def invalid_current_is_none(cls, v, handler):
        try:
            return handler(v)
        except ValidationError as exc:
            logger.warning(f"Ignoring malformed current block ({exc.error_count()} error(s))")
            return None

    @field_validator("hourly", mode="before")
    @classmethod
    def drop_malformed_hours(cls, v):
        if v is None:
            return []
        if not isinstance(v, list):
            return v
        hours = []
        for item in v:
            try:
                hours.append(HourlyForecast.model_validate(item))
            except ValidationError as exc:
                logger.warning(f"Dropping malformed hourly entry ({exc.error_count()} error(s)): {item!r}")
        return hours
