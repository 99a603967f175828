"""Service configuration pulled from environment variables via pydantic."""
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stormcellar.errors import ConfigurationError
from utils.logging_utils import get_tagged_logger, mask_secret

logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the StormCellar service.

    Field names match the deployment's environment variables
    (OPENWEATHER_API_KEY, LAT, LON, MQTT_BROKER, MQTT_PORT, MQTT_TOPIC, TZ, ...).
    """
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    openweather_api_key: str | None = None
    lat: float = 40.7484
    lon: float = -73.9967
    mqtt_broker: str = "localhost"
    mqtt_port: int = 1883
    mqtt_topic: str = "weather/data"
    mqtt_qos: int = 0
    mqtt_connect_wait_seconds: float = 2.0
    tz: str = "America/New_York"
    http_timeout_seconds: float = 10.0

    @field_validator(
        "lat", "lon", "mqtt_port", "mqtt_qos", "mqtt_connect_wait_seconds", "http_timeout_seconds",
        mode="before",
    )
    @classmethod
    def default_on_unparseable(cls, v, info: ValidationInfo):
        """Fall back to the field default for blank or non-numeric values."""
        default = cls.model_fields[info.field_name].default
        if v is None or (isinstance(v, str) and not v.strip()):
            return default
        caster = int if isinstance(default, int) else float
        try:
            return caster(v)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid {info.field_name.upper()}={v!r}; using default {default}")
            return default

    @field_validator("openweather_api_key", mode="after")
    @classmethod
    def blank_key_is_missing(cls, v: str | None) -> str | None:
        """Treat an empty API key the same as an absent one."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("mqtt_qos", mode="after")
    @classmethod
    def check_qos(cls, v: int) -> int:
        if v not in (0, 1, 2):
            raise ValueError("MQTT_QOS must be 0, 1 or 2")
        return v

    @field_validator("http_timeout_seconds", "mqtt_connect_wait_seconds", mode="after")
    @classmethod
    def check_positive_seconds(cls, v: float, info: ValidationInfo) -> float:
        if v <= 0:
            raise ValueError(f"{info.field_name.upper()} must be greater than 0")
        return v

    @field_validator("tz", mode="after")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        """Reject timezone names the tz database does not know."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone '{v}'") from exc
        return v

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.tz)

    def summary(self) -> dict:
        """Loggable view of the settings with the API key masked."""
        data = self.model_dump()
        data["openweather_api_key"] = mask_secret(self.openweather_api_key)
        return data


def load_settings(**overrides) -> Settings:
    """Build and validate settings once at startup.

    Raises ConfigurationError when a value is invalid or OPENWEATHER_API_KEY is missing.
    """
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    if not settings.openweather_api_key:
        raise ConfigurationError("OPENWEATHER_API_KEY is required")
    return settings


if __name__ == "__main__":
    import json
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {json.dumps(Settings().summary(), indent=4)}")
