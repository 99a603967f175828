"""Process entrypoint: configure, connect, then publish on the hourly schedule."""
from __future__ import annotations

import datetime as dt
import os
import signal
from typing import Optional

from stormcellar import __version__
from stormcellar.condition_resolver import ConditionResolver
from stormcellar.config import Settings, load_settings
from stormcellar.data_sources import ForecastProvider, build_forecast_provider
from stormcellar.errors import ConfigurationError
from stormcellar.pipeline import WeatherPipeline
from stormcellar.publisher import MqttPublisher
from stormcellar.scheduler import HourlyScheduler
from utils.logging_utils import get_tagged_logger, setup_logging

logger = get_tagged_logger(__name__, tag="main")

JOB_NAME = "stormcellar"


def _log_banner() -> None:
    logger.info("=" * 40)
    logger.info(f"StormCellar v{__version__}")
    logger.info("=" * 40)
    logger.info("Starting StormCellar")


def _log_settings(settings: Settings) -> None:
    logger.info("Loaded Following Configuration:")
    logger.info(f"Lat: {settings.lat}")
    logger.info(f"Lon: {settings.lon}")
    logger.info(f"MQTT Broker Address: {settings.mqtt_broker}")
    logger.info(f"MQTT Port: {settings.mqtt_port}")
    logger.info(f"MQTT Topic: {settings.mqtt_topic}")
    logger.info(f"Timezone: {settings.tz}")
    logger.debug(f"Full settings: {settings.summary()}")


def _install_signal_handlers(scheduler: HourlyScheduler) -> None:
    def _shutdown(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down gracefully...")
        scheduler.stop()
        # Unwinds whatever is in flight; run_service() closes the broker connection.
        raise SystemExit(0)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)


def run_service(
    settings: Settings,
    *,
    provider: Optional[ForecastProvider] = None,
    publisher: Optional[MqttPublisher] = None,
    scheduler: Optional[HourlyScheduler] = None,
    install_signal_handlers: bool = True,
) -> int:
    """Wire the collaborators together and block on the hourly schedule."""
    zone = settings.zone

    def clock() -> dt.datetime:
        return dt.datetime.now(zone)

    provider = provider or build_forecast_provider(settings)
    publisher = publisher or MqttPublisher(settings.mqtt_broker, settings.mqtt_port, qos=settings.mqtt_qos)
    scheduler = scheduler or HourlyScheduler(clock)
    pipeline = WeatherPipeline(
        provider,
        ConditionResolver(zone),
        publisher,
        topic=settings.mqtt_topic,
        timezone_label=settings.tz,
        clock=clock,
    )

    if install_signal_handlers:
        _install_signal_handlers(scheduler)

    try:
        publisher.connect(wait_seconds=settings.mqtt_connect_wait_seconds)
        scheduler.run(pipeline.run_cycle, pipeline.run_cycle)
    finally:
        publisher.close()
    return 0


def main() -> int:
    """Run the service; returns the process exit code."""
    setup_logging(level=os.getenv("LOG_LEVEL", "INFO").upper(), job_name=JOB_NAME)
    _log_banner()

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        logger.error(str(exc))
        return 1

    _log_settings(settings)

    try:
        return run_service(settings)
    except Exception:
        logger.exception("Application failed to start")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
