"""One poll -> resolve -> publish cycle."""
from __future__ import annotations

import datetime as dt
from typing import Callable, Optional

from stormcellar.condition_resolver import ConditionResolver
from stormcellar.data_sources.base import ForecastProvider
from stormcellar.errors import FetchError, NoDataAvailable, PublishError
from stormcellar.publisher import MessagePublisher, build_message
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="pipeline")


class WeatherPipeline:
    """Fetch the forecast, resolve the current condition code and publish it.

    Errors from any step end the cycle and are logged; they never escape
    run_cycle(), so the scheduler keeps ticking.
    """

    def __init__(
        self,
        provider: ForecastProvider,
        resolver: ConditionResolver,
        publisher: MessagePublisher,
        *,
        topic: str,
        timezone_label: str,
        clock: Callable[[], dt.datetime],
    ) -> None:
        self.provider = provider
        self.resolver = resolver
        self.publisher = publisher
        self.topic = topic
        self.timezone_label = timezone_label
        self.clock = clock

    def run_cycle(self) -> Optional[int]:
        """Run one cycle; return the published code, or None if the cycle was abandoned."""
        try:
            forecast = self.provider.fetch_forecast()
        except FetchError as exc:
            logger.error(f"Error in fetch and publish: {exc}")
            return None

        try:
            resolution = self.resolver.resolve(forecast, self.clock())
        except NoDataAvailable as exc:
            logger.error(f"Error in fetch and publish: {exc}; skipping publish")
            return None

        message = build_message(resolution.code, self.timezone_label, self.clock())
        try:
            self.publisher.publish(self.topic, message)
        except PublishError as exc:
            logger.error(f"Error in fetch and publish: {exc}")
            return None

        logger.info(f"Published weather_id {resolution.code} ({resolution.source.value}) to {self.topic}")
        return resolution.code
