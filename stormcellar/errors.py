"""Error taxonomy for a poll -> resolve -> publish cycle and for startup."""


class StormCellarError(Exception):
    """Base class for errors raised by the service."""


class FetchError(StormCellarError):
    """The forecast provider could not be reached or returned an unusable response."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class NoDataAvailable(StormCellarError):
    """No usable condition code exists anywhere in the forecast payload."""


class PublishError(StormCellarError):
    """The MQTT broker rejected the message or it was not delivered in time."""


class ConfigurationError(StormCellarError):
    """Startup configuration is missing or invalid. Fatal."""
