"""
Logging setup shared by the service and its tests.

The entrypoint calls ``setup_logging(level=..., job_name="stormcellar")``
once; modules take ``logger = get_tagged_logger(__name__, tag="...")``.
Every line carries the job name, a component tag and the logger name.
INFO and below go to stdout, WARNING and above to stderr.
"""

from __future__ import annotations

import logging
import logging.config
from typing import Any, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

DEFAULT_LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(job_name)s | %(tag)s | %(name)s | %(message)s"
)
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Query parameter names containing any of these are masked by mask_url().
SENSITIVE_PARAM_TOKENS = ("appid", "key", "pass", "pwd", "secret", "token")

_CONFIGURED: bool = False


class MaxLevelFilter(logging.Filter):
    """Pass records at or below `max_level` (keeps warnings off stdout)."""

    def __init__(self, max_level: int) -> None:
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        return record.levelno <= self.max_level


class EnsureTagFilter(logging.Filter):
    """Give untagged records (requests, urllib3, paho) the last segment of their logger name."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "tag"):
            record.tag = record.name.rsplit(".", 1)[-1] if record.name else "-"
        return True


class JobNameFilter(logging.Filter):
    def __init__(self, job_name: Optional[str] = None) -> None:
        super().__init__()
        self._job_name = job_name or "-"

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "job_name"):
            record.job_name = self._job_name
        return True


def build_logging_config(
    *,
    level: str | int = "INFO",
    log_format: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    job_name: Optional[str] = None,
) -> Mapping[str, Any]:
    """Return a dictConfig mapping with the stdout/stderr handler split."""
    common_filters = ["ensure_tag", "job_name"]
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "ensure_tag": {"()": EnsureTagFilter},
            "job_name": {"()": JobNameFilter, "job_name": job_name},
            "stdout_max_info": {"()": MaxLevelFilter, "max_level": logging.INFO},
        },
        "formatters": {
            "standard": {"format": log_format, "datefmt": date_format},
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "filters": common_filters + ["stdout_max_info"],
                "level": "DEBUG",
                "stream": "ext://sys.stdout",
            },
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "filters": common_filters,
                "level": "WARNING",
                "stream": "ext://sys.stderr",
            },
        },
        "root": {"level": level, "handlers": ["stdout", "stderr"]},
    }


def setup_logging(
    *,
    level: str | int = "INFO",
    log_format: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    job_name: Optional[str] = None,
    override_existing: bool = False,
) -> None:
    """Apply the logging config once per process; later calls need `override_existing=True`."""
    global _CONFIGURED

    if _CONFIGURED and not override_existing:
        return

    logging.config.dictConfig(
        build_logging_config(level=level, log_format=log_format, date_format=date_format, job_name=job_name)
    )
    _CONFIGURED = True


def get_tagged_logger(name: str, *, tag: Optional[str] = None) -> logging.LoggerAdapter:
    """
    Return a LoggerAdapter whose records carry `tag`.

    The tag defaults to the last segment of `name`, so
    ``get_tagged_logger("stormcellar.publisher")`` is tagged "publisher".
    """
    if tag is None:
        tag = name.rsplit(".", 1)[-1]
    return logging.LoggerAdapter(logging.getLogger(name), {"tag": tag})


def mask_secret(value: Optional[str], *, visible: int = 4) -> str:
    """Hide all but the last `visible` characters, e.g. "abcdef123456" -> "********3456"."""
    if not value:
        return "<unset>"
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]


def mask_url(url: str) -> str:
    """Mask userinfo and sensitive query values (``appid=...``) in a URL before logging it."""
    try:
        parsed = urlparse(url)
        port = parsed.port
    except ValueError:
        return url

    query = urlencode([
        (key, "***" if any(token in key.lower() for token in SENSITIVE_PARAM_TOKENS) else value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
    ])

    netloc = ""
    if parsed.username:
        netloc = "***:***@" if parsed.password is not None else "***@"
    netloc += parsed.hostname or ""
    if port:
        netloc += f":{port}"

    return urlunparse((parsed.scheme, netloc, parsed.path, parsed.params, query, parsed.fragment))
