"""
Structured logging and error tracking setup.

Log lines are structlog event names with key/value context; the request
ID bound by the request middleware is merged into every line.
"""

import logging
import sys
from typing import Any, Optional

import sentry_sdk
import structlog

from realaist.config import settings

# Headers that must never reach Sentry
SCRUBBED_HEADERS = frozenset({"authorization", "cookie", "x-paystack-signature"})


def configure_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """Route stdlib logging through structlog at the configured level."""
    level = (level or settings.log_level).upper()
    json_logs = settings.log_json if json_logs is None else json_logs

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def scrub_event(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any]:
    """Sentry before_send hook that blanks credentials and webhook signatures."""
    headers = event.get("request", {}).get("headers")
    if isinstance(headers, dict):
        for name in list(headers):
            if name.lower() in SCRUBBED_HEADERS:
                headers[name] = "[Filtered]"
    return event


def init_sentry() -> bool:
    """Start Sentry if a DSN is configured. Returns whether it was started."""
    if not settings.sentry_dsn:
        return False

    sample_rate = 0.1 if settings.is_production else 1.0
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=settings.app_version,
        traces_sample_rate=sample_rate,
        profiles_sample_rate=sample_rate,
        send_default_pii=False,
        before_send=scrub_event,
    )
    structlog.get_logger().info("sentry_initialized", environment=settings.environment)
    return True
