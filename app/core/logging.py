import logging
import sys

import structlog

from app.core.config import get_settings

# Keys that may carry service account material
CREDENTIAL_KEYS = frozenset({"service_account_json", "private_key", "credentials"})


def credential_redactor(logger, method_name, event_dict):
    """Mask credential material at the top level and inside error `details`."""
    details = event_dict.get("details")
    for target in (event_dict, details if isinstance(details, dict) else {}):
        for key in CREDENTIAL_KEYS.intersection(target):
            target[key] = "[REDACTED]"
    return event_dict


def setup_logging():
    settings = get_settings()
    renderer = structlog.dev.ConsoleRenderer() if settings.DEBUG else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            credential_redactor,
            renderer,
        ],
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # uvicorn and the google clients log through stdlib logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
    )
