"""Logging settings for the geolocation service.

Configures structlog for structured JSON logs and routes Django, Celery and
library loggers through the same renderer.
"""

import re
import typing as t

import structlog
from decouple import config

from .base import DEBUG, VERSION

# Observability toggle
ENABLE_OBSERVABILITY = config("ENABLE_OBSERVABILITY", default=True, cast=bool)

# Service identification
SERVICE_NAME = config("SERVICE_NAME", default="geolocation")
SERVICE_VERSION = VERSION
DEPLOYMENT_ENVIRONMENT = config("DEPLOYMENT_ENVIRONMENT", default="development" if DEBUG else "production")

LOG_LEVEL = config("LOG_LEVEL", default="DEBUG" if DEBUG else "INFO")

_LICENSE_KEY_IN_URL = re.compile(r"(license_key=)[^&\s]+")


# Structlog configuration
def scrub_secrets(logger: t.Any, method_name: str, event_dict: dict[str, t.Any]) -> dict[str, t.Any]:
    """Scrub secrets from log events.

    Redacts sensitive fields and MaxMind license keys embedded in URLs.
    """
    sensitive_keys = [
        "password",
        "secret",
        "api_key",
        "license",
        "token",
        "authorization",
        "cookie",
    ]

    def _scrub_dict(d: t.Any) -> dict[str, t.Any]:
        if not isinstance(d, dict):
            return t.cast(dict[str, t.Any], d)

        for key in list(d.keys()):
            if any(sensitive in key.lower() for sensitive in sensitive_keys):
                d[key] = "[REDACTED]"
            elif isinstance(d[key], dict):
                d[key] = _scrub_dict(d[key])
            elif isinstance(d[key], str):
                d[key] = _LICENSE_KEY_IN_URL.sub(r"\1[REDACTED]", d[key])

        return t.cast(dict[str, t.Any], d)

    return _scrub_dict(event_dict)


def add_app_context(logger: t.Any, method_name: str, event_dict: dict[str, t.Any]) -> dict[str, t.Any]:
    """Add application-level context to all log events."""
    event_dict["service"] = SERVICE_NAME
    event_dict["version"] = SERVICE_VERSION
    event_dict["environment"] = DEPLOYMENT_ENVIRONMENT
    return event_dict


# Structlog processors for direct use
STRUCTLOG_PROCESSORS = [
    structlog.contextvars.merge_contextvars,  # Merge context variables
    structlog.stdlib.add_logger_name,  # Add logger name
    structlog.stdlib.add_log_level,  # Add log level
    structlog.stdlib.PositionalArgumentsFormatter(),  # Format positional args
    structlog.processors.TimeStamper(fmt="iso"),  # Add ISO timestamp
    structlog.processors.StackInfoRenderer(),  # Render stack info
    structlog.processors.format_exc_info,  # Format exceptions
    structlog.processors.UnicodeDecoder(),  # Decode unicode
    add_app_context,  # Add service/version/environment
    scrub_secrets,  # Scrub secrets before serialization
    structlog.processors.JSONRenderer(),  # Render as JSON
]

# Processors for foreign loggers (Django, Celery, etc.)
FOREIGN_PRE_CHAIN = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    add_app_context,
    scrub_secrets,
]

structlog.configure(
    processors=STRUCTLOG_PROCESSORS,  # type: ignore[arg-type]
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "()": structlog.stdlib.ProcessorFormatter,
            "processor": structlog.processors.JSONRenderer(),
            "foreign_pre_chain": FOREIGN_PRE_CHAIN,
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "celery": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "urllib3": {
            "handlers": ["console"],
            "level": "WARNING",  # urllib3 logs full URLs, license key included
            "propagate": False,
        },
    },
}
