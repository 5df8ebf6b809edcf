"""structlog and stdlib logging setup.

Configured key entries and the internal secret are scrubbed from every event
before rendering, whichever logger produced it.
"""
import logging
import sys
from typing import Any

import structlog

from token_vault.config import settings

REDACTED = "***REDACTED***"


def _secret_literals() -> list[str]:
    values = list(settings.token_key_entries().values())
    if settings.INTERNAL_CRON_SECRET:
        values.append(settings.INTERNAL_CRON_SECRET)
    # Tiny values would over-redact
    return [v for v in values if len(v) >= 8]


def redact_secrets(_logger, _method, event_dict: dict[str, Any]) -> dict[str, Any]:
    secrets = _secret_literals()
    if not secrets:
        return event_dict
    for key, value in event_dict.items():
        if isinstance(value, str):
            for secret in secrets:
                if secret in value:
                    value = value.replace(secret, REDACTED)
            event_dict[key] = value
    return event_dict


def configure_logging(level: str | None = None) -> None:
    level_no = logging.getLevelName((level or settings.LOG_LEVEL).upper())
    if not isinstance(level_no, int):
        level_no = logging.INFO

    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
    ]
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.APP_ENV == "production"
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[*shared, structlog.processors.format_exc_info, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Stdlib loggers (services, tasks, database) go through the same processors
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    ))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level_no)
