"""Structured logging configuration using structlog."""

import logging

import structlog

from eumatter.config import settings


def _render_line(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> str:
    """
    Render one event per line.

    Produces output like: WARNING  [cache.py:42] cache namespace=persistent cache_event=corrupt
    """
    level = event_dict.pop("level", method_name).upper()
    event = event_dict.pop("event", "")
    filename = event_dict.pop("filename", None)
    lineno = event_dict.pop("lineno", None)

    parts = [f"{level:<8}"]
    if filename:
        parts.append(f"[{filename}:{lineno}]")
    parts.append(str(event))
    parts.extend(f"{k}={v}" for k, v in event_dict.items())
    return " ".join(parts)


def setup_logging() -> None:
    """
    Configure structlog for the client.

    - Context variables bound with structlog.contextvars are merged into every event
    - DEBUG enables debug events and the calling file/line
    - local: one key=value line per event; elsewhere: JSON with an ISO timestamp
    """
    log_level = logging.DEBUG if settings.debug else logging.INFO

    # httpx logs every request at INFO; the API client logs its own failures.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
    ]
    if settings.debug:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                {
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                },
                additional_ignores=["eumatter.core.cache.logging"],
            )
        )
    if settings.environment == "local":
        processors.append(_render_line)
    else:
        processors.extend(
            [
                structlog.processors.TimeStamper(fmt="iso", utc=True),
                structlog.processors.JSONRenderer(),
            ]
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,  # Allow reconfiguration
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """
    Get a logger instance.

    Args:
        name: Optional logger name, typically __name__ of the module.

    Returns:
        A bound structlog logger instance.
    """
    return structlog.get_logger(name)
