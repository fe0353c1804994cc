from __future__ import annotations

import logging

import structlog


def configure_logging(log_level: str = "INFO", json_logs: bool = True) -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
    ]
    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str):
    """Return a structlog logger that tags every event with ``logger=name``.

    Logging is configured with defaults on first use. The logger binds to the
    configuration current at call time, so components built after
    ``configure_logging`` pick up the ``telemetry`` settings.
    """
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger().bind(logger=name)
