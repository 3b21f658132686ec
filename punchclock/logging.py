"""
Structured logging configuration using structlog.

Log line layout:
{
    "ts": "2026-03-02T11:04:12.481Z",
    "level": "warning",
    "service": "punchclock",
    "correlation_id": "uuid-v4",
    "event": "clock.host_fallback",
    "module": "source",
    "func_name": "_refresh",
    "lineno": 97,
    ...additional context...
}
"""
import structlog
import logging
from typing import Any, Callable


def service_name_adder(service_name: str) -> Callable[[Any, str, dict], dict]:
    """Build a processor that stamps every entry with the service name."""

    def add_service_name(logger: Any, method_name: str, event_dict: dict) -> dict:
        event_dict.setdefault("service", service_name)
        return event_dict

    return add_service_name


def setup_logging(json_output: bool = True, service_name: str = "punchclock", level: int = logging.INFO):
    """
    Configure structured logging.

    Args:
        json_output: If True, output JSON logs. If False, use console format.
        service_name: Value of the "service" field on every entry.
        level: Minimum level that gets rendered.
    """
    shared_processors = [
        # correlation_id, http_method and http_path bound by the middleware
        structlog.contextvars.merge_contextvars,
        service_name_adder(service_name),
        structlog.processors.TimeStamper(fmt="iso", key="ts"),
        structlog.processors.add_log_level,
        structlog.processors.CallsiteParameterAdder(
            {
                structlog.processors.CallsiteParameter.MODULE,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            }
        ),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", level=level)

    # uvicorn access lines are replaced by the http_request entries from the middleware
    logging.getLogger("uvicorn.access").handlers = []


def get_logger(**initial_values: Any):
    """Get a configured structlog logger, optionally pre-bound."""
    return structlog.get_logger(**initial_values)
