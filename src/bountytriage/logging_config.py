"""Structured logging: structlog rendering over the stdlib logging tree.

Modules keep using ``logging.getLogger(__name__)``; records from them and from
third-party libraries pass through the same processor chain, so request
context bound by the trace middleware shows up on every line.
"""

import logging
import sys

import structlog

# Library loggers that are chatty at INFO
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "aiosqlite")


def _renderer(json_output: bool):
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(log_level: str = "info", json_output: bool = False) -> None:
    """Install the structlog formatter on the root logger.

    Args:
        log_level: debug/info/warning/error; unknown values fall back to info.
        json_output: JSON lines for deployments, console rendering for local mode.
    """
    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(json_output),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_request_context(trace_id: str, delivery_id: str | None = None, event_type: str | None = None) -> None:
    """Bind webhook request identifiers to the current async context."""
    context = {"trace_id": trace_id, "delivery_id": delivery_id, "event_type": event_type}
    structlog.contextvars.bind_contextvars(**{k: v for k, v in context.items() if v})


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
