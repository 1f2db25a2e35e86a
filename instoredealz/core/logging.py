import logging
import sys

import structlog

SERVICE_NAME = "instoredealz-redemption"


def _render_processors(json_logs: bool) -> list[structlog.types.Processor]:
    if json_logs:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=False)]


def configure_logging(log_level: str = "INFO", *, json_logs: bool = True) -> None:
    """Route structlog through stdlib logging on stdout.

    Every event carries the service name and any request context bound with
    ``structlog.contextvars``. Exceptions are rendered into the event, so
    stacks stay in server logs and never reach API responses.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger("sqlalchemy.engine").setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            *_render_processors(json_logs),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)
