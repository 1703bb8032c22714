"""
Structured logging configuration using structlog.

Every line carries the service name, version and environment, plus the
request-scoped context (request_id, method, path) merged from contextvars.
LOG_FORMAT picks the renderer: JSON lines for log shippers, or the console
renderer for humans. "auto" means JSON in production only.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from rideshare.core.config import Settings, get_settings

# Third-party loggers that drown out booking events at INFO
QUIET_LOGGERS = ("uvicorn.access", "aiosqlite", "asyncio")


def service_context(settings: Settings) -> Processor:
    """Processor stamping service identity on every event, unless already set."""
    fields = {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }

    def add_service_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        for key, value in fields.items():
            event_dict.setdefault(key, value)
        return event_dict

    return add_service_context


def wants_json(settings: Settings) -> bool:
    log_format = settings.LOG_FORMAT.lower()
    if log_format == "auto":
        return settings.ENVIRONMENT == "production"
    return log_format == "json"


def build_renderer(settings: Settings) -> tuple[list[Processor], Any]:
    """Exception processors and final renderer for the chosen format."""
    if wants_json(settings):
        # Trip locations are Arabic; keep them readable in the JSON lines
        return (
            [structlog.processors.dict_tracebacks],
            structlog.processors.JSONRenderer(ensure_ascii=False),
        )
    return [], structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    exception_processors, renderer = build_renderer(settings)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        service_context(settings),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Records from uvicorn and SQLAlchemy go through the same chain
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *exception_processors,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    # Replace, not append: setup_logging runs again on every app start in tests
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    logging.captureWarnings(True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    # DEBUG turns on engine echo; otherwise only SQL warnings get through
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.DEBUG else logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
