"""
Logging estruturado (structlog) com request id por requisição.
"""
import logging
import uuid

import structlog
from fastapi import Request

from servicedesk.core.config import settings


def setup_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Configura structlog + logging padrão uma única vez no startup."""
    level_name = (level or settings.LOG_LEVEL).upper()
    if json_logs is None:
        json_logs = settings.LOG_JSON and not settings.is_development

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(message)s",
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__):
    return structlog.get_logger(name)


async def request_context_middleware(request: Request, call_next):
    """Associa um request id curto a todos os logs da requisição."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=str(uuid.uuid4())[:8],
        method=request.method,
        path=request.url.path,
    )
    try:
        response = await call_next(request)
        if response.status_code >= 400:
            get_logger("servicedesk.http").info(
                "request_complete", status_code=response.status_code
            )
        return response
    finally:
        structlog.contextvars.clear_contextvars()
