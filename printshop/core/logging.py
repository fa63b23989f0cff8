# printshop/core/logging.py
"""
Logging for the PrintShop service.

structlog is the front end and stdlib logging the sink. Request-scoped
fields (request_id, actor_id, client_id) live in structlog's contextvars
and are merged into every event. Credential-looking keys are masked
before rendering.

Env knobs (see printshop.core.config.Settings):
  LOG_LEVEL=INFO
  LOG_FORMAT=json|console    (production always renders JSON)
"""

from __future__ import annotations

import logging
import sys
import time
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog
from structlog.contextvars import bind_contextvars, bound_contextvars, merge_contextvars

from printshop.core.config import get_settings

_CONFIGURED = False

_SENSITIVE = ("secret", "password", "token", "dsn", "api_key", "authorization")


def _mask(value: Any) -> str:
    text = str(value)
    return "***" if len(text) <= 6 else f"{text[:3]}***{text[-3:]}"


def redact_secrets(data: Any) -> Any:
    """Recursively mask values whose key looks like a credential."""
    if isinstance(data, dict):
        return {
            k: _mask(v) if any(s in str(k).lower() for s in _SENSITIVE) else redact_secrets(v)
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return type(data)(redact_secrets(v) for v in data)
    return data


def _redact(_, __, event_dict):
    return redact_secrets(event_dict)


def _service_fields(_, __, event_dict):
    settings = get_settings()
    event_dict.setdefault("service", settings.PROJECT_NAME)
    event_dict.setdefault("env", settings.ENVIRONMENT)
    return event_dict


def _processors(json_output: bool) -> list:
    return [
        merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _service_fields,
        _redact,
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(),
    ]


def setup_logging() -> None:
    """Configure stdlib logging and structlog once per process."""
    global _CONFIGURED
    if _CONFIGURED:
        return

    settings = get_settings()
    level = logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=_processors(settings.is_production or settings.LOG_FORMAT == "json"),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _CONFIGURED = True
    get_logger(__name__).debug("logging_configured", level=logging.getLevelName(level), settings=settings.dump_settings_safe())


def get_logger(name: str):
    return structlog.get_logger(name)


def bind_context(**fields: Any) -> None:
    """Attach fields to every later event in the current context; None values are skipped."""
    bind_contextvars(**{k: str(v) for k, v in fields.items() if v is not None})


@contextmanager
def bound_context(**fields: Any) -> Iterator[None]:
    """Like bind_context, but restores the previous values on exit."""
    with bound_contextvars(**{k: str(v) for k, v in fields.items() if v is not None}):
        yield


class LoggingContextMiddleware:
    """
    ASGI middleware: takes X-Request-ID from the request (or makes one),
    echoes it on the response and logs one access line per request.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = {k.decode("latin-1").lower(): v.decode("latin-1") for k, v in scope.get("headers", [])}
        request_id = headers.get("x-request-id") or uuid.uuid4().hex
        status: dict[str, Optional[int]] = {"code": None}

        async def send_with_request_id(message):
            if message["type"] == "http.response.start":
                status["code"] = message["status"]
                message["headers"] = [*message.get("headers", []), (b"x-request-id", request_id.encode("latin-1"))]
            await send(message)

        started = time.perf_counter()
        with bound_context(
            request_id=request_id,
            actor_id=headers.get("x-actor-id"),
            client_id=headers.get("x-client-id"),
        ):
            log = get_logger("printshop.http")
            log.debug("request_start", method=scope.get("method"), path=scope.get("path"))
            try:
                await self.app(scope, receive, send_with_request_id)
            finally:
                log.info(
                    "request_end",
                    method=scope.get("method"),
                    path=scope.get("path"),
                    status=status["code"] or 500,
                    duration_ms=round((time.perf_counter() - started) * 1000.0, 2),
                )


__all__ = [
    "setup_logging",
    "get_logger",
    "bind_context",
    "bound_context",
    "redact_secrets",
    "LoggingContextMiddleware",
]
