"""Application logging configuration and middleware.

This module sets up a structured logging configuration using
``logging.config.dictConfig`` and exposes a FastAPI middleware that injects
request IDs into all log records. Chat processing additionally binds the
sender's phone number so every line logged while handling a WhatsApp message
can be traced back to its conversation. Log output uses key-value formatting
to facilitate downstream parsing.
"""

from __future__ import annotations

import logging
import logging.config
import os
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware  # type: ignore[import-not-found]

# ---------------------------------------------------------------------------
# Context variables propagated to log records
# ---------------------------------------------------------------------------
request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
phone_ctx_var: ContextVar[str | None] = ContextVar("chat_phone", default=None)


class ContextFilter(logging.Filter):
    """Inject the request ID and chat phone number from contextvars into log records."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - small
        record.request_id = request_id_ctx_var.get() or "-"
        record.phone = mask_phone(phone_ctx_var.get())
        return True


def mask_phone(phone: str | None) -> str:
    """Keep only the last four digits of a phone number for log output."""
    if not phone:
        return "-"
    if len(phone) <= 4:
        return phone
    return "*" * (len(phone) - 4) + phone[-4:]


@contextmanager
def bind_phone(phone: str) -> Iterator[None]:
    """Bind a chat phone number to log records emitted inside the block."""
    token = phone_ctx_var.set(phone)
    try:
        yield
    finally:
        phone_ctx_var.reset(token)


def _build_config(log_level: str) -> dict[str, Any]:
    """Build logging configuration dictionary."""

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"context": {"()": ContextFilter}},
        "formatters": {
            "kv": {
                "format": (
                    "level=%(levelname)s logger=%(name)s request_id=%(request_id)s "
                    "phone=%(phone)s message=%(message)s"
                )
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "formatter": "kv",
                "filters": ["context"],
                "level": log_level,
            }
        },
        "root": {"handlers": ["default"], "level": log_level},
    }


def setup_logging() -> None:
    """Configure root logging using key-value formatting.

    The log level can be controlled via the ``LOG_LEVEL`` environment variable.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.config.dictConfig(_build_config(log_level))


# ---------------------------------------------------------------------------
# FastAPI middleware for request ID injection
# ---------------------------------------------------------------------------
class RequestIdMiddleware(BaseHTTPMiddleware):
    """Populate a unique request ID for each incoming HTTP request.

    Uses the ``X-Request-ID`` header if provided, otherwise a new UUID4. The ID
    is echoed back to clients in the ``X-Request-ID`` response header.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        token = request_id_ctx_var.set(request_id)
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_ctx_var.reset(token)


__all__ = [
    "RequestIdMiddleware",
    "bind_phone",
    "mask_phone",
    "phone_ctx_var",
    "request_id_ctx_var",
    "setup_logging",
]
