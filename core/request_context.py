# core/request_context.py
"""
Per-request logging context.

RequestIDMiddleware binds a context for the duration of a request; the filter
copies it onto every log record so formatters can print rid/user/path.
"""
from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Optional

_local = threading.local()

REQUEST_ID_MAX_LENGTH = 64


@dataclass(frozen=True)
class RequestContext:
    request_id: str
    user_id: Optional[int] = None
    path: str = ""
    method: str = ""


def bind(ctx: RequestContext) -> None:
    _local.ctx = ctx


def clear() -> None:
    if hasattr(_local, "ctx"):
        delattr(_local, "ctx")


def current() -> RequestContext | None:
    return getattr(_local, "ctx", None)


def new_request_id() -> str:
    return uuid.uuid4().hex


def clean_request_id(raw: str | None) -> str:
    """
    Accept a client-supplied id only if it is short and printable,
    so it cannot inject newlines or huge values into log lines.
    """
    rid = (raw or "").strip()
    if not rid or len(rid) > REQUEST_ID_MAX_LENGTH or not rid.isprintable():
        return new_request_id()
    return rid


class RequestContextFilter(logging.Filter):
    """Inject request context into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = current()
        record.request_id = ctx.request_id if ctx else "-"
        record.user_id = ctx.user_id if ctx else None
        record.path = ctx.path if ctx else ""
        record.method = ctx.method if ctx else ""
        return True
