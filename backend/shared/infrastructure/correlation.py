"""
Request context for logs.

Every record emitted while a request is handled carries the request id and
the acting identity: `guest:<id>` for diner calls, `staff:<id>` for console
calls. The session client binds its own guest the same way before starting
its background tasks, so feed and watchdog logs are attributed too.
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
actor_var: ContextVar[str] = ContextVar("actor", default="")

REQUEST_ID_HEADER = "X-Request-ID"
GUEST_HEADER = "X-Guest-Id"
STAFF_HEADER = "X-Staff-Profile-Id"


def bind_actor(kind: str, actor_id: int | str | None) -> None:
    """Attribute the following logs of this context to `kind:actor_id`."""
    actor_var.set(f"{kind}:{actor_id}" if actor_id is not None else "")


def actor_from_headers(headers) -> str:
    """`staff:<id>` wins over `guest:<id>`; non-numeric ids are ignored."""
    for header, kind in ((STAFF_HEADER, "staff"), (GUEST_HEADER, "guest")):
        value = (headers.get(header) or "").strip()
        if value.isdigit():
            return f"{kind}:{value}"
    return ""


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Reuses an incoming X-Request-ID or generates one, echoes it on the
    response and binds the caller's identity headers for the request.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        id_token = request_id_var.set(request_id)
        actor_token = actor_var.set(actor_from_headers(request.headers))
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        finally:
            actor_var.reset(actor_token)
            request_id_var.reset(id_token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class CorrelationIdFilter(logging.Filter):
    """Copies the request id and actor onto each record ("-" when unset)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.actor = actor_var.get() or "-"
        return True
