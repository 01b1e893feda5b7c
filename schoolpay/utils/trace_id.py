"""
Trace ID propagation

HTTP requests take the caller's X-Trace-ID / X-Request-Id when it is
well formed; background jobs and scripts open their own scope.
"""

import re
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from schoolpay.infrastructure.logging_config import trace_id_context

TRACE_HEADER = "X-Trace-ID"
_INCOMING_HEADERS = (TRACE_HEADER, "X-Request-Id")
# Ends up verbatim in logs and response headers
_VALID_TRACE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def generate_trace_id() -> str:
    return str(uuid.uuid4())


def incoming_trace_id(request: Request) -> Optional[str]:
    for header in _INCOMING_HEADERS:
        value = (request.headers.get(header) or "").strip()
        if value and _VALID_TRACE_ID.match(value):
            return value
    return None


@contextmanager
def trace_scope(trace_id: Optional[str] = None) -> Iterator[str]:
    """Bind a trace id to the current context for the duration of the block"""
    trace_id = trace_id or generate_trace_id()
    token = trace_id_context.set(trace_id)
    try:
        yield trace_id
    finally:
        trace_id_context.reset(token)


class TraceIDMiddleware(BaseHTTPMiddleware):
    """Inject trace_id into request state, logs and response headers"""

    async def dispatch(self, request: Request, call_next):
        with trace_scope(incoming_trace_id(request)) as trace_id:
            request.state.trace_id = trace_id
            response = await call_next(request)

        response.headers[TRACE_HEADER] = trace_id
        return response


def get_trace_id(request: Request) -> Optional[str]:
    return getattr(request.state, "trace_id", None)
