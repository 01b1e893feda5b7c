"""
One structured log line and one metrics sample per HTTP request
"""

import time
import logging
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from schoolpay.infrastructure.logging_config import trace_id_context
from schoolpay.utils.metrics import record_http_request
from schoolpay.utils.rate_limiter import get_client_identifier

logger = logging.getLogger(__name__)

# Probe endpoints hit every few seconds by the orchestrator and Prometheus
_QUIET_PATHS = frozenset(("/health", "/ready", "/metrics"))


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Fields: trace_id, path, method, status_code, duration_ms, client_ip and,
    once an admin dependency has authenticated the caller, actor_id / actor_role.
    Webhook deliveries carry no principal.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        status_code = 500
        failure = None

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            failure = f"{e.__class__.__name__}: {e}"
            raise
        finally:
            elapsed = time.perf_counter() - started
            path = request.url.path

            fields = {
                "trace_id": trace_id_context.get(),
                "path": path,
                "method": request.method,
                "status_code": status_code,
                "duration_ms": round(elapsed * 1000, 2),
                "client_ip": get_client_identifier(request),
            }
            principal = getattr(request.state, "principal", None)
            if principal is not None:
                fields["actor_id"] = principal.subject
                fields["actor_role"] = ",".join(principal.roles)

            if failure:
                fields["error"] = failure
                logger.error("Request raised", extra=fields)
            elif status_code >= 500:
                logger.error("Request failed", extra=fields)
            elif status_code >= 400:
                logger.warning("Request rejected", extra=fields)
            elif path in _QUIET_PATHS:
                logger.debug("Probe served", extra=fields)
            else:
                logger.info("Request completed", extra=fields)

            record_http_request(
                path=path,
                method=request.method,
                status_code=status_code,
                duration_seconds=elapsed,
            )

        return response
