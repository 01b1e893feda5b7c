"""
Global exception handlers

All error responses share one envelope:
{"error": {"code", "message", "details", "trace_id"}}
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from schoolpay.services.errors import PaymentCoreError
from schoolpay.utils.trace_id import get_trace_id

logger = logging.getLogger(__name__)


def error_body(code: str, message: str, trace_id: Optional[str], details: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message, "trace_id": trace_id}
    if details:
        error["details"] = details
    return {"error": error}


async def payment_core_error_handler(request: Request, exc: PaymentCoreError) -> JSONResponse:
    """Map domain errors to their HTTP status"""
    trace_id = get_trace_id(request)
    log = logger.error if exc.http_status >= 500 else logger.warning
    log(
        f"Request failed with domain error: trace_id={trace_id}, code={exc.code}, "
        f"status={exc.http_status}, message={exc.message}"
    )
    return JSONResponse(
        status_code=exc.http_status,
        content=error_body(exc.code, exc.message, trace_id, _json_safe(exc.details)),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions"""
    trace_id = get_trace_id(request)

    # Dict details with an "error" key keep their custom codes
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        error_response: Dict[str, Any] = {"error": dict(exc.detail["error"])}
        error_response["error"].setdefault("trace_id", trace_id)
    else:
        error_response = error_body(
            f"HTTP_{exc.status_code}",
            exc.detail if isinstance(exc.detail, str) else str(exc.detail),
            trace_id,
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response,
        headers=getattr(exc, "headers", None),
    )


def _json_safe(obj: Any) -> Any:
    """Recursively convert non-JSON-serializable values to strings"""
    if isinstance(obj, (Decimal, Exception, type)):
        return str(obj)
    if isinstance(obj, dict):
        return {key: _json_safe(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_json_safe(item) for item in obj]
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle validation exceptions"""
    trace_id = get_trace_id(request)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body("VALIDATION_ERROR", "Request validation failed", trace_id, _json_safe(exc.errors())),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle general exceptions (details are logged, never returned)"""
    trace_id = get_trace_id(request)
    logger.exception("Unhandled exception", exc_info=exc, extra={"trace_id": trace_id})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("INTERNAL_ERROR", "An internal error occurred", trace_id),
    )
