"""
FastAPI application entry point

Run with uvicorn:
    uvicorn schoolpay.main:app --host 0.0.0.0 --port 8000

The provisioning worker runs separately as `schoolpay-worker`.
"""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from schoolpay.infrastructure.settings import get_settings
from schoolpay.infrastructure.logging_config import setup_logging
from schoolpay.infrastructure.redis_client import get_redis
from schoolpay.api.exceptions import (
    general_exception_handler,
    http_exception_handler,
    payment_core_error_handler,
    validation_exception_handler,
)
from schoolpay.api.public.health import router as health_router
from schoolpay.api.public.metrics import router as metrics_router
from schoolpay.api.admin import router as admin_router
from schoolpay.api.webhooks import router as webhooks_router
from schoolpay.services.errors import PaymentCoreError
from schoolpay.utils.trace_id import TraceIDMiddleware
from schoolpay.utils.request_logging import RequestLoggingMiddleware
from schoolpay.utils.rate_limiter import RateLimitMiddleware

settings = get_settings()
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="SchoolPay Core API",
    description="School fee payment core: virtual accounts, webhook ingestion, wallets and reconciliation",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# Last added is outermost; trace_id must be set before logging and rate limiting run
app.add_middleware(RateLimitMiddleware, redis_client=get_redis())
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(TraceIDMiddleware)

if settings.CORS_ENABLED:
    cors_origins = settings.cors_allow_origins_list
    if not cors_origins:
        logger.warning(
            "CORS_ENABLED=True but CORS_ALLOW_ORIGINS is empty or not set. "
            "Set CORS_ALLOW_ORIGINS (comma-separated) to allow browser clients."
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=settings.cors_allow_methods_list or ["*"],
        allow_headers=settings.cors_allow_headers_list or ["*"],
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    )

app.add_exception_handler(PaymentCoreError, payment_core_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

app.include_router(health_router)
app.include_router(metrics_router)
app.include_router(admin_router)
app.include_router(webhooks_router)

if settings.DEV_MODE:
    from schoolpay.api.dev import router as dev_router
    app.include_router(dev_router)
    logger.warning("DEV_MODE enabled: /dev/v1 helpers are mounted")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": "SchoolPay Core API",
        "version": "1.0.0",
        "status": "running",
    }
