"""
DEV-ONLY API endpoints for local development and testing
"""

from fastapi import APIRouter
from schoolpay.infrastructure.settings import get_settings

settings = get_settings()
router = APIRouter(prefix=settings.DEV_V1_PREFIX, tags=["dev"])

from schoolpay.api.dev.webhooks import router as webhooks_router

router.include_router(webhooks_router)
