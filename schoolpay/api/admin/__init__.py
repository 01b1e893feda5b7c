"""
Admin API routes - INTERNAL ONLY (ADMIN role)
"""

from fastapi import APIRouter
from schoolpay.infrastructure.settings import get_settings
from schoolpay.api.admin.virtual_accounts import router as virtual_accounts_router
from schoolpay.api.admin.payments import router as payments_router
from schoolpay.api.admin.webhooks import router as webhooks_router
from schoolpay.api.admin.reconciliation import router as reconciliation_router
from schoolpay.api.admin.transactions import router as transactions_router
from schoolpay.api.admin.imports import router as imports_router

settings = get_settings()
router = APIRouter(prefix=settings.ADMIN_V1_PREFIX, tags=["admin-v1"])

router.include_router(virtual_accounts_router, tags=["admin-virtual-accounts"])
router.include_router(payments_router, tags=["admin-payments"])
router.include_router(webhooks_router, tags=["admin-webhooks"])
router.include_router(reconciliation_router, tags=["admin-reconciliation"])
router.include_router(transactions_router, tags=["admin-transactions"])
router.include_router(imports_router, tags=["admin-imports"])
