"""
Models registry - Import all models here to ensure Base.metadata is complete

Used by Alembic and by the test fixtures that create the schema.
Import order follows foreign-key dependencies.
"""

from schoolpay.infrastructure.database import Base

# 1. Enums without table
from schoolpay.core.security.models import Role

# 2. Beneficiaries (no dependencies)
from schoolpay.core.beneficiaries.models import Guardian, Student, MembershipStatus, BoardingStatus

# 3. Wallets and virtual accounts (depend on Student)
from schoolpay.core.wallets.models import Wallet
from schoolpay.core.virtual_accounts.models import VirtualAccount

# 4. Transactions (depend on Student and Wallet)
from schoolpay.core.transactions.models import (
    Transaction, TransactionType, TransactionStatus, TransactionCategory,
)

# 5. Standalone logs
from schoolpay.core.webhooks.models import WebhookEvent
from schoolpay.core.imports.models import StagingImportRecord
from schoolpay.core.compliance.models import AuditLog

__all__ = [
    "Base",
    "Role",
    "Guardian",
    "Student",
    "MembershipStatus",
    "BoardingStatus",
    "Wallet",
    "VirtualAccount",
    "Transaction",
    "TransactionType",
    "TransactionStatus",
    "TransactionCategory",
    "WebhookEvent",
    "StagingImportRecord",
    "AuditLog",
]
