"""
Account resolver - maps a virtual account number to its beneficiary and wallet
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from schoolpay.core.virtual_accounts.models import VirtualAccount
from schoolpay.core.wallets.models import Wallet
from schoolpay.services.errors import ResolutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedAccount:
    beneficiary_id: UUID
    wallet_id: UUID
    virtual_account_id: UUID
    account_number: str
    account_name: str
    bank_name: str


def _to_resolved(virtual_account: VirtualAccount, wallet: Wallet) -> ResolvedAccount:
    return ResolvedAccount(
        beneficiary_id=virtual_account.beneficiary_id,
        wallet_id=wallet.id,
        virtual_account_id=virtual_account.id,
        account_number=virtual_account.account_number,
        account_name=virtual_account.account_name,
        bank_name=virtual_account.bank_name,
    )


def _wallet_for(db: Session, beneficiary_id: UUID) -> Wallet:
    wallet = db.execute(
        select(Wallet).where(Wallet.beneficiary_id == beneficiary_id)
    ).scalar_one_or_none()
    if wallet is None:
        raise ResolutionError(
            "Wallet not found for beneficiary",
            details={"beneficiary_id": str(beneficiary_id)},
            code="WALLET_NOT_FOUND",
        )
    return wallet


def resolve(db: Session, account_number: str) -> ResolvedAccount:
    """
    Resolve an ACTIVE virtual account number.

    Raises:
        ResolutionError: unknown or inactive number, or no wallet
    """
    if not account_number:
        raise ResolutionError("Account number missing", code="ACCOUNT_NUMBER_MISSING")

    virtual_account = db.execute(
        select(VirtualAccount).where(
            VirtualAccount.account_number == account_number,
            VirtualAccount.is_active.is_(True),
        )
    ).scalar_one_or_none()

    if virtual_account is None:
        logger.warning(f"Virtual account not found or inactive: account_number={account_number}")
        raise ResolutionError(
            "Virtual account not found or inactive",
            details={"account_number": account_number},
            code="VIRTUAL_ACCOUNT_NOT_FOUND",
        )

    return _to_resolved(virtual_account, _wallet_for(db, virtual_account.beneficiary_id))


def resolve_for_beneficiary(db: Session, beneficiary_id: UUID) -> ResolvedAccount:
    """Same resolution keyed by beneficiary (the simulation trigger starts from a student)"""
    virtual_account = db.execute(
        select(VirtualAccount).where(
            VirtualAccount.beneficiary_id == beneficiary_id,
            VirtualAccount.is_active.is_(True),
        )
    ).scalar_one_or_none()

    if virtual_account is None:
        raise ResolutionError(
            "No active virtual account for beneficiary",
            details={"beneficiary_id": str(beneficiary_id)},
            code="VIRTUAL_ACCOUNT_NOT_FOUND",
        )

    return _to_resolved(virtual_account, _wallet_for(db, beneficiary_id))
