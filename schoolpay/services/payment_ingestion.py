"""
Payment ingestion pipeline

record event -> resolve account -> apply payment -> mark processed

Shared by the inbound webhook, the operator "reprocess" action and the admin
payment simulation, so all three produce identical ledger effects.

The webhook deadline (WEBHOOK_PROCESSING_TIMEOUT_SECONDS) is checked between
stages, before resolve and before apply. It does not interrupt a statement
already running: a slow write inside apply_payment can finish after the
provider has timed out; the redelivery is then answered as a duplicate.
The deadline bounds when work starts, not when it ends.
"""

import logging
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from schoolpay.core.transactions.models import TransactionCategory
from schoolpay.services import event_log
from schoolpay.services.account_resolver import resolve, resolve_for_beneficiary
from schoolpay.services.errors import (
    InvalidPayloadError,
    PaymentCoreError,
    ProcessingTimeoutError,
    ResolutionError,
)
from schoolpay.services.transaction_applier import apply_payment
from schoolpay.utils.metrics import record_payment_outcome

logger = logging.getLogger(__name__)

SUCCESS_EVENT = "charge.success"
SUCCESS_STATUS = "success"
MINOR_UNITS_PER_MAJOR = Decimal("100")  # kobo per naira


@dataclass
class IngestionOutcome:
    status: str  # processed | duplicate | ignored
    event_id: UUID
    provider_reference: Optional[str]
    transaction_id: Optional[UUID] = None
    steps: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class ChargeNotification:
    reference: str
    amount: Decimal
    account_number: str
    channel: Optional[str]
    customer_email: Optional[str]
    paid_at: Optional[str]
    bank: Optional[str]


class Deadline:
    """
    Request-scoped processing budget.

    Checked before each write so an expired request answers a retryable error
    instead of writing after the provider has given up on the delivery.
    """

    def __init__(self, seconds: Optional[float]):
        self.expires_at = time.monotonic() + seconds if seconds and seconds > 0 else None

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at

    def check(self, stage: str) -> None:
        if self.expired:
            raise ProcessingTimeoutError(
                "Processing deadline exceeded",
                details={"stage": stage},
            )


def _step(steps: List[Dict[str, Any]], name: str, **extra: Any) -> None:
    steps.append({"step": len(steps) + 1, "name": name, "status": "completed", **extra})


def to_major_units(amount_minor: Any) -> Decimal:
    """Provider amounts are integers in the minor unit (kobo)"""
    try:
        minor = Decimal(str(amount_minor))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidPayloadError("Amount is not a number", details={"amount": amount_minor})
    if minor != minor.to_integral_value():
        raise InvalidPayloadError("Amount must be an integer in minor units", details={"amount": amount_minor})
    return (minor / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def notification_event_type(payload: Dict[str, Any]) -> str:
    event_type = payload.get("event")
    return event_type if isinstance(event_type, str) and event_type else "unknown"


def notification_reference(payload: Dict[str, Any]) -> Optional[str]:
    """data.reference as text, or None when absent or not a scalar"""
    reference = _as_dict(payload.get("data")).get("reference")
    if isinstance(reference, (str, int)) and not isinstance(reference, bool) and str(reference):
        return str(reference)
    return None


def check_shape(payload: Dict[str, Any]) -> None:
    """Authentic bodies must still carry `data` as a JSON object"""
    data = payload.get("data")
    if data is not None and not isinstance(data, dict):
        raise InvalidPayloadError(
            "Notification data must be a JSON object",
            details={"field": "data", "type": type(data).__name__},
        )


def is_successful_charge(payload: Dict[str, Any]) -> bool:
    data = _as_dict(payload.get("data"))
    return payload.get("event") == SUCCESS_EVENT and data.get("status") == SUCCESS_STATUS


def parse_charge(payload: Dict[str, Any]) -> ChargeNotification:
    """Extract what the applier needs from a charge.success body"""
    check_shape(payload)
    data = _as_dict(payload.get("data"))
    authorization = _as_dict(data.get("authorization"))
    customer = _as_dict(data.get("customer"))

    reference = notification_reference(payload)
    if not reference:
        raise InvalidPayloadError("Missing payment reference", details={"field": "data.reference"})

    account_number = authorization.get("account_number") or authorization.get("receiver_bank_account_number")
    if not account_number:
        raise InvalidPayloadError(
            "No account number in payment data",
            details={"field": "data.authorization.account_number", "reference": reference},
        )

    return ChargeNotification(
        reference=reference,
        amount=to_major_units(data.get("amount")),
        account_number=str(account_number),
        channel=data.get("channel"),
        customer_email=customer.get("email"),
        paid_at=data.get("paid_at"),
        bank=authorization.get("bank") or authorization.get("receiver_bank"),
    )


def _process_charge(
    db: Session,
    event_id: UUID,
    payload: Dict[str, Any],
    deadline: Deadline,
    steps: List[Dict[str, Any]],
) -> IngestionOutcome:
    reference = notification_reference(payload)
    try:
        charge = parse_charge(payload)

        deadline.check("resolve")
        resolved = resolve(db, charge.account_number)
        _step(steps, "Virtual Account Found", account=resolved.account_number)
        _step(steps, "Wallet Located", wallet_id=str(resolved.wallet_id))

        deadline.check("apply")
        result = apply_payment(
            db,
            provider_reference=charge.reference,
            beneficiary_id=resolved.beneficiary_id,
            wallet_id=resolved.wallet_id,
            amount=charge.amount,
            category=TransactionCategory.WALLET_TOPUP,
            channel=charge.channel,
            raw_payload=payload,
            description=f"Payment received via virtual account ({resolved.account_number})",
            metadata={
                "customer_email": charge.customer_email,
                "paid_at": charge.paid_at,
                "bank": charge.bank,
            },
            virtual_account_id=resolved.virtual_account_id,
        )
        _step(steps, "Duplicate Check", duplicate=not result.created)
    except ProcessingTimeoutError:
        # Left unprocessed: the provider retries and the redelivery is applied
        record_payment_outcome("timeout")
        logger.warning(f"Webhook processing deadline exceeded: event_id={event_id}, reference={reference}")
        raise
    except PaymentCoreError as e:
        record_payment_outcome("unresolved" if isinstance(e, ResolutionError) else "failed")
        event_log.mark_processed(db, event_id, error_message=f"{e.code}: {e.message}")
        raise

    event_log.mark_processed(db, event_id)

    if result.created:
        _step(steps, "Transaction Created", transaction_id=str(result.transaction.id))
        status = "processed"
    else:
        _step(steps, "Transaction Already Applied", transaction_id=str(result.transaction.id))
        status = "duplicate"

    record_payment_outcome(status)
    return IngestionOutcome(
        status=status,
        event_id=event_id,
        provider_reference=charge.reference,
        transaction_id=result.transaction.id,
        steps=steps,
    )


def _reject_malformed(db: Session, event_id: UUID, payload: Dict[str, Any]) -> None:
    """Close out a logged event whose body can never be applied; redelivery would not help"""
    try:
        check_shape(payload)
    except InvalidPayloadError as e:
        record_payment_outcome("failed")
        event_log.mark_processed(db, event_id, error_message=f"{e.code}: {e.message}")
        logger.warning(f"Malformed webhook event rejected: event_id={event_id}, error={e.message}")
        raise


def ingest_notification(
    db: Session,
    payload: Dict[str, Any],
    *,
    signature_valid: bool = True,
    deadline: Optional[Deadline] = None,
) -> IngestionOutcome:
    """
    Log and apply one authenticated provider notification.

    Raises:
        PersistenceError: event log or payment write failed (retryable)
        InvalidPayloadError: `data` is not an object, or the charge lacks
            reference/account/amount (the event is logged and closed first)
        ResolutionError: account number unknown, inactive or walletless
        ProcessingTimeoutError: deadline passed before the payment write
    """
    deadline = deadline or Deadline(None)
    event_type = notification_event_type(payload)
    reference = notification_reference(payload)
    steps: List[Dict[str, Any]] = []

    event = event_log.record_event(
        db,
        event_type=event_type,
        provider_reference=reference,
        payload=payload,
        signature_valid=signature_valid,
    )
    _step(steps, "Webhook Logged", event_id=str(event.id), reference=reference)

    _reject_malformed(db, event.id, payload)

    if not is_successful_charge(payload):
        event_log.mark_processed(db, event.id)
        record_payment_outcome("ignored")
        logger.info(f"Webhook event ignored: event_id={event.id}, event_type={event_type}")
        return IngestionOutcome(status="ignored", event_id=event.id, provider_reference=reference, steps=steps)

    return _process_charge(db, event.id, payload, deadline, steps)


def reprocess_event(db: Session, event_id: UUID) -> IngestionOutcome:
    """
    Replay a stored event through resolve/apply.

    Safe to run any number of times: an already-applied reference comes back
    as a duplicate without touching the wallet.
    """
    event = event_log.get_event(db, event_id)
    payload = event.raw_payload or {}
    steps: List[Dict[str, Any]] = []
    _step(steps, "Webhook Loaded", event_id=str(event.id), reference=event.provider_reference)

    _reject_malformed(db, event.id, payload)

    if not is_successful_charge(payload):
        event_log.mark_processed(db, event.id)
        return IngestionOutcome(status="ignored", event_id=event.id, provider_reference=event.provider_reference, steps=steps)

    logger.info(f"Reprocessing webhook event: event_id={event.id}, reference={event.provider_reference}")
    return _process_charge(db, event.id, payload, Deadline(None), steps)


def build_charge_payload(
    *,
    reference: str,
    amount: Decimal,
    account_number: str,
    channel: str,
    customer_email: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """charge.success body in the provider's shape (amount converted to minor units)"""
    return {
        "event": SUCCESS_EVENT,
        "data": {
            "reference": reference,
            "amount": int((amount * MINOR_UNITS_PER_MAJOR).to_integral_value()),
            "currency": "NGN",
            "status": SUCCESS_STATUS,
            "channel": channel,
            "paid_at": datetime.now(timezone.utc).isoformat(),
            "customer": {"email": customer_email, "customer_code": "TEST_CUSTOMER"},
            "authorization": {"account_number": account_number, "bank": "Test Bank"},
            "metadata": metadata or {},
        },
    }


def simulate_payment(
    db: Session,
    *,
    beneficiary_id: UUID,
    amount: Decimal,
    actor_subject: Optional[str] = None,
) -> Tuple[str, IngestionOutcome]:
    """
    Push a synthetic charge.success through the real pipeline.

    Returns:
        (test_reference, IngestionOutcome)
    """
    resolved = resolve_for_beneficiary(db, beneficiary_id)
    reference = f"TEST_{int(time.time() * 1000)}_{secrets.token_hex(4)}"

    payload = build_charge_payload(
        reference=reference,
        amount=amount,
        account_number=resolved.account_number,
        channel="simulation",
        customer_email="test@simulation.local",
        metadata={"simulation": True, "initiated_by": actor_subject},
    )
    logger.info(
        f"Simulating payment: beneficiary_id={beneficiary_id}, amount={amount}, "
        f"reference={reference}, actor={actor_subject}"
    )
    return reference, ingest_notification(db, payload, signature_valid=True)
