"""
Payment core error taxonomy

Every error carries a stable `code` (used in API error envelopes and audit
logs), a human `message`, optional `details`, and the HTTP status it maps to
when it escapes to the API layer.
"""

from typing import Any, Dict, Optional


class PaymentCoreError(Exception):
    """Base class for domain errors"""

    code = "PAYMENT_CORE_ERROR"
    http_status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, code: Optional[str] = None):
        self.message = message
        self.details = details or {}
        if code:
            self.code = code
        super().__init__(self.message)


class AuthenticationError(PaymentCoreError):
    """Inbound notification failed signature verification"""
    code = "WEBHOOK_INVALID_SIGNATURE"
    http_status = 401


class ResolutionError(PaymentCoreError):
    """Account number, beneficiary or wallet could not be resolved"""
    code = "ACCOUNT_NOT_FOUND"
    http_status = 404


class DuplicateError(PaymentCoreError):
    """
    A provider reference was already applied.

    The applier reports duplicates as a normal result (ApplyResult.created is
    False); this class exists for callers that need to raise it explicitly.
    """
    code = "DUPLICATE_REFERENCE"
    http_status = 200


class PersistenceError(PaymentCoreError):
    """The datastore rejected or failed a write"""
    code = "PERSISTENCE_ERROR"
    http_status = 500


class ProcessingTimeoutError(PaymentCoreError):
    """Request-scoped processing deadline elapsed before the write"""
    code = "PROCESSING_TIMEOUT"
    http_status = 503


class InvalidPayloadError(PaymentCoreError):
    """Notification body is authentic but lacks a field processing needs"""
    code = "INVALID_PAYLOAD"
    http_status = 400


class InvalidAmountError(PaymentCoreError):
    """Amount is missing, non-numeric or not strictly positive"""
    code = "INVALID_AMOUNT"
    http_status = 422


class InvalidStateError(PaymentCoreError):
    """Operation not allowed in the entity's current state"""
    code = "INVALID_STATE"
    http_status = 409


class InsufficientBalanceError(PaymentCoreError):
    """Wallet balance would go negative"""
    code = "INSUFFICIENT_BALANCE"
    http_status = 409


class ProviderError(PaymentCoreError):
    """The payment provider API failed or returned an error"""
    code = "PROVIDER_ERROR"
    http_status = 502

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, status_code: Optional[int] = None):
        super().__init__(message, details)
        self.status_code = status_code


class ProviderRateLimitError(ProviderError):
    """Provider answered 429; the only provider error worth retrying"""
    code = "PROVIDER_RATE_LIMITED"
    http_status = 503


class FatalCapabilityError(PaymentCoreError):
    """A capability required by a whole run is unavailable; stop the run"""
    code = "CAPABILITY_UNAVAILABLE"
    http_status = 503


class FeatureUnavailableError(FatalCapabilityError):
    """Dedicated virtual accounts are not enabled for this provider account"""
    code = "FEATURE_UNAVAILABLE"


class MissingProfileDataError(PaymentCoreError):
    """Beneficiary lacks a field the provider requires (email, names)"""
    code = "MISSING_PROFILE_DATA"
    http_status = 422
