"""
Webhook security utilities - HMAC-SHA512 signature verification
"""

import hmac
import hashlib
import logging
from typing import Optional, Tuple, Dict, Any

from schoolpay.infrastructure.settings import get_settings

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Paystack-Signature"


def compute_signature(payload_body: bytes, secret: str) -> str:
    """Hex HMAC-SHA512 of the raw body, as the provider computes it"""
    return hmac.new(secret.encode("utf-8"), payload_body, hashlib.sha512).hexdigest()


def verify_hmac_signature(
    payload_body: bytes,
    signature_header: Optional[str],
    secret: str,
) -> Tuple[bool, Optional[str], Optional[Dict[str, Any]]]:
    """
    Verify HMAC-SHA512 signature using constant-time comparison.

    The signature is computed over the EXACT raw request body bytes. Never
    parse and re-serialize the body before calling this.

    Args:
        payload_body: Raw request body as received
        signature_header: Value of the X-Paystack-Signature header
        secret: Provider secret key

    Returns:
        Tuple of (is_valid, error_code, error_details)
    """
    if not signature_header:
        return False, "WEBHOOK_MISSING_HEADER", {
            "missing_header": SIGNATURE_HEADER,
            "hint": f"Include {SIGNATURE_HEADER} header with HMAC-SHA512 signature of request body",
        }

    if not secret:
        return False, "WEBHOOK_INVALID_SIGNATURE", {
            "reason": "PAYSTACK_SECRET_KEY not configured",
            "hint": "Set PAYSTACK_SECRET_KEY in environment variables",
        }

    expected_signature = compute_signature(payload_body, secret)

    if not hmac.compare_digest(expected_signature, signature_header.strip().lower()):
        return False, "WEBHOOK_INVALID_SIGNATURE", {
            "expected_length": len(expected_signature),
            "received_length": len(signature_header),
            "body_length_bytes": len(payload_body),
            "hint": "Signature mismatch. Ensure signature is HMAC-SHA512 over the exact raw body bytes",
        }

    return True, None, None


def verify_paystack_signature(
    payload_body: bytes,
    signature_header: Optional[str],
) -> Tuple[bool, Optional[str], Optional[Dict[str, Any]]]:
    """Verify a Paystack notification against the configured secret"""
    settings = get_settings()
    return verify_hmac_signature(
        payload_body=payload_body,
        signature_header=signature_header,
        secret=settings.PAYSTACK_SECRET_KEY,
    )
