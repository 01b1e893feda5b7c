"""
Security event logging and audit
"""

import logging
from typing import Dict, Any, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schoolpay.infrastructure.logging_config import trace_id_context
from schoolpay.core.compliance.models import AuditLog
from schoolpay.core.security.models import Role

logger = logging.getLogger(__name__)

_SENSITIVE_KEYS = (
    "secret", "password", "token", "api_key", "signature",
    "authorization", "x-paystack-signature",
)


def log_security_event(
    action: str,
    details: Dict[str, Any],
    trace_id: Optional[str] = None,
    db: Optional[Session] = None,
    ip: Optional[str] = None,
) -> None:
    """
    Log a security event and optionally write an AuditLog row.

    Args:
        action: Security action (e.g. "WEBHOOK_SIGNATURE_FAILED", "RATE_LIMIT_EXCEEDED")
        details: Event details (sanitized before logging/persisting)
        trace_id: Optional trace ID (falls back to the request context)
        db: Optional database session for the AuditLog write
        ip: Optional client address
    """
    if not trace_id:
        trace_id = trace_id_context.get() or "unknown"

    sanitized_details = _sanitize_details(details)
    sanitized_details["trace_id"] = trace_id

    logger.warning(
        f"Security event: action={action}, trace_id={trace_id}, details={sanitized_details}"
    )

    if db is None:
        return

    try:
        db.add(AuditLog(
            actor_subject=None,
            actor_role=Role.SYSTEM,
            action=action,
            entity_type="Security",
            entity_id=None,
            before=None,
            after=sanitized_details,
            reason=f"Security event: {action}",
            ip=ip,
        ))
        db.commit()
    except SQLAlchemyError as e:
        # The security event is already in the log stream; the request outcome must not change
        logger.error(f"Failed to write AuditLog for security event: action={action}, error={e}")
        db.rollback()


def _sanitize_details(details: Dict[str, Any]) -> Dict[str, Any]:
    """Replace values whose key looks like a secret with [REDACTED]"""
    sanitized = {}
    for key, value in details.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in _SENSITIVE_KEYS):
            sanitized[key] = "[REDACTED]"
        else:
            sanitized[key] = value
    return sanitized
