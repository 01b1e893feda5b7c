"""
WebhookEvent model - append-only log of authenticated gateway notifications
"""

from sqlalchemy import Column, String, Boolean, JSON, Text, DateTime
from sqlalchemy.sql import func
from schoolpay.core.common.base_model import BaseModel


class WebhookEvent(BaseModel):
    """
    WebhookEvent - written before any processing, never deleted

    `provider_reference` is deliberately not unique: providers redeliver, and
    each delivery is logged. `processed` flips to True once the applier has run,
    whatever the outcome; `error_message` carries the failure, if any.
    """

    __tablename__ = "webhook_events"

    event_type = Column(String(100), nullable=False, index=True)
    provider_reference = Column(String(255), nullable=True, index=True)
    raw_payload = Column(JSON, nullable=False)
    signature_valid = Column(Boolean, nullable=False, default=False)
    processed = Column(Boolean, nullable=False, default=False, index=True)
    error_message = Column(Text, nullable=True)
    received_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
