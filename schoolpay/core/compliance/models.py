"""
AuditLog model - Transversal audit trail
"""

from sqlalchemy import Column, String, JSON, Text, Enum as SQLEnum, Uuid
from schoolpay.core.common.base_model import BaseModel
from schoolpay.core.security.models import Role


class AuditLog(BaseModel):
    """
    AuditLog model - Audit trail for security events and operator actions
    """

    __tablename__ = "audit_logs"

    actor_subject = Column(String(255), nullable=True, index=True)  # JWT `sub`, None for system events
    actor_role = Column(SQLEnum(Role, name="actor_role", create_constraint=True), nullable=False, index=True)
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    before = Column(JSON, nullable=True)
    after = Column(JSON, nullable=True)
    reason = Column(Text, nullable=True)
    ip = Column(String(45), nullable=True)
