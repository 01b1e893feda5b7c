"""
StagingImportRecord model - raw student rows awaiting import
"""

from sqlalchemy import Column, String, Boolean, Text, DateTime, Uuid
from schoolpay.core.common.base_model import BaseModel


class StagingImportRecord(BaseModel):
    """
    StagingImportRecord - one row of an uploaded student register

    Values are kept as received (strings); parsing happens when the row is
    processed so a bad value fails that row only. A row is pending while
    `processed` is False and `error_message` is empty.
    """

    __tablename__ = "student_import_staging"

    sn = Column(String(20), nullable=True)
    names = Column(String(255), nullable=True)
    surname = Column(String(100), nullable=True)
    class_level = Column(String(50), nullable=True)
    registration_number = Column(String(50), nullable=True, index=True)
    membership = Column(String(20), nullable=True)
    boarding = Column(String(20), nullable=True)
    school_fees = Column(String(50), nullable=True)
    debts = Column(String(50), nullable=True)
    parent_email = Column(String(255), nullable=True)
    processed = Column(Boolean, nullable=False, default=False, index=True)
    error_message = Column(Text, nullable=True)
    student_uuid = Column(Uuid(as_uuid=True), nullable=True)
    parent_uuid = Column(Uuid(as_uuid=True), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
