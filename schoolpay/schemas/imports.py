"""
Student import schemas
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


class StageStudentsRequest(BaseModel):
    rows: List[Dict[str, Any]] = Field(..., min_length=1, description="Register rows keyed by column header")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "rows": [{
                "SN": "1",
                "NAMES": "Ada",
                "SURNAME": "Obi",
                "CLASS": "JSS1",
                "REG NO": "JSS1/001",
                "MEMBER/NMEMBER": "MEMBER",
                "DAY/BOARDER": "DAY",
                "SCHOOL FEES": "150,000",
                "DEBTS": "20,000",
                "PARENT EMAIL": "obi.family@example.com",
            }]
        }
    })


class StageStudentsResponse(BaseModel):
    staged: int


class ImportErrorItem(BaseModel):
    sn: Optional[str] = None
    error: str


class ImportReportResponse(BaseModel):
    success_count: int
    error_count: int
    errors: List[ImportErrorItem] = Field(default_factory=list)
    created_students: List[Dict[str, Any]] = Field(default_factory=list)


class ResetFailedResponse(BaseModel):
    reset: int


class StagingRecordItem(BaseModel):
    id: UUID
    sn: Optional[str] = None
    names: Optional[str] = None
    surname: Optional[str] = None
    class_level: Optional[str] = None
    registration_number: Optional[str] = None
    parent_email: Optional[str] = None
    processed: bool
    error_message: Optional[str] = None
    student_uuid: Optional[UUID] = None
    parent_uuid: Optional[UUID] = None
    processed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
