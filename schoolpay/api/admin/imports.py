"""
Student import admin endpoints
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from schoolpay.auth.dependencies import require_admin_role
from schoolpay.auth.principal import Principal
from schoolpay.infrastructure.database import get_db
from schoolpay.schemas.imports import (
    ImportReportResponse,
    ResetFailedResponse,
    StageStudentsRequest,
    StageStudentsResponse,
    StagingRecordItem,
)
from schoolpay.services import bulk_import

router = APIRouter()


@router.post(
    "/imports/students",
    response_model=StageStudentsResponse,
    summary="Stage register rows",
    description="Store raw register rows for processing. Requires ADMIN role.",
)
async def stage_students(
    request: StageStudentsRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_role()),
) -> StageStudentsResponse:
    return StageStudentsResponse(staged=bulk_import.stage_records(db, request.rows))


@router.post(
    "/imports/students/process",
    response_model=ImportReportResponse,
    summary="Process pending staged rows",
    description="Create or update guardians, students, wallets and opening debts. Requires ADMIN role.",
)
async def process_students(
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_role()),
) -> ImportReportResponse:
    report = bulk_import.process_pending(db, limit=limit)
    return ImportReportResponse(**report.as_dict())


@router.post(
    "/imports/students/reset-failed",
    response_model=ResetFailedResponse,
    summary="Make failed rows pending again",
)
async def reset_failed_students(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_role()),
) -> ResetFailedResponse:
    return ResetFailedResponse(reset=bulk_import.reset_failed(db))


@router.get(
    "/imports/students",
    response_model=List[StagingRecordItem],
    summary="List staged rows",
)
async def list_staged_students(
    status: Optional[str] = Query(None, pattern="^(pending|processed|failed)$"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_role()),
) -> List[StagingRecordItem]:
    records = bulk_import.list_records(db, status=status, limit=limit, offset=offset)
    return [StagingRecordItem.model_validate(record) for record in records]
