"""
Liveness and readiness probes
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schoolpay.infrastructure.database import get_db
from schoolpay.infrastructure.redis_client import ping_redis

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    """Process is up; says nothing about dependencies"""
    return {"status": "ok"}


@router.get("/ready")
def ready(db: Session = Depends(get_db)):
    """
    200 when the database and Redis both answer, 503 otherwise.

    Redis backs rate limiting and the provisioning queue; webhook ingestion
    itself only needs the database, so a Redis outage degrades rather than
    stops payments.
    """
    checks = {"status": "ok", "database": "connected", "redis": "connected"}

    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        checks["database"] = f"error: {e.__class__.__name__}"

    if not ping_redis():
        checks["redis"] = "disconnected"

    if checks["database"] != "connected" or checks["redis"] != "connected":
        checks["status"] = "not_ready"
        return JSONResponse(status_code=503, content=checks)
    return checks
