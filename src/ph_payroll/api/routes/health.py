"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ph_payroll.api.dependencies import AppSettings, DbSession
from ph_payroll.calculators.statutory_tables import TABLE_LOAD_ERRORS, cached_tables

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Service status plus the statutory tables payslips will be stamped with."""

    status: str
    timestamp: datetime
    database: str
    statutory_version: str


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession, settings: AppSettings) -> HealthResponse:
    database = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Database ping failed", exc_info=True)
        database = "unhealthy"

    try:
        statutory_version = cached_tables(settings.statutory_tables_path).version
    except TABLE_LOAD_ERRORS:
        logger.warning("Statutory tables failed to load", exc_info=True)
        statutory_version = "unavailable"

    healthy = database == "healthy" and statutory_version != "unavailable"
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=database,
        statutory_version=statutory_version,
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check() -> dict[str, str]:
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
