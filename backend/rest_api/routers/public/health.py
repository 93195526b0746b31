"""
Health check endpoint for the REST API.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.logging import rest_api_logger as logger
from shared.infrastructure.db import get_db
from shared.utils.schemas import HealthResponse


router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Service and database status.
    Returns 503 when the database cannot be reached.
    """
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Health check failed", error=str(e))
        return JSONResponse(
            status_code=503,
            content=HealthResponse(status="unhealthy", database="unreachable").model_dump(),
        )
    return HealthResponse(status="healthy", database="ok")
