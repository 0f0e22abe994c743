"""
Health check endpoint with database and checkpoint status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from api.dependencies import get_db
from schemas.api import HealthCheckResponse, CheckpointInfo
from models.checkpoint import CursorCheckpoint
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - The most recent persisted checkpoint
    """
    db_connected = False
    latest = None

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database connection failed: {str(e)}")

    if db_connected:
        try:
            result = await db.execute(
                select(CursorCheckpoint)
                .order_by(CursorCheckpoint.updated_at.desc(), CursorCheckpoint.id.desc())
                .limit(1)
            )
            checkpoint = result.scalar_one_or_none()
            if checkpoint is not None:
                latest = CheckpointInfo.model_validate(checkpoint)
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch latest checkpoint: {str(e)}")

    return HealthCheckResponse(
        database_connected=db_connected,
        latest_checkpoint=latest
    )
