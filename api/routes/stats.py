"""
Ingestion statistics endpoint
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from api.dependencies import get_db
from schemas.api import StatsResponse, CheckpointInfo, IngestionRunSummary
from models.checkpoint import CursorCheckpoint
from models.events import IngestedEvent
from models.ingestion_run import IngestionRun
import uuid
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Statistics"])

UNTYPED = "(none)"


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    limit: int = Query(10, ge=1, le=100, description="Number of recent runs to return"),
    db: AsyncSession = Depends(get_db)
):
    """
    Get ingestion statistics.

    Returns:
    - Total ingested events and a per-type breakdown
    - The latest checkpoint
    - Recent ingestion run history
    """
    request_id = f"req_{uuid.uuid4().hex[:12]}"

    logger.info(f"[{request_id}] GET /stats")

    total_result = await db.execute(
        select(func.count()).select_from(IngestedEvent)
    )
    total_events = total_result.scalar() or 0

    by_type_result = await db.execute(
        select(IngestedEvent.event_type, func.count())
        .group_by(IngestedEvent.event_type)
    )
    events_by_type = {
        (event_type if event_type is not None else UNTYPED): count
        for event_type, count in by_type_result.all()
    }

    checkpoint_result = await db.execute(
        select(CursorCheckpoint)
        .order_by(CursorCheckpoint.updated_at.desc(), CursorCheckpoint.id.desc())
        .limit(1)
    )
    checkpoint = checkpoint_result.scalar_one_or_none()

    runs_result = await db.execute(
        select(IngestionRun).order_by(IngestionRun.started_at.desc()).limit(limit)
    )
    recent_runs = [
        IngestionRunSummary.model_validate(run) for run in runs_result.scalars().all()
    ]

    return StatsResponse(
        request_id=request_id,
        total_events=total_events,
        events_by_type=events_by_type,
        latest_checkpoint=CheckpointInfo.model_validate(checkpoint) if checkpoint else None,
        recent_runs=recent_runs
    )
