"""
Ingestion run tracking (one row per process run)
"""

from typing import List, Optional
from datetime import datetime, timezone
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from models.base import PacingMode, RunStatus
from models.ingestion_run import IngestionRun
import logging
import uuid

logger = logging.getLogger(__name__)


class RunLedger:
    """
    Records when runs start and how they end.

    Bookkeeping only: failures here are logged and never change the
    outcome of the ingestion itself.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def start(self, mode: PacingMode, cursor_before: Optional[str]) -> Optional[uuid.UUID]:
        """Create a RUNNING record; returns its run_id, or None if it could not be written"""
        run_id = uuid.uuid4()
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    session.add(IngestionRun(
                        run_id=run_id,
                        status=RunStatus.RUNNING,
                        mode=mode,
                        started_at=datetime.now(timezone.utc),
                        cursor_before=cursor_before
                    ))
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Could not record run start: {str(e)}")
            return None
        return run_id

    async def complete(
        self,
        run_id: Optional[uuid.UUID],
        status: RunStatus,
        events_ingested: int = 0,
        cursor_after: Optional[str] = None,
        error_message: Optional[str] = None
    ) -> None:
        """Complete run with statistics"""
        if run_id is None:
            return
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        select(IngestionRun).where(IngestionRun.run_id == run_id)
                    )
                    run = result.scalar_one_or_none()
                    if run is None:
                        logger.warning(f"Run {run_id} not found; cannot complete it")
                        return

                    run.status = status
                    run.completed_at = datetime.now(timezone.utc)
                    if run.started_at is not None:
                        run.duration_seconds = (run.completed_at - run.started_at).total_seconds()
                    run.events_ingested = events_ingested
                    run.cursor_after = cursor_after
                    run.error_message = error_message
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Could not record run completion for {run_id}: {str(e)}")

    async def recent(self, limit: int = 10) -> List[IngestionRun]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(IngestionRun).order_by(IngestionRun.started_at.desc()).limit(limit)
            )
            return list(result.scalars().all())
