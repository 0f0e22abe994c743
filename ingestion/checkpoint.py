"""
Cursor checkpoint persistence for resume-after-crash
"""

from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from models.checkpoint import CursorCheckpoint
from schemas.events import CheckpointState
from core.exceptions import CheckpointError
import logging

logger = logging.getLogger(__name__)


class CheckpointStore:
    """
    Persists and restores the single logical cursor position.

    Responsibilities:
    - Append a checkpoint row per save (history is kept)
    - Load the most recent checkpoint at startup
    - Never swallow a failed write; the caller decides what to do
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def save(self, state: CheckpointState) -> None:
        """
        Persist `state` as the current checkpoint.

        Raises:
            CheckpointError: If the state has no cursor or the write fails
        """
        if state.cursor_token is None:
            raise CheckpointError(
                "Cannot save a checkpoint before the first page was fetched",
                context={"operation": "save", "events_ingested": state.events_ingested}
            )

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    session.add(CursorCheckpoint(
                        cursor_value=state.cursor_token,
                        events_ingested=state.events_ingested
                    ))
        except (SQLAlchemyError, OSError) as e:
            raise CheckpointError(
                "Failed to persist checkpoint",
                context={
                    "operation": "save",
                    "cursor_token": state.cursor_token,
                    "events_ingested": state.events_ingested
                },
                original_exception=e
            )

        logger.debug(f"Checkpoint saved at {state.events_ingested} events")

    async def load(self) -> Optional[CheckpointState]:
        """Most recent checkpoint, or None on a fresh start"""
        rows = await self._latest(1)
        if not rows:
            return None
        row = rows[0]
        return CheckpointState(
            cursor_token=row.cursor_value,
            events_ingested=int(row.events_ingested or 0)
        )

    async def history(self, limit: int = 10) -> List[CursorCheckpoint]:
        return await self._latest(limit)

    async def _latest(self, limit: int) -> List[CursorCheckpoint]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(CursorCheckpoint)
                    .order_by(CursorCheckpoint.updated_at.desc(), CursorCheckpoint.id.desc())
                    .limit(limit)
                )
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as e:
            raise CheckpointError(
                "Failed to load checkpoint",
                context={"operation": "load"},
                original_exception=e
            )
