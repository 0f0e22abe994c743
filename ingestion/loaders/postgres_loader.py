"""
Load canonical rows into PostgreSQL through a staging table (idempotent merge)
"""

from typing import List, Sequence
from sqlalchemy import insert, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from models.events import IngestedEvent, staging_events
from schemas.events import CanonicalRow
from core.exceptions import WriteError
import logging

logger = logging.getLogger(__name__)


class BatchWriter:
    """
    Buffer canonical rows and flush them as one idempotent bulk merge.

    Ensures:
    - No duplicate rows when the same event id arrives twice
    - All-or-nothing batches (one transaction per flush)
    - The buffer survives a failed flush so it can be retried
    - Bounded memory: add() flushes synchronously at the batch threshold
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        batch_size: int = 5000
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.session_factory = session_factory
        self.batch_size = batch_size
        self._buffer: List[CanonicalRow] = []

        self.rows_flushed = 0
        self.rows_inserted = 0

    @property
    def pending(self) -> int:
        """Rows buffered but not yet committed"""
        return len(self._buffer)

    async def add(self, rows: Sequence[CanonicalRow]) -> None:
        """
        Buffer rows, flushing whenever the buffer reaches batch_size.

        Returns only after any triggered flush has committed.
        """
        for row in rows:
            self._buffer.append(row)
            if len(self._buffer) >= self.batch_size:
                await self.flush()

    async def flush(self) -> int:
        """
        Stage, merge and clear the buffered rows in a single transaction.

        Returns:
            Number of rows that were new to the destination table

        Raises:
            WriteError: If the transaction failed; nothing was written and
                the buffer is left intact
        """
        if not self._buffer:
            return 0

        batch = list(self._buffer)
        step = "STAGE"

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    # 1. Bulk insert into the unlogged staging table
                    await session.execute(
                        insert(staging_events),
                        [row.to_db_row() for row in batch]
                    )

                    # 2. Merge staging -> destination, skipping known ids
                    step = "MERGE"
                    columns = ["id", "event_type", "timestamp", "data"]
                    merge = pg_insert(IngestedEvent).from_select(
                        columns,
                        select(*(staging_events.c[name] for name in columns))
                    ).on_conflict_do_nothing(index_elements=["id"])
                    result = await session.execute(merge)
                    inserted = max(result.rowcount or 0, 0)

                    # 3. Empty staging for the next batch
                    step = "TRUNCATE"
                    await session.execute(text("TRUNCATE staging_events"))

        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Flush of {len(batch)} rows failed during {step}: {str(e)}")
            raise WriteError(
                "Failed to write batch",
                context={
                    "operation": step,
                    "table_name": IngestedEvent.__tablename__,
                    "batch_size": len(batch)
                },
                original_exception=e
            )

        # Committed: only now drop the rows from memory
        del self._buffer[:len(batch)]
        self.rows_flushed += len(batch)
        self.rows_inserted += inserted

        logger.info(
            f"Flushed {len(batch)} rows ({inserted} new, "
            f"{len(batch) - inserted} duplicates skipped)"
        )
        return inserted

    async def close(self) -> None:
        """Flush whatever is left"""
        await self.flush()
