"""
Test doubles and builders shared by the unit tests
"""

import asyncio
from typing import List, Optional

from core.exceptions import WriteError
from schemas.events import CanonicalRow, CheckpointState, FetchPage


def make_page(ids, next_cursor: Optional[str], has_more: bool) -> FetchPage:
    return FetchPage(
        records=[{"id": i, "type": "click"} for i in ids],
        has_more=has_more,
        next_cursor=next_cursor,
    )


def make_rows(ids) -> List[CanonicalRow]:
    return [CanonicalRow(id=i, category="click", payload={"id": i}) for i in ids]


# ============================================================================
# In-memory collaborators for runner tests
# ============================================================================

class FakeFetcher:
    """Serves a scripted list of pages (or exceptions) and records cursors"""

    def __init__(self, pages, privileged: bool = False):
        self.pages = list(pages)
        self.privileged = privileged
        self.calls = []

    async def fetch_page(self, page_size, cursor=None):
        self.calls.append(cursor)
        await asyncio.sleep(0)
        item = self.pages.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


class FakeWriter:
    """BatchWriter stand-in that commits to a list"""

    def __init__(self, batch_size: int = 1000, fetcher: Optional[FakeFetcher] = None):
        self.batch_size = batch_size
        self.fetcher = fetcher
        self.buffer = []
        self.committed = []
        self.flushes = 0
        self.fail_flush = False
        self.fetches_seen_at_add = []

    @property
    def pending(self):
        return len(self.buffer)

    async def add(self, rows):
        await asyncio.sleep(0)
        if self.fetcher is not None:
            self.fetches_seen_at_add.append(len(self.fetcher.calls))
        for row in rows:
            self.buffer.append(row)
            if len(self.buffer) >= self.batch_size:
                await self.flush()

    async def flush(self):
        if not self.buffer:
            return 0
        if self.fail_flush:
            raise WriteError("Simulated flush failure", context={"batch_size": len(self.buffer)})
        self.committed.extend(self.buffer)
        count = len(self.buffer)
        self.buffer = []
        self.flushes += 1
        return count

    async def close(self):
        await self.flush()


class FakeCheckpointStore:
    """CheckpointStore stand-in; remembers what was committed at each save"""

    def __init__(self, initial: Optional[CheckpointState] = None, writer: Optional[FakeWriter] = None):
        self.initial = initial
        self.writer = writer
        self.saved: List[CheckpointState] = []
        self.committed_at_save: List[int] = []

    async def load(self):
        if self.saved:
            return self.saved[-1]
        return self.initial

    async def save(self, state: CheckpointState):
        self.saved.append(state)
        if self.writer is not None:
            self.committed_at_save.append(len(self.writer.committed))
