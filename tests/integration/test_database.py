"""
Integration tests against a real PostgreSQL database.

Skipped when TEST_DATABASE_URL is unreachable.
"""

import pytest
from sqlalchemy import func, select
from ingestion.checkpoint import CheckpointStore
from ingestion.loaders.postgres_loader import BatchWriter
from ingestion.pacing import OverlappedPacing
from ingestion.run_ledger import RunLedger
from ingestion.runner import IngestionRunner
from ingestion.transformers.normalizer import normalize_events
from models.base import PacingMode, RunStatus
from models.events import IngestedEvent, staging_events
from models.ingestion_run import IngestionRun
from schemas.events import CheckpointState
from tests.fakes import FakeFetcher, make_page


async def count_events(session_factory):
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(IngestedEvent))
        return result.scalar()


class TestBatchWriterIntegration:

    @pytest.mark.asyncio
    async def test_writing_same_rows_twice_is_idempotent(self, session_factory, sample_events):
        rows = normalize_events(sample_events)
        writer = BatchWriter(session_factory, batch_size=100)

        await writer.add(rows)
        first = await writer.flush()
        await writer.add(rows)
        second = await writer.flush()

        assert first == 3
        assert second == 0
        assert await count_events(session_factory) == 3

    @pytest.mark.asyncio
    async def test_staging_is_empty_after_flush(self, session_factory, sample_events):
        writer = BatchWriter(session_factory, batch_size=2)

        await writer.add(normalize_events(sample_events))
        await writer.close()

        async with session_factory() as session:
            staged = await session.execute(select(func.count()).select_from(staging_events))
            assert staged.scalar() == 0
        assert await count_events(session_factory) == 3

    @pytest.mark.asyncio
    async def test_payload_and_timestamp_are_stored(self, session_factory, sample_events):
        writer = BatchWriter(session_factory)
        await writer.add(normalize_events(sample_events[:1]))
        await writer.flush()

        async with session_factory() as session:
            event = (await session.execute(select(IngestedEvent))).scalar_one()

        assert event.id == "evt_001"
        assert event.event_type == "click"
        assert event.data["user"] == "u1"
        assert event.timestamp.tzinfo is not None


class TestCheckpointStoreIntegration:

    @pytest.mark.asyncio
    async def test_load_returns_newest(self, session_factory):
        store = CheckpointStore(session_factory)

        assert await store.load() is None

        await store.save(CheckpointState(cursor_token="c1", events_ingested=10))
        await store.save(CheckpointState(cursor_token="c2", events_ingested=20))

        assert await store.load() == CheckpointState(cursor_token="c2", events_ingested=20)
        assert len(await store.history()) == 2


class TestRunnerIntegration:

    @pytest.mark.asyncio
    async def test_full_run_then_resume(self, session_factory):
        store = CheckpointStore(session_factory)
        ledger = RunLedger(session_factory)

        first = IngestionRunner(
            fetcher=FakeFetcher([
                make_page(["a", "b"], "c1", has_more=True),
                make_page(["c"], "c2", has_more=True),
                make_page(["d"], "c3", has_more=False),
            ]),
            writer=BatchWriter(session_factory, batch_size=2),
            checkpoints=store,
            pacing=OverlappedPacing(),
            checkpoint_interval=2,
            run_ledger=ledger,
        )
        result = await first.run()

        assert result["events_ingested"] == 4
        assert await count_events(session_factory) == 4
        assert await store.load() == CheckpointState(cursor_token="c3", events_ingested=4)

        # A restart that re-serves an already written page must not duplicate rows
        fetcher = FakeFetcher([make_page(["d", "e"], "c4", has_more=False)])
        second = IngestionRunner(
            fetcher=fetcher,
            writer=BatchWriter(session_factory),
            checkpoints=store,
            pacing=OverlappedPacing(),
            run_ledger=ledger,
        )
        await second.run()

        assert fetcher.calls == ["c3"]
        assert await count_events(session_factory) == 5

        runs = await ledger.recent()
        assert len(runs) == 2
        assert all(run.status is RunStatus.SUCCESS for run in runs)
        assert all(run.mode is PacingMode.OVERLAPPED for run in runs)


class TestRunLedgerIntegration:

    @pytest.mark.asyncio
    async def test_start_and_complete(self, session_factory):
        ledger = RunLedger(session_factory)

        run_id = await ledger.start(PacingMode.STANDARD, None)
        await ledger.complete(
            run_id,
            RunStatus.CREDENTIAL_EXPIRED,
            events_ingested=7,
            cursor_after="c9",
            error_message="token expired"
        )

        async with session_factory() as session:
            run = (await session.execute(
                select(IngestionRun).where(IngestionRun.run_id == run_id)
            )).scalar_one()

        assert run.status is RunStatus.CREDENTIAL_EXPIRED
        assert run.events_ingested == 7
        assert run.cursor_after == "c9"
        assert run.duration_seconds >= 0
