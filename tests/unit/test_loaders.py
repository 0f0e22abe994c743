"""
Unit tests for the staging-table batch writer
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from core.exceptions import WriteError
from ingestion.loaders.postgres_loader import BatchWriter
from tests.fakes import make_rows


def async_cm(value=None):
    cm = MagicMock()
    cm.__aenter__ = AsyncMock(return_value=value)
    cm.__aexit__ = AsyncMock(return_value=False)
    return cm


@pytest.fixture
def mock_session():
    session = MagicMock()
    session.begin = MagicMock(side_effect=lambda: async_cm())
    session.execute = AsyncMock(return_value=MagicMock(rowcount=0))
    return session


@pytest.fixture
def mock_session_factory(mock_session):
    return MagicMock(side_effect=lambda: async_cm(mock_session))


class TestBatchWriter:

    def test_rejects_zero_batch_size(self, mock_session_factory):
        with pytest.raises(ValueError):
            BatchWriter(mock_session_factory, batch_size=0)

    @pytest.mark.asyncio
    async def test_add_below_threshold_only_buffers(self, mock_session_factory, mock_session):
        writer = BatchWriter(mock_session_factory, batch_size=5)

        await writer.add(make_rows(["a", "b"]))

        assert writer.pending == 2
        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_add_at_threshold_flushes_before_returning(self, mock_session_factory, mock_session):
        writer = BatchWriter(mock_session_factory, batch_size=3)
        mock_session.execute.side_effect = [
            MagicMock(),
            MagicMock(rowcount=3),
            MagicMock(),
        ]

        await writer.add(make_rows(["a", "b", "c"]))

        assert writer.pending == 0
        assert writer.rows_flushed == 3
        assert writer.rows_inserted == 3
        assert mock_session.execute.await_count == 3

    @pytest.mark.asyncio
    async def test_flush_stages_merges_and_truncates(self, mock_session_factory, mock_session):
        writer = BatchWriter(mock_session_factory, batch_size=10)
        mock_session.execute.side_effect = [
            MagicMock(),
            MagicMock(rowcount=1),
            MagicMock(),
        ]
        await writer.add(make_rows(["a", "b"]))

        inserted = await writer.flush()

        assert inserted == 1
        stage_call, merge_call, truncate_call = mock_session.execute.await_args_list
        staged_rows = stage_call.args[1]
        assert [r["id"] for r in staged_rows] == ["a", "b"]
        assert set(staged_rows[0]) == {"id", "event_type", "timestamp", "data"}
        assert "ON CONFLICT (id) DO NOTHING" in str(
            merge_call.args[0].compile(dialect=_postgres_dialect())
        )
        assert "TRUNCATE staging_events" in str(truncate_call.args[0])

    @pytest.mark.asyncio
    async def test_flush_empty_buffer_is_noop(self, mock_session_factory):
        writer = BatchWriter(mock_session_factory)

        assert await writer.flush() == 0
        mock_session_factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_flush_keeps_buffer(self, mock_session_factory, mock_session):
        writer = BatchWriter(mock_session_factory, batch_size=10)
        mock_session.execute.side_effect = SQLAlchemyError("connection lost")
        await writer.add(make_rows(["a", "b"]))

        with pytest.raises(WriteError) as exc_info:
            await writer.flush()

        assert writer.pending == 2
        assert writer.rows_flushed == 0
        assert exc_info.value.context["operation"] == "STAGE"
        assert exc_info.value.context["batch_size"] == 2

    @pytest.mark.asyncio
    async def test_failed_merge_reports_step(self, mock_session_factory, mock_session):
        writer = BatchWriter(mock_session_factory, batch_size=10)
        mock_session.execute.side_effect = [
            MagicMock(),
            OperationalError("INSERT", {}, Exception("deadlock")),
        ]
        await writer.add(make_rows(["a"]))

        with pytest.raises(WriteError) as exc_info:
            await writer.flush()

        assert exc_info.value.context["operation"] == "MERGE"
        assert writer.pending == 1

    @pytest.mark.asyncio
    async def test_flush_can_be_retried_after_failure(self, mock_session_factory, mock_session):
        writer = BatchWriter(mock_session_factory, batch_size=10)
        await writer.add(make_rows(["a", "b"]))

        mock_session.execute.side_effect = SQLAlchemyError("down")
        with pytest.raises(WriteError):
            await writer.flush()

        mock_session.execute.side_effect = [
            MagicMock(),
            MagicMock(rowcount=2),
            MagicMock(),
        ]
        assert await writer.flush() == 2
        assert writer.pending == 0

    @pytest.mark.asyncio
    async def test_duplicates_are_not_counted_as_inserted(self, mock_session_factory, mock_session):
        writer = BatchWriter(mock_session_factory, batch_size=10)
        mock_session.execute.side_effect = [
            MagicMock(),
            MagicMock(rowcount=0),
            MagicMock(),
        ]
        await writer.add(make_rows(["a", "b"]))

        assert await writer.flush() == 0
        assert writer.rows_flushed == 2
        assert writer.rows_inserted == 0

    @pytest.mark.asyncio
    async def test_close_flushes_remaining(self, mock_session_factory, mock_session):
        writer = BatchWriter(mock_session_factory, batch_size=10)
        await writer.add(make_rows(["a"]))

        await writer.close()

        assert writer.pending == 0
        assert mock_session.execute.await_count == 3


def _postgres_dialect():
    from sqlalchemy.dialects import postgresql
    return postgresql.dialect()
