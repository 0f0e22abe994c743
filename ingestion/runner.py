# ============================================================================
# File: ingestion/runner.py
# Description: Resumable ingestion orchestrator
# ============================================================================
"""
Ingestion Runner - drives the fetch -> normalize -> write -> checkpoint loop.

This module provides crash-safe orchestration with:
- Resume from the last persisted cursor checkpoint
- Pacing chosen once at startup (sequential vs. one page of read-ahead)
- Checkpoints that only advance past rows that have committed
- Cooperative cancellation observed at page boundaries
- A drain sequence (flush + persist) on every exit path
"""

from typing import Any, Callable, Dict, Optional
import asyncio
import enum
import logging
import time

from core.exceptions import CredentialExpiredError, IngestionError
from ingestion.checkpoint import CheckpointStore
from ingestion.extractors.events_api import EventsAPIClient
from ingestion.loaders.postgres_loader import BatchWriter
from ingestion.pacing import PacingPolicy
from ingestion.progress import ProgressSnapshot, ProgressTracker
from ingestion.run_ledger import RunLedger
from ingestion.transformers.normalizer import normalize_events
from models.base import RunStatus
from schemas.events import CheckpointState, FetchPage

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressSnapshot], None]


class RunnerState(str, enum.Enum):
    IDLE = "idle"
    RESUMING = "resuming"
    STANDARD_PACING = "standard_pacing"
    OVERLAPPED = "overlapped"
    DRAINING = "draining"
    STOPPED = "stopped"


def _log_progress(snapshot: ProgressSnapshot) -> None:
    logger.info(snapshot.summary())


class IngestionRunner:
    """
    Resumable ingestion orchestrator

    Responsibilities:
    - Load the resume position
    - Fetch pages under the selected pacing policy
    - Normalize and hand rows to the batch writer
    - Advance and persist the checkpoint once rows are durable
    - Drain (flush + persist) before returning or re-raising
    """

    def __init__(
        self,
        fetcher: EventsAPIClient,
        writer: BatchWriter,
        checkpoints: CheckpointStore,
        pacing: PacingPolicy,
        page_size: int = 5000,
        checkpoint_interval: int = 1,
        expected_total: Optional[int] = None,
        run_ledger: Optional[RunLedger] = None,
        on_progress: Optional[ProgressCallback] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.fetcher = fetcher
        self.writer = writer
        self.checkpoints = checkpoints
        self.pacing = pacing
        self.page_size = page_size
        self.checkpoint_interval = max(1, checkpoint_interval)
        self.expected_total = expected_total
        self.run_ledger = run_ledger
        self.on_progress = on_progress or _log_progress
        self._clock = clock

        self.state = RunnerState.IDLE
        self.tracker = ProgressTracker(clock=clock)
        self.pages_fetched = 0
        self.checkpoints_saved = 0

        self._stop_requested = asyncio.Event()
        self._current = CheckpointState.fresh()
        self._persisted = CheckpointState.fresh()

    # --------------------------------------------------
    # Public API
    # --------------------------------------------------

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested.is_set()

    @property
    def checkpoint(self) -> CheckpointState:
        """In-memory state; may be ahead of what is persisted"""
        return self._current

    def stop(self) -> None:
        """Ask the loop to stop at the next page boundary"""
        if not self._stop_requested.is_set():
            logger.info("Stop requested; finishing the current page")
        self._stop_requested.set()

    async def run(self) -> Dict[str, Any]:
        """
        Run ingestion until the source is exhausted, stop() is called, or a
        fatal error occurs.

        Returns:
            Dictionary with run statistics:
            - status: "success" or "cancelled"
            - events_ingested: Total events ingested across all runs
            - events_this_run: Events ingested by this run
            - pages_fetched: Pages fetched by this run
            - cursor: Last persisted cursor token

        Raises:
            CredentialExpiredError: Stream token lapsed; progress is persisted
            IngestionError: Any other fatal error, after draining
        """
        if self.state is not RunnerState.IDLE:
            raise RuntimeError("IngestionRunner.run() can only be called once")

        # --------------------------------------------------
        # RESUMING
        # --------------------------------------------------
        self.state = RunnerState.RESUMING
        try:
            loaded = await self.checkpoints.load()
        except BaseException:
            self.state = RunnerState.STOPPED
            raise

        if loaded is None:
            logger.info("No checkpoint found; starting from the beginning")
            loaded = CheckpointState.fresh()
        else:
            logger.info(
                f"Resuming from checkpoint: {loaded.events_ingested:,} events ingested"
            )

        self._current = loaded
        self._persisted = loaded
        cursor_before = loaded.cursor_token
        self.tracker.start(loaded.events_ingested)

        run_id = None
        if self.run_ledger is not None:
            run_id = await self.run_ledger.start(self.pacing.mode, cursor_before)

        status = RunStatus.FAILED
        error_message = None

        try:
            if self.pacing.max_read_ahead > 0:
                self.state = RunnerState.OVERLAPPED
                logger.info("Pacing: overlapped (one page of read-ahead)")
                await self._run_overlapped()
            else:
                self.state = RunnerState.STANDARD_PACING
                logger.info("Pacing: standard (sequential, rate limited)")
                await self._run_standard()

            self.state = RunnerState.DRAINING
            await self._drain()

        except BaseException as e:
            status = self._status_for(e)
            error_message = str(e)

            if isinstance(e, CredentialExpiredError):
                logger.warning(
                    "Stream token expired. Progress is saved; resume with a new token"
                )
            elif isinstance(e, IngestionError):
                logger.error(
                    f"Ingestion failed: {e.message}",
                    extra={"error_context": e.to_dict()}
                )
            elif not isinstance(e, asyncio.CancelledError):
                logger.exception("Unexpected error in ingestion loop")

            if self.state is not RunnerState.DRAINING:
                self.state = RunnerState.DRAINING
                await self._drain_after_error()
            raise

        else:
            status = RunStatus.CANCELLED if self.stop_requested else RunStatus.SUCCESS

        finally:
            self.state = RunnerState.STOPPED
            if self.run_ledger is not None:
                await self.run_ledger.complete(
                    run_id,
                    status,
                    events_ingested=self.tracker.events_this_run,
                    cursor_after=self._persisted.cursor_token,
                    error_message=error_message
                )

        logger.info(
            f"Ingestion {status.value}: {self._current.events_ingested:,} events total, "
            f"{self.tracker.events_this_run:,} this run, {self.pages_fetched} pages"
        )

        return {
            "status": status.value,
            "events_ingested": self._current.events_ingested,
            "events_this_run": self.tracker.events_this_run,
            "pages_fetched": self.pages_fetched,
            "cursor": self._persisted.cursor_token,
        }

    # --------------------------------------------------
    # Fetch loops
    # --------------------------------------------------

    async def _run_standard(self) -> None:
        cursor = self._current.cursor_token
        last_fetch_started: Optional[float] = None

        while not self.stop_requested:
            if last_fetch_started is not None:
                delay = self.pacing.next_fetch_delay(self._clock() - last_fetch_started)
                if delay > 0 and await self._sleep_unless_stopped(delay):
                    break

            last_fetch_started = self._clock()
            page = await self.fetcher.fetch_page(self.page_size, cursor)
            await self._process_page(page)

            if not page.has_more:
                break
            cursor = self._next_cursor(page, cursor)

    async def _run_overlapped(self) -> None:
        if self.stop_requested:
            return

        cursor = self._current.cursor_token
        in_flight: Optional[asyncio.Task] = asyncio.create_task(
            self.fetcher.fetch_page(self.page_size, cursor)
        )

        try:
            while in_flight is not None:
                page = await in_flight
                in_flight = None

                # Read ahead before processing so the next fetch overlaps the write
                if page.has_more and not self.stop_requested:
                    cursor = self._next_cursor(page, cursor)
                    in_flight = asyncio.create_task(
                        self.fetcher.fetch_page(self.page_size, cursor)
                    )

                await self._process_page(page)

                if in_flight is not None and self.stop_requested:
                    # Let the read-ahead finish, then drop it unprocessed
                    results = await asyncio.gather(in_flight, return_exceptions=True)
                    in_flight = None
                    if isinstance(results[0], BaseException):
                        logger.warning(
                            f"Discarded read-ahead fetch failed during stop: {results[0]}"
                        )
                    break
        finally:
            if in_flight is not None:
                in_flight.cancel()
                await asyncio.gather(in_flight, return_exceptions=True)

    @staticmethod
    def _next_cursor(page: FetchPage, cursor: Optional[str]) -> Optional[str]:
        return page.next_cursor if page.next_cursor is not None else cursor

    async def _sleep_unless_stopped(self, delay: float) -> bool:
        """Sleep up to `delay` seconds; True if stop() was called meanwhile"""
        try:
            await asyncio.wait_for(self._stop_requested.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False

    # --------------------------------------------------
    # Per-page processing
    # --------------------------------------------------

    async def _process_page(self, page: FetchPage) -> None:
        self.pages_fetched += 1

        if page.records:
            rows = normalize_events(page.records)
            await self.writer.add(rows)
            self._current = self._current.advance(page.next_cursor, len(rows))
            await self._maybe_checkpoint()

        self.tracker.update(self._current.events_ingested)
        self.on_progress(self.tracker.snapshot(self.expected_total))

    async def _maybe_checkpoint(self) -> None:
        unsaved = self._current.events_ingested - self._persisted.events_ingested
        if unsaved <= 0:
            return
        if unsaved >= self.checkpoint_interval or self.writer.pending == 0:
            # The checkpoint may only describe committed rows
            await self.writer.flush()
            await self._persist()

    async def _persist(self) -> None:
        if self._current == self._persisted:
            return
        if self._current.cursor_token is None:
            logger.warning("No cursor received yet; checkpoint not saved")
            return
        await self.checkpoints.save(self._current)
        self._persisted = self._current
        self.checkpoints_saved += 1

    # --------------------------------------------------
    # Drain
    # --------------------------------------------------

    async def _drain(self) -> None:
        await self.writer.close()
        await self._persist()

    async def _drain_after_error(self) -> None:
        """Best-effort drain; the original error is what gets raised"""
        try:
            await self.writer.close()
        except Exception as e:
            logger.error(
                f"Final flush failed; {self.writer.pending} rows stay buffered and "
                f"will be re-fetched on restart: {str(e)}"
            )
            return

        try:
            await self._persist()
        except Exception as e:
            logger.error(f"Final checkpoint could not be saved: {str(e)}")

    @staticmethod
    def _status_for(error: BaseException) -> RunStatus:
        if isinstance(error, CredentialExpiredError):
            return RunStatus.CREDENTIAL_EXPIRED
        if isinstance(error, asyncio.CancelledError):
            return RunStatus.CANCELLED
        return RunStatus.FAILED
