"""
Resumable ingestion engine for the paginated events API.

This package contains every component of the fetch -> normalize -> write ->
checkpoint loop:

Modules:
    checkpoint: Cursor checkpoint persistence (resume position + progress counter)
    runner: Orchestrator that drives the loop and owns the drain sequence
    pacing: Standard (rate limited) and overlapped (read-ahead) pacing policies
    progress: Throughput and ETA tracking
    run_ledger: Per-run bookkeeping in the ingestion_runs table

Subpackages:
    extractors: Events API client and its response classification policy
    transformers: Raw record -> canonical row normalization
    loaders: Staging-table batch writer with idempotent merge

Architecture:
    1. Fetch - One page at a time; retries, rate-limit waits and cursor
       restarts are absorbed inside the client
    2. Normalize - Fail-fast per page; a bad record fails the page
    3. Write - Buffered, flushed in one transaction per batch
    4. Checkpoint - Advanced only past committed rows

Usage:
    from ingestion.extractors.events_api import EventsAPIClient
    from ingestion.loaders.postgres_loader import BatchWriter
    from ingestion.checkpoint import CheckpointStore
    from ingestion.pacing import select_pacing
    from ingestion.runner import IngestionRunner

Example:
    async with EventsAPIClient.from_settings(settings) as client:
        runner = IngestionRunner(
            fetcher=client,
            writer=BatchWriter(session_factory, settings.BATCH_SIZE),
            checkpoints=CheckpointStore(session_factory),
            pacing=select_pacing(client.privileged),
        )
        result = await runner.run()

    print(f"Ingested {result['events_ingested']} events")

Error Handling:
    All components raise exceptions from core.exceptions. The runner drains
    (flush + checkpoint) before re-raising, so a restart resumes from the
    last durably written page.
"""

__all__ = [
    "IngestionRunner",
    "RunnerState",
    "EventsAPIClient",
    "BatchWriter",
    "CheckpointStore",
    "RunLedger",
    "PacingPolicy",
    "StandardPacing",
    "OverlappedPacing",
    "ProgressTracker",
    "normalize_event",
    "normalize_events",
]
