"""
Pydantic schemas for data validation and serialization.

This package defines Pydantic models used at the engine's boundaries:

Schemas:
    events: Canonical rows, fetched pages, the source's wire format and
        the checkpoint state
    api: Status API response models

Usage:
    from schemas.events import CanonicalRow, CheckpointState, FetchPage
    from schemas.api import HealthCheckResponse, StatsResponse

Example:
    state = CheckpointState.fresh()
    state = state.advance("cursor-abc", 3)

    assert state.events_ingested == 3
"""

__all__ = [
    "CanonicalRow",
    "FetchPage",
    "EventsPageResponse",
    "CheckpointState",
    "HealthCheckResponse",
    "StatsResponse",
]
