"""
SQLAlchemy ORM models for database tables.

This package defines the destination schema using SQLAlchemy ORM models:

Models:
    base: Base declarative class and shared enums (RunStatus, PacingMode)
    events: Durable ingested_events table and the UNLOGGED staging_events table
    checkpoint: Append-only cursor checkpoint history
    ingestion_run: Per-run tracking and metrics

Database Schema:
    All models inherit from the Base declarative class and use
    PostgreSQL-specific features (JSONB, UNLOGGED tables, ON CONFLICT).

Usage:
    from models import IngestedEvent, CursorCheckpoint, IngestionRun
    from models.events import staging_events

Relationships:
    - staging_events -> ingested_events (merged per batch, keyed on id)
    - cursor_state rows describe progress through ingested_events
"""

from models.base import Base, RunStatus, PacingMode
from models.events import IngestedEvent, staging_events
from models.checkpoint import CursorCheckpoint
from models.ingestion_run import IngestionRun

__all__ = [
    "Base",
    "RunStatus",
    "PacingMode",
    "IngestedEvent",
    "staging_events",
    "CursorCheckpoint",
    "IngestionRun",
]
