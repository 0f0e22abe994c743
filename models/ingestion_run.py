from sqlalchemy import Column, BigInteger, Enum, DateTime, Float, Text, Index
from sqlalchemy.dialects.postgresql import UUID
from datetime import datetime, timezone
import uuid
from models.base import Base, RunStatus, PacingMode


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


def _utcnow():
    return datetime.now(timezone.utc)


class IngestionRun(Base):
    """
    Tracks metadata for each ingestion process run.

    Purpose:
    - Audit trail of runs and how each one ended
    - Throughput monitoring
    - Operator hint when a stream token expired
    """
    __tablename__ = "ingestion_runs"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    run_id = Column(UUID(as_uuid=True), default=uuid.uuid4, unique=True, nullable=False, index=True)

    status = Column(Enum(RunStatus, name="run_status", values_callable=_enum_values), default=RunStatus.RUNNING, nullable=False, index=True)
    mode = Column(Enum(PacingMode, name="pacing_mode", values_callable=_enum_values), nullable=False)

    # Timestamps
    started_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_seconds = Column(Float, nullable=True)

    # Statistics
    events_ingested = Column(BigInteger, default=0)

    # Checkpoint info
    cursor_before = Column(Text, nullable=True)
    cursor_after = Column(Text, nullable=True)

    error_message = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_ingestion_run_started", "started_at"),
    )
