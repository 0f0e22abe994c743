from sqlalchemy import Column, Text, DateTime, Index, Table, func
from sqlalchemy.dialects.postgresql import JSONB
from models.base import Base


class IngestedEvent(Base):
    """
    Durable destination table for source events.

    Design:
    - One row per source event id; the primary key is the dedup key
    - data keeps the full original record
    - Rows are only ever inserted through the staging merge, never updated
    """
    __tablename__ = "ingested_events"

    id = Column(Text, primary_key=True)
    event_type = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=True)
    data = Column(JSONB, nullable=False)
    ingested_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_ingested_events_type", "event_type"),
    )


# Holding table for the bulk-load pass. UNLOGGED and without a uniqueness
# constraint; truncated inside the same transaction that merges it.
staging_events = Table(
    "staging_events",
    Base.metadata,
    Column("id", Text),
    Column("event_type", Text),
    Column("timestamp", DateTime(timezone=True)),
    Column("data", JSONB, nullable=False),
    prefixes=["UNLOGGED"],
)
