from sqlalchemy import Column, Integer, Text, DateTime, BigInteger, Index, func
from models.base import Base


class CursorCheckpoint(Base):
    """
    Append-only history of pagination checkpoints.

    Purpose:
    - Resume ingestion from the last durably written page
    - Keep an audit trail of progress over time

    Design:
    - Every save inserts a row; the newest row (updated_at, then id) wins
    - cursor_value is the source's opaque token, stored verbatim
    """
    __tablename__ = "cursor_state"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cursor_value = Column(Text, nullable=False)
    events_ingested = Column(BigInteger, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_cursor_state_updated", "updated_at"),
    )
