"""
Pydantic schemas for events, pages and checkpoints flowing through the engine
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

RawRecord = Dict[str, Any]


class CanonicalRow(BaseModel):
    """
    A source event projected into the destination shape.

    Ensures:
    - id is present and non-empty (it is the dedup key)
    - occurred_at is timezone-aware when present
    - payload is the full original record, untouched
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    category: Optional[str] = None
    occurred_at: Optional[datetime] = None
    payload: Dict[str, Any]

    @field_validator("id")
    @classmethod
    def id_not_blank(cls, v):
        if not v.strip():
            raise ValueError("id cannot be blank")
        return v

    @field_validator("occurred_at")
    @classmethod
    def require_timezone(cls, v):
        if v is not None and v.tzinfo is None:
            raise ValueError("occurred_at must be timezone-aware")
        return v

    def to_db_row(self) -> Dict[str, Any]:
        """Column mapping used by the staging bulk insert"""
        return {
            "id": self.id,
            "event_type": self.category,
            "timestamp": self.occurred_at,
            "data": self.payload,
        }


class FetchPage(BaseModel):
    """One page of raw records returned by the source"""

    records: List[RawRecord] = Field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = None


class PaginationInfo(BaseModel):
    """pagination block of the source's page response"""

    model_config = ConfigDict(populate_by_name=True)

    has_more: bool = Field(..., alias="hasMore")
    next_cursor: Optional[str] = Field(None, alias="nextCursor")


class EventsPageResponse(BaseModel):
    """Wire shape of GET /events: {"data": [...], "pagination": {...}}"""

    data: List[RawRecord]
    pagination: PaginationInfo

    def to_page(self) -> FetchPage:
        return FetchPage(
            records=self.data,
            has_more=self.pagination.has_more,
            next_cursor=self.pagination.next_cursor,
        )


class CheckpointState(BaseModel):
    """
    Resume position plus progress counter.

    cursor_token None means no page has been fetched yet; it is distinct from
    an empty token. The token is opaque and never parsed.
    """

    model_config = ConfigDict(frozen=True)

    cursor_token: Optional[str] = None
    events_ingested: int = Field(0, ge=0)

    @classmethod
    def fresh(cls) -> "CheckpointState":
        return cls(cursor_token=None, events_ingested=0)

    def advance(self, next_cursor: Optional[str], count: int) -> "CheckpointState":
        """Return the state after a page of `count` rows ending at `next_cursor`"""
        if count < 0:
            raise ValueError("count must not be negative")
        return CheckpointState(
            cursor_token=next_cursor if next_cursor is not None else self.cursor_token,
            events_ingested=self.events_ingested + count,
        )
