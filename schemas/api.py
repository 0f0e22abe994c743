"""
Pydantic schemas for status API responses
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List, Dict
from datetime import datetime, timezone
from uuid import UUID
from models.base import RunStatus, PacingMode


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CheckpointInfo(BaseModel):
    """Latest persisted cursor checkpoint"""
    model_config = ConfigDict(from_attributes=True)

    cursor_value: str
    events_ingested: int
    updated_at: Optional[datetime] = None


class IngestionRunSummary(BaseModel):
    """One row of ingestion run history"""
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    run_id: UUID
    status: RunStatus
    mode: PacingMode
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    events_ingested: int = 0
    error_message: Optional[str] = None


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field("healthy", description="Overall system status: healthy, unhealthy")
    timestamp: datetime = Field(default_factory=_utcnow)
    database_connected: bool
    latest_checkpoint: Optional[CheckpointInfo] = None

    @model_validator(mode="after")
    def determine_status(self):
        """Unhealthy whenever the database is unreachable"""
        self.status = "healthy" if self.database_connected else "unhealthy"
        return self


class StatsResponse(BaseModel):
    """Ingestion statistics"""
    request_id: str
    total_events: int
    events_by_type: Dict[str, int] = Field(default_factory=dict)
    latest_checkpoint: Optional[CheckpointInfo] = None
    recent_runs: List[IngestionRunSummary] = Field(default_factory=list)
