"""initial ingestion schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "ingested_events",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("event_type", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("data", postgresql.JSONB(), nullable=False),
        sa.Column("ingested_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_ingested_events_type", "ingested_events", ["event_type"])

    op.create_table(
        "staging_events",
        sa.Column("id", sa.Text()),
        sa.Column("event_type", sa.Text()),
        sa.Column("timestamp", sa.DateTime(timezone=True)),
        sa.Column("data", postgresql.JSONB(), nullable=False),
        prefixes=["UNLOGGED"],
    )

    op.create_table(
        "cursor_state",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("cursor_value", sa.Text(), nullable=False),
        sa.Column("events_ingested", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_cursor_state_updated", "cursor_state", ["updated_at"])

    run_status = postgresql.ENUM(
        "running", "success", "cancelled", "credential_expired", "failed",
        name="run_status"
    )
    pacing_mode = postgresql.ENUM("standard", "overlapped", name="pacing_mode")

    op.create_table(
        "ingestion_runs",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("run_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", run_status, nullable=False),
        sa.Column("mode", pacing_mode, nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_seconds", sa.Float(), nullable=True),
        sa.Column("events_ingested", sa.BigInteger(), nullable=True),
        sa.Column("cursor_before", sa.Text(), nullable=True),
        sa.Column("cursor_after", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_ingestion_runs_run_id", "ingestion_runs", ["run_id"], unique=True)
    op.create_index("ix_ingestion_runs_status", "ingestion_runs", ["status"])
    op.create_index("idx_ingestion_run_started", "ingestion_runs", ["started_at"])


def downgrade():
    op.drop_table("ingestion_runs")
    op.execute("DROP TYPE IF EXISTS run_status")
    op.execute("DROP TYPE IF EXISTS pacing_mode")
    op.drop_table("cursor_state")
    op.drop_table("staging_events")
    op.drop_table("ingested_events")
