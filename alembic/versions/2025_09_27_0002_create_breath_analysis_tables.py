"""create breath analysis tables

Revision ID: 2025_09_27_0002
Revises: 2025_09_25_0001
Create Date: 2025-09-27
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "2025_09_27_0002"
down_revision = "2025_09_25_0001"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "breath_sessions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column(
            "device_id",
            sa.String(length=36),
            sa.ForeignKey("devices.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("baseline_tvoc", sa.Float(), nullable=True),
        sa.Column("baseline_eco2", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_breath_sessions_user_id", "breath_sessions", ["user_id"], unique=False
    )
    op.create_index(
        "ix_breath_sessions_device_id", "breath_sessions", ["device_id"], unique=False
    )

    op.create_table(
        "breath_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "session_id",
            sa.String(length=36),
            sa.ForeignKey("breath_sessions.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("peak_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("peak_tvoc", sa.Float(), nullable=True),
        sa.Column("peak_eco2", sa.Float(), nullable=True),
        sa.Column("baseline_tvoc", sa.Float(), nullable=False),
        sa.Column("baseline_eco2", sa.Float(), nullable=False),
        sa.Column("is_complete", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_breath_events_session_id", "breath_events", ["session_id"], unique=False
    )

    op.create_table(
        "breath_metrics",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "session_id",
            sa.String(length=36),
            sa.ForeignKey("breath_sessions.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "event_id",
            sa.String(length=36),
            sa.ForeignKey("breath_events.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("metric_type", sa.String(length=10), nullable=False),
        sa.Column("baseline", sa.Float(), nullable=False),
        sa.Column("peak", sa.Float(), nullable=False),
        sa.Column("peak_percent", sa.Float(), nullable=False),
        sa.Column("time_to_peak", sa.Float(), nullable=True),
        sa.Column("slope", sa.Float(), nullable=True),
        sa.Column("recovery_time", sa.Float(), nullable=True),
        sa.Column("threshold", sa.Float(), nullable=True),
        sa.Column("calculated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_breath_metrics_session_id", "breath_metrics", ["session_id"], unique=False
    )
    op.create_index(
        "ix_breath_metrics_event_id", "breath_metrics", ["event_id"], unique=False
    )


def downgrade():
    op.drop_index("ix_breath_metrics_event_id", table_name="breath_metrics")
    op.drop_index("ix_breath_metrics_session_id", table_name="breath_metrics")
    op.drop_table("breath_metrics")

    op.drop_index("ix_breath_events_session_id", table_name="breath_events")
    op.drop_table("breath_events")

    op.drop_index("ix_breath_sessions_device_id", table_name="breath_sessions")
    op.drop_index("ix_breath_sessions_user_id", table_name="breath_sessions")
    op.drop_table("breath_sessions")
