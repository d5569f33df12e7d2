"""Initial incident ticket schema."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20250301_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "incident_reports",
        sa.Column("tt_number", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("status", sa.String(length=50), nullable=True),
        sa.Column("severity", sa.String(length=50), nullable=True),
        sa.Column("event_name", sa.String(length=255), nullable=True),
        sa.Column("source_input", sa.Text(), nullable=True),
        sa.Column("system_rca", sa.Text(), nullable=True),
        sa.Column("open_time", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("last_status_update", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("cleared_date", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("site_id", sa.String(length=64), nullable=True),
        sa.Column("site_name", sa.String(length=255), nullable=True),
        sa.Column("circle", sa.String(length=100), nullable=True),
        sa.Column("cluster", sa.String(length=100), nullable=True),
        sa.Column("technician", sa.String(length=255), nullable=True),
        sa.Column("supervisor", sa.String(length=255), nullable=True),
        sa.Column("cluster_engineer", sa.String(length=255), nullable=True),
        sa.Column("cluster_incharge", sa.String(length=255), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
    )
    op.create_index("ix_incident_reports_status", "incident_reports", ["status"])
    op.create_index("ix_incident_reports_open_time", "incident_reports", ["open_time"])

    op.create_table(
        "ticket_attachments",
        sa.Column("attachment_id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column(
            "tt_number",
            sa.String(length=64),
            sa.ForeignKey("incident_reports.tt_number", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("original_filename", sa.String(length=255), nullable=False),
        sa.Column("stored_filename", sa.String(length=255), nullable=False),
        sa.Column("file_path", sa.Text(), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("mime_type", sa.String(length=100), nullable=False),
        sa.Column("uploaded_by", sa.String(length=255), nullable=False),
        sa.Column("uploaded_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_ticket_attachments_tt_number", "ticket_attachments", ["tt_number"])

    op.create_table(
        "ticket_activities",
        sa.Column("activity_id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column(
            "tt_number",
            sa.String(length=64),
            sa.ForeignKey("incident_reports.tt_number", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("activity_type", sa.String(length=50), nullable=False),
        sa.Column("old_value", sa.String(length=50), nullable=True),
        sa.Column("new_value", sa.String(length=50), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column(
            "attachment_id",
            sa.Integer(),
            sa.ForeignKey("ticket_attachments.attachment_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_ticket_activities_tt_number", "ticket_activities", ["tt_number"])


def downgrade() -> None:
    op.drop_index("ix_ticket_activities_tt_number", table_name="ticket_activities")
    op.drop_table("ticket_activities")
    op.drop_index("ix_ticket_attachments_tt_number", table_name="ticket_attachments")
    op.drop_table("ticket_attachments")
    op.drop_index("ix_incident_reports_open_time", table_name="incident_reports")
    op.drop_index("ix_incident_reports_status", table_name="incident_reports")
    op.drop_table("incident_reports")
