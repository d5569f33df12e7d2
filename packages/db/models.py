"""SQLModel table definitions for the incident ticket data layer."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


class TicketTable(SQLModel, table=True):
    """Incident reports imported from the NOC feed."""

    __tablename__ = "incident_reports"

    tt_number: str = Field(sa_column=Column(String(64), primary_key=True))
    status: str | None = Field(default=None, sa_column=Column(String(50), nullable=True, index=True))
    severity: str | None = Field(default=None, sa_column=Column(String(50), nullable=True))
    event_name: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    source_input: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    system_rca: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    open_time: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True, index=True)
    )
    last_status_update: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    cleared_date: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    site_id: str | None = Field(default=None, sa_column=Column(String(64), nullable=True))
    site_name: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    circle: str | None = Field(default=None, sa_column=Column(String(100), nullable=True))
    cluster: str | None = Field(default=None, sa_column=Column(String(100), nullable=True))
    technician: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    supervisor: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    cluster_engineer: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    cluster_incharge: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    details: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))


class TicketAttachmentTable(SQLModel, table=True):
    """Metadata for files uploaded against a ticket."""

    __tablename__ = "ticket_attachments"

    attachment_id: int | None = Field(
        default=None, sa_column=Column(Integer, primary_key=True, autoincrement=True)
    )
    tt_number: str = Field(
        sa_column=Column(String(64), ForeignKey("incident_reports.tt_number"), nullable=False, index=True)
    )
    original_filename: str = Field(sa_column=Column(String(255), nullable=False))
    stored_filename: str = Field(sa_column=Column(String(255), nullable=False))
    file_path: str = Field(sa_column=Column(Text, nullable=False))
    file_size: int = Field(sa_column=Column(BigInteger, nullable=False))
    mime_type: str = Field(sa_column=Column(String(100), nullable=False))
    uploaded_by: str = Field(sa_column=Column(String(255), nullable=False))
    uploaded_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketActivityTable(SQLModel, table=True):
    """Append-only history of lifecycle actions on a ticket."""

    __tablename__ = "ticket_activities"

    activity_id: int | None = Field(
        default=None, sa_column=Column(Integer, primary_key=True, autoincrement=True)
    )
    tt_number: str = Field(
        sa_column=Column(String(64), ForeignKey("incident_reports.tt_number"), nullable=False, index=True)
    )
    activity_type: str = Field(sa_column=Column(String(50), nullable=False))
    old_value: str | None = Field(default=None, sa_column=Column(String(50), nullable=True))
    new_value: str | None = Field(default=None, sa_column=Column(String(50), nullable=True))
    remarks: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    attachment_id: int | None = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("ticket_attachments.attachment_id"), nullable=True),
    )
    created_by: str = Field(sa_column=Column(String(255), nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
