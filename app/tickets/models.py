from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Sequence


class ActivityKind(str, Enum):
    """Kinds of entries written to a ticket's activity log."""

    ACKNOWLEDGED = "acknowledged"
    STATUS_UPDATE = "status_update"
    ADD_REMARK = "add_remark"


@dataclass(slots=True)
class Ticket:
    """Incident ticket as imported from the NOC feed."""

    tt_number: str
    status: str | None = None
    severity: str | None = None
    event_name: str | None = None
    source_input: str | None = None
    system_rca: str | None = None
    open_time: datetime | None = None
    last_status_update: datetime | None = None
    cleared_date: datetime | None = None
    site_id: str | None = None
    site_name: str | None = None
    circle: str | None = None
    cluster: str | None = None
    technician: str | None = None
    supervisor: str | None = None
    cluster_engineer: str | None = None
    cluster_incharge: str | None = None
    details: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class TicketActivity:
    """Immutable audit entry for one mutation of a ticket."""

    activity_id: int
    tt_number: str
    activity_type: ActivityKind
    old_value: str | None
    new_value: str | None
    remarks: str | None
    attachment_id: int | None
    created_by: str
    created_at: datetime


@dataclass(slots=True, frozen=True)
class TicketAttachment:
    """Metadata describing a file stored for a ticket."""

    attachment_id: int
    tt_number: str
    original_filename: str
    stored_filename: str
    file_path: str
    file_size: int
    mime_type: str
    uploaded_by: str
    uploaded_at: datetime


@dataclass(slots=True, frozen=True)
class AttachmentUpload:
    """Already validated upload metadata handed over by the upload layer."""

    original_filename: str
    stored_filename: str
    file_path: str
    file_size: int
    mime_type: str


@dataclass(slots=True, frozen=True)
class ActivityDraft:
    """Activity fields decided by the lifecycle before the store assigns an id."""

    activity_type: ActivityKind
    created_by: str
    created_at: datetime
    old_value: str | None = None
    new_value: str | None = None
    remarks: str | None = None
    attachment_id: int | None = None


@dataclass(slots=True, frozen=True)
class TicketChange:
    """Field updates for one ticket plus the activity recording them."""

    updates: Mapping[str, Any]
    activity: ActivityDraft


@dataclass(slots=True)
class TicketUpdateResult:
    """Updated ticket returned together with the activity that recorded it."""

    ticket: Ticket
    activity: TicketActivity


@dataclass(slots=True)
class TimelineEntry:
    """Activity joined with the attachment it references, if any."""

    activity: TicketActivity
    attachment: TicketAttachment | None = None


@dataclass(slots=True)
class TicketPage:
    """One page of an ordered ticket listing."""

    items: Sequence[Ticket]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass(slots=True, frozen=True)
class DashboardStats:
    total: int = 0
    critical: int = 0
    emergency: int = 0
    major: int = 0
