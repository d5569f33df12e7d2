from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, Protocol, Sequence

from .criteria import TicketCriteria
from .models import (
    AttachmentUpload,
    DashboardStats,
    Ticket,
    TicketActivity,
    TicketAttachment,
    TicketChange,
    TicketPage,
)

ChangePlanner = Callable[[Ticket], TicketChange]


class TicketRepository(Protocol):
    """Storage contract implemented by the in-memory and SQL ticket stores.

    Implementations must return identical results for the same data, criteria
    and ``now``. ``apply_change`` must run the planner and persist both the
    ticket update and the new activity as one unit per ticket: concurrent
    changes to the same ticket are serialized and a failure leaves neither
    write visible.
    """

    async def add_tickets(self, tickets: Iterable[Ticket]) -> int:
        """Insert or replace tickets (seed/import). Returns the number written."""
        ...

    async def get_ticket(self, tt_number: str) -> Ticket | None:
        ...

    async def query_tickets(self, criteria: TicketCriteria, *, now: datetime) -> TicketPage:
        ...

    async def apply_change(self, tt_number: str, planner: ChangePlanner) -> tuple[Ticket, TicketActivity]:
        """Raise ``TicketNotFoundError`` when the ticket does not exist."""
        ...

    async def list_activities(self, tt_number: str) -> Sequence[TicketActivity]:
        """Activities for the ticket, newest first."""
        ...

    async def add_attachment(
        self, tt_number: str, upload: AttachmentUpload, *, uploaded_by: str, uploaded_at: datetime
    ) -> TicketAttachment:
        ...

    async def get_attachment(self, attachment_id: int) -> TicketAttachment | None:
        ...

    async def list_attachments(self, tt_number: str) -> Sequence[TicketAttachment]:
        """Attachments for the ticket, newest first."""
        ...

    async def dashboard_stats(self) -> DashboardStats:
        ...

    async def needs_acknowledgement(self, limit: int) -> Sequence[Ticket]:
        ...

    async def recent_updates(self, *, page: int, limit: int) -> TicketPage:
        ...

    async def pending_tickets(self, limit: int | None = None) -> Sequence[Ticket]:
        """Tickets not yet closed, oldest first."""
        ...

    async def count_pending(self) -> int:
        ...
