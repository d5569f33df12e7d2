"""Read-only views derived from the ticket store: dashboard and notifications.

Nothing here is cached; every call reflects the latest persisted state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Sequence

from .criteria import EPOCH, to_utc
from .errors import InvalidCriteriaError
from .models import DashboardStats, Ticket, TicketPage
from .repository import TicketRepository
from .service import Clock, utcnow
from .state import UNACKNOWLEDGED_STATUSES, TicketStatus

OVERDUE_AFTER_HOURS = 24
ASSIGNED_UPDATE_EVERY_HOURS = 4
IN_PROGRESS_UPDATE_EVERY_HOURS = 6


class PendingUrgency(str, Enum):
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    ACTION_REQUIRED = "action_required"
    PENDING_CLOSURE = "pending_closure"


@dataclass(slots=True)
class PendingAction:
    ticket: Ticket
    urgency: PendingUrgency
    message: str
    due_in: str | None = None


def hours_since_update(ticket: Ticket, now: datetime) -> int:
    """Whole hours since the last status update, falling back to open time then epoch."""

    reference = to_utc(ticket.last_status_update or ticket.open_time) or EPOCH
    return (to_utc(now) - reference) // timedelta(hours=1)


def _due_in(elapsed: int, every: int) -> str:
    # An update stamped in the future counts as just updated.
    elapsed = max(0, elapsed)
    return f"Due in {every - elapsed % every} hours"


def classify_pending(ticket: Ticket, now: datetime) -> PendingAction:
    """Urgency, due-in hint and message for a ticket that is not closed."""

    event = ticket.event_name or "Incident"
    elapsed = hours_since_update(ticket, now)

    if ticket.status in UNACKNOWLEDGED_STATUSES and elapsed > OVERDUE_AFTER_HOURS:
        return PendingAction(ticket, PendingUrgency.OVERDUE, f"{event} - immediate attention required")
    if ticket.status == TicketStatus.ASSIGNED.value:
        return PendingAction(
            ticket,
            PendingUrgency.DUE_SOON,
            f"{event} - requires progress update",
            _due_in(elapsed, ASSIGNED_UPDATE_EVERY_HOURS),
        )
    if ticket.status == TicketStatus.IN_PROGRESS.value:
        return PendingAction(
            ticket,
            PendingUrgency.ACTION_REQUIRED,
            f"{event} - action needed",
            _due_in(elapsed, IN_PROGRESS_UPDATE_EVERY_HOURS),
        )
    if ticket.status == TicketStatus.RESOLVED.value:
        return PendingAction(ticket, PendingUrgency.PENDING_CLOSURE, f"{event} - verify and close")
    return PendingAction(
        ticket,
        PendingUrgency.ACTION_REQUIRED,
        ticket.event_name or "Incident requires attention",
    )


class TicketViews:
    """Dashboard and notification projections over a ticket repository."""

    def __init__(
        self,
        repository: TicketRepository,
        *,
        clock: Clock | None = None,
        needs_ack_limit: int = 10,
        pending_actions_limit: int | None = 50,
    ) -> None:
        self._repository = repository
        self._clock = clock or utcnow
        self._needs_ack_limit = needs_ack_limit
        self._pending_actions_limit = pending_actions_limit

    async def dashboard_stats(self) -> DashboardStats:
        return await self._repository.dashboard_stats()

    async def needs_acknowledgement(self, limit: int | None = None) -> Sequence[Ticket]:
        limit = self._needs_ack_limit if limit is None else limit
        if limit < 1:
            raise InvalidCriteriaError("limit must be >= 1")
        return await self._repository.needs_acknowledgement(limit)

    async def recent_updates(self, *, page: int = 1, limit: int = 20, max_limit: int | None = None) -> TicketPage:
        if page < 1:
            raise InvalidCriteriaError("page must be >= 1")
        if limit < 1:
            raise InvalidCriteriaError("limit must be >= 1")
        if max_limit is not None and limit > max_limit:
            raise InvalidCriteriaError(f"limit must be <= {max_limit}")
        return await self._repository.recent_updates(page=page, limit=limit)

    async def pending_actions(self) -> list[PendingAction]:
        now = self._clock()
        tickets = await self._repository.pending_tickets(self._pending_actions_limit)
        return [classify_pending(ticket, now) for ticket in tickets]

    async def notification_count(self) -> int:
        return await self._repository.count_pending()
