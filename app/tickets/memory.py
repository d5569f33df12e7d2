from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Iterable, Sequence

from .criteria import AgeWindow, SortOrder, TicketCriteria, severity_rank, timestamp_key, to_utc
from .errors import TicketNotFoundError
from .models import (
    AttachmentUpload,
    DashboardStats,
    Ticket,
    TicketActivity,
    TicketAttachment,
    TicketPage,
)
from .repository import ChangePlanner
from .state import INACTIVE_STATUSES, UNACKNOWLEDGED_STATUSES, TicketStatus

logger = logging.getLogger(__name__)


class InMemoryTicketRepository:
    """Ticket store over a mutable in-process snapshot of seed data.

    Every instance owns its data, so isolated instances can coexist (one per
    test). ``reset`` restores the original seed and clears activities and
    attachments. Mutations are serialized per ticket with an ``asyncio.Lock``.
    """

    def __init__(self, seed: Iterable[Ticket] = ()) -> None:
        self._seed: list[Ticket] = [_normalise(ticket) for ticket in seed]
        self._tickets: dict[str, Ticket] = {}
        self._activities: list[TicketActivity] = []
        self._attachments: dict[int, TicketAttachment] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._activity_ids = itertools.count(1)
        self._attachment_ids = itertools.count(1)
        self.reset()

    @classmethod
    def from_seed_file(cls, path: str | Path) -> InMemoryTicketRepository:
        from .seed import load_seed_file

        return cls(load_seed_file(path))

    def reset(self) -> None:
        self._tickets = {ticket.tt_number: _normalise(ticket) for ticket in self._seed}
        self._activities = []
        self._attachments = {}
        self._locks = {}
        self._activity_ids = itertools.count(1)
        self._attachment_ids = itertools.count(1)
        logger.debug("In-memory ticket store reset to %d seed tickets", len(self._tickets))

    async def add_tickets(self, tickets: Iterable[Ticket]) -> int:
        written = 0
        for ticket in tickets:
            self._tickets[ticket.tt_number] = _normalise(ticket)
            written += 1
        return written

    async def get_ticket(self, tt_number: str) -> Ticket | None:
        ticket = self._tickets.get(tt_number)
        return _normalise(ticket) if ticket is not None else None

    async def query_tickets(self, criteria: TicketCriteria, *, now: datetime) -> TicketPage:
        window = criteria.age_window(now)
        needle = criteria.search.lower() if criteria.search else None
        matched = [ticket for ticket in self._tickets.values() if _matches(ticket, criteria, window, needle)]
        matched.sort(key=lambda ticket: _listing_key(criteria.sort_by, ticket))
        window_items = matched[criteria.offset : criteria.offset + criteria.limit]
        return TicketPage(
            items=[_normalise(ticket) for ticket in window_items],
            total=len(matched),
            page=criteria.page,
            limit=criteria.limit,
        )

    async def apply_change(self, tt_number: str, planner: ChangePlanner) -> tuple[Ticket, TicketActivity]:
        lock = self._locks.setdefault(tt_number, asyncio.Lock())
        async with lock:
            current = self._tickets.get(tt_number)
            if current is None:
                raise TicketNotFoundError(f"Ticket {tt_number} not found")

            change = planner(_normalise(current))
            # Build both records before writing either, so a bad plan leaves no trace.
            updated = _normalise(replace(current, **change.updates))
            draft = change.activity
            activity = TicketActivity(
                activity_id=next(self._activity_ids),
                tt_number=tt_number,
                activity_type=draft.activity_type,
                old_value=draft.old_value,
                new_value=draft.new_value,
                remarks=draft.remarks,
                attachment_id=draft.attachment_id,
                created_by=draft.created_by,
                created_at=to_utc(draft.created_at),
            )
            self._tickets[tt_number] = updated
            self._activities.append(activity)
        return _normalise(updated), activity

    async def list_activities(self, tt_number: str) -> Sequence[TicketActivity]:
        entries = [activity for activity in self._activities if activity.tt_number == tt_number]
        entries.sort(key=lambda activity: (activity.created_at, activity.activity_id), reverse=True)
        return entries

    async def add_attachment(
        self, tt_number: str, upload: AttachmentUpload, *, uploaded_by: str, uploaded_at: datetime
    ) -> TicketAttachment:
        if tt_number not in self._tickets:
            raise TicketNotFoundError(f"Ticket {tt_number} not found")
        attachment = TicketAttachment(
            attachment_id=next(self._attachment_ids),
            tt_number=tt_number,
            original_filename=upload.original_filename,
            stored_filename=upload.stored_filename,
            file_path=upload.file_path,
            file_size=upload.file_size,
            mime_type=upload.mime_type,
            uploaded_by=uploaded_by,
            uploaded_at=to_utc(uploaded_at),
        )
        self._attachments[attachment.attachment_id] = attachment
        return attachment

    async def get_attachment(self, attachment_id: int) -> TicketAttachment | None:
        return self._attachments.get(attachment_id)

    async def list_attachments(self, tt_number: str) -> Sequence[TicketAttachment]:
        entries = [item for item in self._attachments.values() if item.tt_number == tt_number]
        entries.sort(key=lambda item: (item.uploaded_at, item.attachment_id), reverse=True)
        return entries

    async def dashboard_stats(self) -> DashboardStats:
        active = [ticket for ticket in self._tickets.values() if ticket.status not in INACTIVE_STATUSES]
        severities = [(ticket.severity or "").lower() for ticket in active]
        return DashboardStats(
            total=len(active),
            critical=severities.count("critical"),
            emergency=severities.count("emergency"),
            major=severities.count("major"),
        )

    async def needs_acknowledgement(self, limit: int) -> Sequence[Ticket]:
        waiting = [ticket for ticket in self._tickets.values() if ticket.status in UNACKNOWLEDGED_STATUSES]
        waiting.sort(key=lambda ticket: _listing_key(SortOrder.MOST_CRITICAL, ticket))
        return [_normalise(ticket) for ticket in waiting[:limit]]

    async def recent_updates(self, *, page: int, limit: int) -> TicketPage:
        ordered = sorted(
            self._tickets.values(),
            key=lambda ticket: (
                -timestamp_key(ticket.last_status_update or ticket.open_time),
                ticket.tt_number,
            ),
        )
        start = (page - 1) * limit
        return TicketPage(
            items=[_normalise(ticket) for ticket in ordered[start : start + limit]],
            total=len(ordered),
            page=page,
            limit=limit,
        )

    async def pending_tickets(self, limit: int | None = None) -> Sequence[Ticket]:
        pending = [ticket for ticket in self._tickets.values() if ticket.status != TicketStatus.CLOSED.value]
        pending.sort(key=lambda ticket: _listing_key(SortOrder.OLDEST, ticket))
        if limit is not None:
            pending = pending[:limit]
        return [_normalise(ticket) for ticket in pending]

    async def count_pending(self) -> int:
        return sum(1 for ticket in self._tickets.values() if ticket.status != TicketStatus.CLOSED.value)


def _normalise(ticket: Ticket) -> Ticket:
    """Detached copy with UTC timestamps; callers never hold store-owned objects."""

    return replace(
        ticket,
        open_time=to_utc(ticket.open_time),
        last_status_update=to_utc(ticket.last_status_update),
        cleared_date=to_utc(ticket.cleared_date),
        details=dict(ticket.details),
    )


def _matches(ticket: Ticket, criteria: TicketCriteria, window: AgeWindow | None, needle: str | None) -> bool:
    if criteria.statuses is not None and ticket.status not in criteria.statuses:
        return False
    if criteria.severities is not None:
        if not ticket.severity or ticket.severity.lower() not in criteria.severities:
            return False
    if window is not None and not window.contains(ticket.open_time):
        return False
    if needle is not None:
        haystacks = (ticket.tt_number, ticket.site_name, ticket.event_name)
        if not any(needle in (value or "").lower() for value in haystacks):
            return False
    return True


def _listing_key(order: SortOrder, ticket: Ticket) -> tuple:
    opened = timestamp_key(ticket.open_time)
    if order.by_severity:
        rank = severity_rank(ticket.severity)
        return (-rank if order.descending else rank, -opened, ticket.tt_number)
    return (-opened if order.descending else opened, ticket.tt_number)
