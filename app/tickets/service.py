from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import partial
from typing import Callable, Iterable, Sequence

from .criteria import TicketCriteria
from .errors import AttachmentNotFoundError, EmptyInputError, TicketNotFoundError
from .lifecycle import plan_acknowledge, plan_remark, plan_status_update
from .models import (
    AttachmentUpload,
    Ticket,
    TicketAttachment,
    TicketPage,
    TicketUpdateResult,
    TimelineEntry,
)
from .repository import TicketRepository
from .state import TicketStateMachine, TicketStatus

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TicketService:
    """High level orchestration for ticket listing, lifecycle changes and the activity log.

    Caller errors (unknown ticket, disallowed status, blank remark, unknown
    attachment) are raised before anything is written.
    """

    def __init__(
        self,
        repository: TicketRepository,
        *,
        state_machine: TicketStateMachine | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._repository = repository
        self._state_machine = state_machine or TicketStateMachine()
        self._clock = clock or utcnow

    @property
    def repository(self) -> TicketRepository:
        return self._repository

    async def import_tickets(self, tickets: Iterable[Ticket]) -> int:
        return await self._repository.add_tickets(tickets)

    async def list_tickets(self, criteria: TicketCriteria) -> TicketPage:
        page = await self._repository.query_tickets(criteria, now=self._clock())
        logger.debug("Listed %d of %d tickets (page %d)", len(page.items), page.total, page.page)
        return page

    async def get_ticket(self, tt_number: str) -> Ticket:
        ticket = await self._repository.get_ticket(tt_number)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket {tt_number} not found")
        return ticket

    async def acknowledge(self, tt_number: str, *, actor: str) -> TicketUpdateResult:
        ticket, activity = await self._repository.apply_change(
            tt_number, partial(plan_acknowledge, actor=actor, now=self._clock())
        )
        logger.info("Ticket %s acknowledged by %s (was %s)", tt_number, actor, activity.old_value)
        return TicketUpdateResult(ticket=ticket, activity=activity)

    async def update_status(
        self,
        tt_number: str,
        *,
        status: str | TicketStatus,
        actor: str,
        remarks: str | None = None,
        attachment_id: int | None = None,
    ) -> TicketUpdateResult:
        target = self._state_machine.parse_target(status)
        await self._check_attachment(tt_number, attachment_id)
        ticket, activity = await self._repository.apply_change(
            tt_number,
            partial(
                plan_status_update,
                status=target,
                actor=actor,
                now=self._clock(),
                remarks=remarks,
                attachment_id=attachment_id,
            ),
        )
        logger.info("Ticket %s status %s -> %s by %s", tt_number, activity.old_value, target.value, actor)
        return TicketUpdateResult(ticket=ticket, activity=activity)

    async def add_remark(
        self,
        tt_number: str,
        *,
        text: str,
        actor: str,
        attachment_id: int | None = None,
    ) -> TicketUpdateResult:
        if not text or not text.strip():
            raise EmptyInputError("Remarks cannot be empty")
        await self._check_attachment(tt_number, attachment_id)
        ticket, activity = await self._repository.apply_change(
            tt_number,
            partial(plan_remark, text=text, actor=actor, now=self._clock(), attachment_id=attachment_id),
        )
        logger.info("Remark added to ticket %s by %s", tt_number, actor)
        return TicketUpdateResult(ticket=ticket, activity=activity)

    async def get_timeline(self, tt_number: str) -> Sequence[TimelineEntry]:
        await self.get_ticket(tt_number)
        activities = await self._repository.list_activities(tt_number)
        attachments = {item.attachment_id: item for item in await self._repository.list_attachments(tt_number)}
        return [
            TimelineEntry(activity=activity, attachment=attachments.get(activity.attachment_id))
            for activity in activities
        ]

    async def list_attachments(self, tt_number: str) -> Sequence[TicketAttachment]:
        await self.get_ticket(tt_number)
        return await self._repository.list_attachments(tt_number)

    async def add_attachment(self, tt_number: str, upload: AttachmentUpload, *, actor: str) -> TicketAttachment:
        attachment = await self._repository.add_attachment(
            tt_number, upload, uploaded_by=actor, uploaded_at=self._clock()
        )
        logger.info(
            "Attachment %d (%s, %d bytes) stored for ticket %s by %s",
            attachment.attachment_id,
            attachment.original_filename,
            attachment.file_size,
            tt_number,
            actor,
        )
        return attachment

    async def _check_attachment(self, tt_number: str, attachment_id: int | None) -> None:
        if attachment_id is None:
            return
        attachment = await self._repository.get_attachment(attachment_id)
        if attachment is None or attachment.tt_number != tt_number:
            raise AttachmentNotFoundError(f"Attachment {attachment_id} not found for ticket {tt_number}")
