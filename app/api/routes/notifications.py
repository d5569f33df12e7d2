from __future__ import annotations

import logging

from fastapi import APIRouter
from pydantic import BaseModel

from app.api.routes.tickets import TicketResponse, http_error, to_ticket_response
from app.dependencies.tickets import TicketViewsDep, ViewerUser
from app.tickets.errors import TicketServiceError
from app.tickets.views import PendingAction, PendingUrgency

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


class PendingActionResponse(BaseModel):
    ticket: TicketResponse
    urgency: PendingUrgency
    message: str
    due_in: str | None = None


class NotificationCountResponse(BaseModel):
    count: int


class MarkReadResponse(BaseModel):
    success: bool


def _to_pending_response(action: PendingAction) -> PendingActionResponse:
    return PendingActionResponse(
        ticket=to_ticket_response(action.ticket),
        urgency=action.urgency,
        message=action.message,
        due_in=action.due_in,
    )


@router.get("/pending-actions", response_model=list[PendingActionResponse])
async def pending_actions(views: TicketViewsDep, _: ViewerUser) -> list[PendingActionResponse]:
    try:
        actions = await views.pending_actions()
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return [_to_pending_response(action) for action in actions]


@router.get("/count", response_model=NotificationCountResponse)
async def notification_count(views: TicketViewsDep, _: ViewerUser) -> NotificationCountResponse:
    try:
        count = await views.notification_count()
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return NotificationCountResponse(count=count)


@router.post("/mark-read", response_model=MarkReadResponse)
async def mark_read(user: ViewerUser) -> MarkReadResponse:
    # Read state is not persisted; pending actions are recomputed on every call.
    logger.debug("Notifications marked read by %s", user.username)
    return MarkReadResponse(success=True)
