from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from app.dependencies.auth import Role, User, role_required
from app.tickets.service import TicketService
from app.tickets.views import TicketViews

require_operator = role_required(Role.OPERATOR)
require_viewer = role_required(Role.VIEWER)

OperatorUser = Annotated[User, Depends(require_operator)]
ViewerUser = Annotated[User, Depends(require_viewer)]


async def get_ticket_service(request: Request) -> TicketService:
    service = getattr(request.app.state, "ticket_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ticket service is not configured")
    return service


async def get_ticket_views(request: Request) -> TicketViews:
    views = getattr(request.app.state, "ticket_views", None)
    if views is None:
        raise HTTPException(status_code=503, detail="Ticket service is not configured")
    return views


TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]
TicketViewsDep = Annotated[TicketViews, Depends(get_ticket_views)]
