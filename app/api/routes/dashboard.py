from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict

from app.api.routes.tickets import TicketListResponse, TicketResponse, http_error, to_page_response, to_ticket_response
from app.core.config import Settings, get_settings
from app.dependencies.tickets import TicketViewsDep, ViewerUser
from app.tickets.errors import TicketServiceError

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


class DashboardStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    critical: int
    emergency: int
    major: int


@router.get("/stats", response_model=DashboardStatsResponse)
async def dashboard_stats(views: TicketViewsDep, _: ViewerUser) -> DashboardStatsResponse:
    try:
        stats = await views.dashboard_stats()
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return DashboardStatsResponse.model_validate(stats)


@router.get("/needs-acknowledgement", response_model=list[TicketResponse])
async def needs_acknowledgement(
    views: TicketViewsDep,
    _: ViewerUser,
    limit: int | None = Query(default=None),
) -> list[TicketResponse]:
    try:
        tickets = await views.needs_acknowledgement(limit)
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return [to_ticket_response(ticket) for ticket in tickets]


@router.get("/recent-updates", response_model=TicketListResponse)
async def recent_updates(
    views: TicketViewsDep,
    _: ViewerUser,
    settings: Annotated[Settings, Depends(get_settings)],
    page: int = Query(default=1),
    limit: int = Query(default=20),
) -> TicketListResponse:
    try:
        result = await views.recent_updates(page=page, limit=limit, max_limit=settings.max_page_size)
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return to_page_response(result)
