from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from app.core.config import Settings, get_settings
from app.dependencies.tickets import OperatorUser, TicketServiceDep, ViewerUser
from app.tickets.criteria import TicketCriteria
from app.tickets.errors import (
    BackendUnavailableError,
    EmptyInputError,
    InvalidCriteriaError,
    InvalidStatusError,
    TicketNotFoundError,
    TicketServiceError,
)
from app.tickets.models import (
    ActivityKind,
    AttachmentUpload,
    Ticket,
    TicketActivity,
    TicketAttachment,
    TicketPage,
    TicketUpdateResult,
    TimelineEntry,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tickets", tags=["tickets"])


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tt_number: str
    status: str | None
    severity: str | None
    event_name: str | None
    source_input: str | None
    system_rca: str | None
    open_time: datetime | None
    last_status_update: datetime | None
    cleared_date: datetime | None
    site_id: str | None
    site_name: str | None
    circle: str | None
    cluster: str | None
    technician: str | None
    supervisor: str | None
    cluster_engineer: str | None
    cluster_incharge: str | None
    details: dict[str, Any]


class PaginationResponse(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class TicketListResponse(BaseModel):
    data: list[TicketResponse]
    pagination: PaginationResponse


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    activity_id: int
    tt_number: str
    activity_type: ActivityKind
    old_value: str | None
    new_value: str | None
    remarks: str | None
    attachment_id: int | None
    created_by: str
    created_at: datetime


class AttachmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    attachment_id: int
    tt_number: str
    original_filename: str
    stored_filename: str
    file_path: str
    file_size: int
    mime_type: str
    uploaded_by: str
    uploaded_at: datetime


class TimelineEntryResponse(ActivityResponse):
    attachment_filename: str | None = None
    attachment_path: str | None = None


class TicketUpdateResponse(BaseModel):
    ticket: TicketResponse
    activity: ActivityResponse


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., min_length=1)
    remarks: str | None = Field(default=None, max_length=4000)
    attachment_id: int | None = Field(default=None, ge=1)


class RemarkRequest(BaseModel):
    remarks: str = Field(..., max_length=4000)
    attachment_id: int | None = Field(default=None, ge=1)


class AttachmentCreateRequest(BaseModel):
    original_filename: str = Field(..., min_length=1, max_length=255)
    stored_filename: str = Field(..., min_length=1, max_length=255)
    file_path: str = Field(..., min_length=1)
    file_size: int = Field(..., ge=0)
    mime_type: str = Field(..., min_length=1, max_length=100)


def http_error(exc: TicketServiceError) -> HTTPException:
    """Translate a ticket domain error into the matching HTTP error."""

    if isinstance(exc, TicketNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (InvalidStatusError, EmptyInputError, InvalidCriteriaError)):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, BackendUnavailableError):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=500, detail="Ticket operation failed")


def to_ticket_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


def to_page_response(page: TicketPage) -> TicketListResponse:
    return TicketListResponse(
        data=[to_ticket_response(ticket) for ticket in page.items],
        pagination=PaginationResponse(
            page=page.page, limit=page.limit, total=page.total, total_pages=page.total_pages
        ),
    )


def _to_activity_response(activity: TicketActivity) -> ActivityResponse:
    return ActivityResponse.model_validate(activity)


def _to_update_response(result: TicketUpdateResult) -> TicketUpdateResponse:
    return TicketUpdateResponse(
        ticket=to_ticket_response(result.ticket),
        activity=_to_activity_response(result.activity),
    )


def _to_timeline_response(entry: TimelineEntry) -> TimelineEntryResponse:
    response = TimelineEntryResponse.model_validate(entry.activity)
    if entry.attachment is not None:
        response.attachment_filename = entry.attachment.original_filename
        response.attachment_path = entry.attachment.file_path
    return response


def _to_attachment_response(attachment: TicketAttachment) -> AttachmentResponse:
    return AttachmentResponse.model_validate(attachment)


def _split(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [item for item in value.split(",")]


@router.get("", response_model=TicketListResponse)
async def list_tickets(
    service: TicketServiceDep,
    _: ViewerUser,
    settings: Annotated[Settings, Depends(get_settings)],
    status_filter: str | None = Query(default=None, alias="status", description="Comma separated; 'null' for unset"),
    severity: str | None = Query(default=None, description="Comma separated, case-insensitive"),
    age: str | None = Query(default=None, description="<1 day, 1-5 days, 5-10 days or >10 days"),
    search: str | None = Query(default=None),
    page: int | None = Query(default=None),
    limit: int | None = Query(default=None),
    sort_by: str | None = Query(default=None, alias="sortBy"),
) -> TicketListResponse:
    try:
        criteria = TicketCriteria.build(
            status=_split(status_filter),
            severity=_split(severity),
            age=age,
            search=search,
            sort_by=sort_by,
            page=page,
            limit=settings.default_page_size if limit is None else limit,
            max_limit=settings.max_page_size,
        )
        result = await service.list_tickets(criteria)
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return to_page_response(result)


@router.get("/{tt_number}", response_model=TicketResponse)
async def get_ticket(tt_number: str, service: TicketServiceDep, _: ViewerUser) -> TicketResponse:
    try:
        ticket = await service.get_ticket(tt_number)
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return to_ticket_response(ticket)


@router.post("/{tt_number}/acknowledge", response_model=TicketUpdateResponse)
async def acknowledge_ticket(tt_number: str, service: TicketServiceDep, user: OperatorUser) -> TicketUpdateResponse:
    try:
        result = await service.acknowledge(tt_number, actor=user.username)
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return _to_update_response(result)


@router.patch("/{tt_number}/status", response_model=TicketUpdateResponse)
async def update_ticket_status(
    tt_number: str,
    payload: StatusUpdateRequest,
    service: TicketServiceDep,
    user: OperatorUser,
) -> TicketUpdateResponse:
    try:
        result = await service.update_status(
            tt_number,
            status=payload.status,
            actor=user.username,
            remarks=payload.remarks,
            attachment_id=payload.attachment_id,
        )
    except TicketServiceError as exc:
        logger.info("Status update on %s rejected: %s", tt_number, exc)
        raise http_error(exc) from exc
    return _to_update_response(result)


@router.post("/{tt_number}/remarks", response_model=TicketUpdateResponse)
async def add_ticket_remark(
    tt_number: str,
    payload: RemarkRequest,
    service: TicketServiceDep,
    user: OperatorUser,
) -> TicketUpdateResponse:
    try:
        result = await service.add_remark(
            tt_number,
            text=payload.remarks,
            actor=user.username,
            attachment_id=payload.attachment_id,
        )
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return _to_update_response(result)


@router.get("/{tt_number}/timeline", response_model=list[TimelineEntryResponse])
async def get_ticket_timeline(tt_number: str, service: TicketServiceDep, _: ViewerUser) -> list[TimelineEntryResponse]:
    try:
        entries = await service.get_timeline(tt_number)
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return [_to_timeline_response(entry) for entry in entries]


@router.get("/{tt_number}/attachments", response_model=list[AttachmentResponse])
async def list_ticket_attachments(
    tt_number: str, service: TicketServiceDep, _: ViewerUser
) -> list[AttachmentResponse]:
    try:
        attachments = await service.list_attachments(tt_number)
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return [_to_attachment_response(item) for item in attachments]


@router.post(
    "/{tt_number}/attachments",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_ticket_attachment(
    tt_number: str,
    payload: AttachmentCreateRequest,
    service: TicketServiceDep,
    user: OperatorUser,
) -> AttachmentResponse:
    upload = AttachmentUpload(**payload.model_dump())
    try:
        attachment = await service.add_attachment(tt_number, upload, actor=user.username)
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return _to_attachment_response(attachment)
