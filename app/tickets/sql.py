from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Iterable, Sequence

from sqlalchemy import DateTime, case, func, literal, or_
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from packages.db.models import TicketActivityTable, TicketAttachmentTable, TicketTable

from .criteria import EPOCH, SEVERITY_RANKS, UNRANKED_SEVERITY, SortOrder, TicketCriteria, to_utc
from .errors import BackendUnavailableError, TicketNotFoundError
from .models import (
    ActivityKind,
    AttachmentUpload,
    DashboardStats,
    Ticket,
    TicketActivity,
    TicketAttachment,
    TicketPage,
)
from .repository import ChangePlanner
from .state import INACTIVE_STATUSES, TicketStatus

logger = logging.getLogger(__name__)

_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, OSError)

_TICKET_FIELDS = (
    "tt_number",
    "status",
    "severity",
    "event_name",
    "source_input",
    "system_rca",
    "open_time",
    "last_status_update",
    "cleared_date",
    "site_id",
    "site_name",
    "circle",
    "cluster",
    "technician",
    "supervisor",
    "cluster_engineer",
    "cluster_incharge",
)


class SqlTicketRepository:
    """Ticket store backed by the `incident_reports`, `ticket_activities` and
    `ticket_attachments` tables.

    Listing criteria are translated into SQLAlchemy expressions (bound
    parameters only) that reproduce the in-memory ordering exactly, including
    the severity-rank ``CASE`` and epoch substitution for missing open times.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        try:
            async with self._engine.begin() as connection:
                await connection.run_sync(SQLModel.metadata.create_all)
        except _UNAVAILABLE_ERRORS as exc:
            raise BackendUnavailableError("Ticket database is unavailable") from exc

    @asynccontextmanager
    async def _session(self, *, write: bool = False) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                if write:
                    async with session.begin():
                        yield session
                else:
                    yield session
        except _UNAVAILABLE_ERRORS as exc:
            logger.error("Ticket database unavailable: %s", exc)
            raise BackendUnavailableError("Ticket database is unavailable") from exc

    async def add_tickets(self, tickets: Iterable[Ticket]) -> int:
        written = 0
        async with self._session(write=True) as session:
            for ticket in tickets:
                await session.merge(self._ticket_to_table(ticket))
                written += 1
        logger.info("Imported %d tickets", written)
        return written

    async def get_ticket(self, tt_number: str) -> Ticket | None:
        async with self._session() as session:
            row = await session.get(TicketTable, tt_number)
            return self._table_to_ticket(row) if row is not None else None

    async def query_tickets(self, criteria: TicketCriteria, *, now: datetime) -> TicketPage:
        conditions = _criteria_conditions(criteria, now)
        count_stmt = select(func.count()).select_from(TicketTable).where(*conditions)
        page_stmt = (
            select(TicketTable)
            .where(*conditions)
            .order_by(*_listing_order(criteria.sort_by))
            .limit(criteria.limit)
            .offset(criteria.offset)
        )
        async with self._session() as session:
            # Offsets past the end are never sent; a huge page would overflow the int64 bind.
            total = (await session.execute(count_stmt)).scalar_one()
            rows = (await session.execute(page_stmt)).scalars().all() if criteria.offset < total else []
        return TicketPage(
            items=[self._table_to_ticket(row) for row in rows],
            total=int(total),
            page=criteria.page,
            limit=criteria.limit,
        )

    async def apply_change(self, tt_number: str, planner: ChangePlanner) -> tuple[Ticket, TicketActivity]:
        async with self._session(write=True) as session:
            result = await session.execute(
                select(TicketTable).where(TicketTable.tt_number == tt_number).with_for_update()
            )
            row = result.scalars().first()
            if row is None:
                raise TicketNotFoundError(f"Ticket {tt_number} not found")

            change = planner(self._table_to_ticket(row))
            for name, value in change.updates.items():
                if name not in _TICKET_FIELDS:
                    raise AttributeError(f"Unknown ticket field {name!r}")
                setattr(row, name, to_utc(value) if isinstance(value, datetime) else value)

            draft = change.activity
            activity_row = TicketActivityTable(
                tt_number=tt_number,
                activity_type=draft.activity_type.value,
                old_value=draft.old_value,
                new_value=draft.new_value,
                remarks=draft.remarks,
                attachment_id=draft.attachment_id,
                created_by=draft.created_by,
                created_at=to_utc(draft.created_at),
            )
            session.add(activity_row)
            await session.flush()
            ticket = self._table_to_ticket(row)
            activity = self._table_to_activity(activity_row)
        return ticket, activity

    async def list_activities(self, tt_number: str) -> Sequence[TicketActivity]:
        async with self._session() as session:
            result = await session.execute(
                select(TicketActivityTable)
                .where(TicketActivityTable.tt_number == tt_number)
                .order_by(TicketActivityTable.created_at.desc(), TicketActivityTable.activity_id.desc())
            )
            return [self._table_to_activity(row) for row in result.scalars().all()]

    async def add_attachment(
        self, tt_number: str, upload: AttachmentUpload, *, uploaded_by: str, uploaded_at: datetime
    ) -> TicketAttachment:
        async with self._session(write=True) as session:
            if await session.get(TicketTable, tt_number) is None:
                raise TicketNotFoundError(f"Ticket {tt_number} not found")
            row = TicketAttachmentTable(
                tt_number=tt_number,
                original_filename=upload.original_filename,
                stored_filename=upload.stored_filename,
                file_path=upload.file_path,
                file_size=upload.file_size,
                mime_type=upload.mime_type,
                uploaded_by=uploaded_by,
                uploaded_at=to_utc(uploaded_at),
            )
            session.add(row)
            await session.flush()
            attachment = self._table_to_attachment(row)
        return attachment

    async def get_attachment(self, attachment_id: int) -> TicketAttachment | None:
        async with self._session() as session:
            row = await session.get(TicketAttachmentTable, attachment_id)
            return self._table_to_attachment(row) if row is not None else None

    async def list_attachments(self, tt_number: str) -> Sequence[TicketAttachment]:
        async with self._session() as session:
            result = await session.execute(
                select(TicketAttachmentTable)
                .where(TicketAttachmentTable.tt_number == tt_number)
                .order_by(TicketAttachmentTable.uploaded_at.desc(), TicketAttachmentTable.attachment_id.desc())
            )
            return [self._table_to_attachment(row) for row in result.scalars().all()]

    async def dashboard_stats(self) -> DashboardStats:
        severity = func.lower(TicketTable.severity)

        def _count(value: str):
            return func.coalesce(func.sum(case((severity == value, 1), else_=0)), 0)

        stmt = (
            select(func.count(), _count("critical"), _count("emergency"), _count("major"))
            .select_from(TicketTable)
            .where(or_(TicketTable.status.is_(None), TicketTable.status.not_in(sorted(INACTIVE_STATUSES))))
        )
        async with self._session() as session:
            total, critical, emergency, major = (await session.execute(stmt)).one()
        return DashboardStats(total=int(total), critical=int(critical), emergency=int(emergency), major=int(major))

    async def needs_acknowledgement(self, limit: int) -> Sequence[Ticket]:
        stmt = (
            select(TicketTable)
            .where(or_(TicketTable.status == TicketStatus.OPEN.value, TicketTable.status.is_(None)))
            .order_by(*_listing_order(SortOrder.MOST_CRITICAL))
            .limit(limit)
        )
        async with self._session() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [self._table_to_ticket(row) for row in rows]

    async def recent_updates(self, *, page: int, limit: int) -> TicketPage:
        touched = func.coalesce(TicketTable.last_status_update, TicketTable.open_time, _epoch())
        stmt = (
            select(TicketTable)
            .order_by(touched.desc(), TicketTable.tt_number.asc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        async with self._session() as session:
            total = (await session.execute(select(func.count()).select_from(TicketTable))).scalar_one()
            rows = (await session.execute(stmt)).scalars().all() if (page - 1) * limit < total else []
        return TicketPage(
            items=[self._table_to_ticket(row) for row in rows],
            total=int(total),
            page=page,
            limit=limit,
        )

    async def pending_tickets(self, limit: int | None = None) -> Sequence[Ticket]:
        stmt = select(TicketTable).where(_not_closed()).order_by(*_listing_order(SortOrder.OLDEST))
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._session() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [self._table_to_ticket(row) for row in rows]

    async def count_pending(self) -> int:
        stmt = select(func.count()).select_from(TicketTable).where(_not_closed())
        async with self._session() as session:
            return int((await session.execute(stmt)).scalar_one())

    @staticmethod
    def _ticket_to_table(ticket: Ticket) -> TicketTable:
        values: dict[str, Any] = {name: getattr(ticket, name) for name in _TICKET_FIELDS}
        for name in ("open_time", "last_status_update", "cleared_date"):
            values[name] = to_utc(values[name])
        return TicketTable(**values, details=dict(ticket.details))

    @staticmethod
    def _table_to_ticket(row: TicketTable) -> Ticket:
        return Ticket(
            tt_number=row.tt_number,
            status=row.status,
            severity=row.severity,
            event_name=row.event_name,
            source_input=row.source_input,
            system_rca=row.system_rca,
            open_time=_optional_datetime(row.open_time),
            last_status_update=_optional_datetime(row.last_status_update),
            cleared_date=_optional_datetime(row.cleared_date),
            site_id=row.site_id,
            site_name=row.site_name,
            circle=row.circle,
            cluster=row.cluster,
            technician=row.technician,
            supervisor=row.supervisor,
            cluster_engineer=row.cluster_engineer,
            cluster_incharge=row.cluster_incharge,
            details=dict(row.details or {}),
        )

    @staticmethod
    def _table_to_activity(row: TicketActivityTable) -> TicketActivity:
        return TicketActivity(
            activity_id=int(row.activity_id),
            tt_number=row.tt_number,
            activity_type=ActivityKind(row.activity_type),
            old_value=row.old_value,
            new_value=row.new_value,
            remarks=row.remarks,
            attachment_id=row.attachment_id,
            created_by=row.created_by,
            created_at=_ensure_datetime(row.created_at),
        )

    @staticmethod
    def _table_to_attachment(row: TicketAttachmentTable) -> TicketAttachment:
        return TicketAttachment(
            attachment_id=int(row.attachment_id),
            tt_number=row.tt_number,
            original_filename=row.original_filename,
            stored_filename=row.stored_filename,
            file_path=row.file_path,
            file_size=int(row.file_size),
            mime_type=row.mime_type,
            uploaded_by=row.uploaded_by,
            uploaded_at=_ensure_datetime(row.uploaded_at),
        )


def _epoch():
    return literal(EPOCH, DateTime(timezone=True))


def _severity_rank():
    severity = func.lower(TicketTable.severity)
    return case(
        *[(severity == name, rank) for name, rank in SEVERITY_RANKS.items()],
        else_=UNRANKED_SEVERITY,
    )


def _listing_order(order: SortOrder) -> list[Any]:
    opened = func.coalesce(TicketTable.open_time, _epoch())
    if order.by_severity:
        rank = _severity_rank()
        return [
            rank.desc() if order.descending else rank.asc(),
            opened.desc(),
            TicketTable.tt_number.asc(),
        ]
    return [opened.desc() if order.descending else opened.asc(), TicketTable.tt_number.asc()]


def _not_closed():
    return or_(TicketTable.status.is_(None), TicketTable.status != TicketStatus.CLOSED.value)


def _criteria_conditions(criteria: TicketCriteria, now: datetime) -> list[Any]:
    conditions: list[Any] = []

    if criteria.statuses is not None:
        named = sorted(status for status in criteria.statuses if status is not None)
        alternatives = []
        if named:
            alternatives.append(TicketTable.status.in_(named))
        if None in criteria.statuses:
            alternatives.append(TicketTable.status.is_(None))
        conditions.append(or_(*alternatives))

    if criteria.severities is not None:
        conditions.append(func.lower(TicketTable.severity).in_(sorted(criteria.severities)))

    window = criteria.age_window(now)
    if window is not None:
        if window.opened_after is not None:
            conditions.append(TicketTable.open_time > window.opened_after)
        if window.opened_on_or_before is not None:
            conditions.append(TicketTable.open_time <= window.opened_on_or_before)

    if criteria.search:
        conditions.append(
            or_(
                TicketTable.tt_number.icontains(criteria.search, autoescape=True),
                TicketTable.site_name.icontains(criteria.search, autoescape=True),
                TicketTable.event_name.icontains(criteria.search, autoescape=True),
            )
        )

    return conditions


def _optional_datetime(value: datetime | None) -> datetime | None:
    return _ensure_datetime(value) if value is not None else None


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    raise TypeError("Expected datetime value from database")
