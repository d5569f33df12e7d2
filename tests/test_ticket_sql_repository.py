from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from app.tickets.criteria import TicketCriteria
from app.tickets.errors import BackendUnavailableError
from app.tickets.lifecycle import plan_acknowledge
from app.tickets.models import Ticket
from app.tickets.sql import SqlTicketRepository
from packages.db.models import TicketActivityTable, TicketTable


@pytest.mark.asyncio
async def test_ensure_schema_creates_tables(engine: AsyncEngine):
    repository = SqlTicketRepository(async_sessionmaker(engine, expire_on_commit=False), engine=engine)

    await repository.ensure_schema()

    async with engine.begin() as conn:
        tables = await conn.run_sync(lambda sync_conn: set(sa_inspect(sync_conn).get_table_names()))
    assert {"incident_reports", "ticket_activities", "ticket_attachments"} <= tables


@pytest.mark.asyncio
async def test_ensure_schema_requires_engine(engine: AsyncEngine):
    repository = SqlTicketRepository(async_sessionmaker(engine, expire_on_commit=False))

    with pytest.raises(RuntimeError):
        await repository.ensure_schema()


@pytest.mark.asyncio
async def test_add_tickets_upserts(sql_repository: SqlTicketRepository, engine: AsyncEngine):
    await sql_repository.add_tickets([Ticket(tt_number="TT-240301-0002", status="Assigned", details={"k": "v"})])

    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        row = await session.get(TicketTable, "TT-240301-0002")
    assert row.status == "Assigned"
    assert row.details == {"k": "v"}


@pytest.mark.asyncio
async def test_naive_database_timestamps_come_back_as_utc(sql_repository: SqlTicketRepository):
    await sql_repository.add_tickets(
        [Ticket(tt_number="TT-naive", open_time=datetime(2025, 3, 1, 8, 0), status="Open")]
    )

    ticket = await sql_repository.get_ticket("TT-naive")

    assert ticket.open_time == datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_activity_rows_store_kind_value(sql_repository: SqlTicketRepository, engine: AsyncEngine, now):
    await sql_repository.apply_change("TT-240301-0001", lambda t: plan_acknowledge(t, actor="jdoe", now=now))

    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        row = await session.get(TicketActivityTable, 1)
    assert row.activity_type == "acknowledged"
    assert row.old_value is None
    assert row.created_by == "jdoe"


@pytest.mark.asyncio
async def test_unreachable_database_raises_backend_unavailable(tmp_path, now):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'tickets.db'}")
    repository = SqlTicketRepository(async_sessionmaker(engine, expire_on_commit=False), engine=engine)
    try:
        with pytest.raises(BackendUnavailableError):
            await repository.ensure_schema()
        with pytest.raises(BackendUnavailableError):
            await repository.query_tickets(TicketCriteria.build(), now=now)
        with pytest.raises(BackendUnavailableError):
            await repository.get_ticket("TT-1")
    finally:
        await engine.dispose()
