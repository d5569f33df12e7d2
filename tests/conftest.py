from __future__ import annotations

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from app.core.config import get_settings
from app.tickets.memory import InMemoryTicketRepository
from app.tickets.models import Ticket
from app.tickets.seed import load_seed_file
from app.tickets.sql import SqlTicketRepository

NOW = datetime(2025, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def seed_tickets() -> list[Ticket]:
    return load_seed_file(get_settings().seed_path)


@pytest.fixture
def memory_repository(seed_tickets: list[Ticket]) -> InMemoryTicketRepository:
    return InMemoryTicketRepository(seed_tickets)


@pytest_asyncio.fixture
async def engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    try:
        yield engine
    finally:
        await engine.dispose()


async def build_sql_repository(engine: AsyncEngine, tickets: list[Ticket]) -> SqlTicketRepository:
    factory = async_sessionmaker(engine, expire_on_commit=False)
    repository = SqlTicketRepository(factory, engine=engine)
    await repository.ensure_schema()
    await repository.add_tickets(tickets)
    return repository


@pytest_asyncio.fixture(params=["memory", "sql"])
async def repository(request, seed_tickets: list[Ticket]):
    """The seeded ticket store, once per backend."""

    if request.param == "memory":
        yield InMemoryTicketRepository(seed_tickets)
        return
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    try:
        yield await build_sql_repository(engine, seed_tickets)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def sql_repository(engine: AsyncEngine, seed_tickets: list[Ticket]) -> SqlTicketRepository:
    return await build_sql_repository(engine, seed_tickets)
