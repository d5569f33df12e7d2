import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.services.postgres import PostgresConnectionTester, to_asyncpg_dsn, to_sqlalchemy_dsn


def _pool_with(connection_mock):
    class DummyAcquire:
        async def __aenter__(self):
            return connection_mock

        async def __aexit__(self, exc_type, exc, tb):
            return False

    pool_mock = MagicMock()
    pool_mock.acquire.return_value = DummyAcquire()
    pool_mock.close = AsyncMock()
    return pool_mock


@pytest.mark.asyncio
async def test_postgres_connection_tester(monkeypatch):
    connection_mock = AsyncMock()
    pool_mock = _pool_with(connection_mock)
    captured = {}

    async def create_pool(**kwargs):
        captured.update(kwargs)
        return pool_mock

    monkeypatch.setattr("app.services.postgres.asyncpg.create_pool", create_pool)

    tester = PostgresConnectionTester("postgresql+asyncpg://user:pw@db/tickets")
    assert await tester.test_connection() is True
    connection_mock.execute.assert_awaited_with("SELECT 1")
    assert captured["dsn"] == "postgresql://user:pw@db/tickets"
    await tester.close()
    pool_mock.close.assert_awaited()


@pytest.mark.asyncio
async def test_is_healthy_false_when_unreachable(monkeypatch):
    async def create_pool(**kwargs):
        raise ConnectionRefusedError("connection refused")

    monkeypatch.setattr("app.services.postgres.asyncpg.create_pool", create_pool)

    assert await PostgresConnectionTester("postgresql://test").is_healthy() is False


@pytest.mark.asyncio
async def test_is_healthy_false_on_timeout(monkeypatch):
    async def slow_test(self):
        await asyncio.sleep(1)
        return True

    monkeypatch.setattr(PostgresConnectionTester, "test_connection", slow_test)

    assert await PostgresConnectionTester("postgresql://test").is_healthy(timeout=0.01) is False


def test_dsn_helpers():
    assert to_asyncpg_dsn("postgresql+asyncpg://h/db") == "postgresql://h/db"
    assert to_asyncpg_dsn("postgresql://h/db") == "postgresql://h/db"
    assert to_sqlalchemy_dsn("postgresql://h/db") == "postgresql+asyncpg://h/db"
    assert to_sqlalchemy_dsn("postgresql+asyncpg://h/db") == "postgresql+asyncpg://h/db"
    assert to_sqlalchemy_dsn("sqlite+aiosqlite:///tickets.db") == "sqlite+aiosqlite:///tickets.db"
