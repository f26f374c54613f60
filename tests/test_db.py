"""Tests for database setup."""

from __future__ import annotations

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from photo_roster import db
from photo_roster.listing.sources import SqlDataSource


async def test_init_db_creates_roster_tables(monkeypatch) -> None:
    engine = create_async_engine("sqlite+aiosqlite://")
    monkeypatch.setattr(db, "engine", engine)

    await db.init_db()

    async with engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
    await engine.dispose()
    assert {"personas", "paises", "departamentos", "ciudades", "barrios"} <= set(tables)


def test_session_factory_backs_sql_source() -> None:
    assert db.async_session_factory.class_ is AsyncSession
    assert SqlDataSource(db.async_session_factory).identity.startswith("sql:postgresql+asyncpg://")
