"""Paginated data sources the page fetcher reads from.

Two interchangeable backends implement the ``DataSource`` protocol:
    - SqlDataSource: SQLAlchemy async sessions against the roster database
    - RestDataSource: the PostgREST endpoint in front of the same schema

Both return plain dicts keyed by column name; neither knows about records.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import MetaData, Table, asc, desc, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from photo_roster.clients.rest import RestClient
from photo_roster.config import settings
from photo_roster.models import Base

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class DataSource(Protocol):
    """A relational source that can serve row ranges and id lookups."""

    @property
    def identity(self) -> str:
        """Stable name of the backing store; a change means a different list."""
        ...

    async def select(
        self,
        relation: str,
        *,
        start: int,
        end: int,
        order_by: str,
        descending: bool = True,
    ) -> list[Row]:
        """Rows ``start``..``end`` (inclusive) of ``relation`` in a stable order."""
        ...

    async def select_in(
        self,
        relation: str,
        key: str,
        values: Sequence[Any],
        *,
        columns: Sequence[str] | None = None,
    ) -> list[Row]:
        """Rows of ``relation`` whose ``key`` is one of ``values``."""
        ...

    async def aclose(self) -> None:
        """Release connections the source owns."""
        ...


class SqlDataSource:
    """DataSource over SQLAlchemy async sessions.

    Tables known to the ORM metadata are used directly; anything else (a
    database view, for instance) is reflected on first use.

    Usage:
        source = SqlDataSource(async_session_factory)
        rows = await source.select("personas", start=0, end=9, order_by="created_at")
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        metadata: MetaData | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._metadata = metadata or Base.metadata
        self._reflected = MetaData()

    @property
    def identity(self) -> str:
        bind = self._session_factory.kw.get("bind")
        if bind is None:
            return f"sql:{id(self._session_factory)}"
        return f"sql:{bind.url.render_as_string(hide_password=True)}"

    async def select(
        self,
        relation: str,
        *,
        start: int,
        end: int,
        order_by: str,
        descending: bool = True,
    ) -> list[Row]:
        direction = desc if descending else asc
        async with self._session_factory() as session:
            table = await self._table(session, relation)
            ordering = [direction(table.c[order_by])]
            # Tie-break on id so equal timestamps never shuffle between pages
            if "id" in table.c and order_by != "id":
                ordering.append(direction(table.c["id"]))
            stmt = select(table).order_by(*ordering).offset(start).limit(end - start + 1)
            result = await session.execute(stmt)
            return [dict(row) for row in result.mappings().all()]

    async def select_in(
        self,
        relation: str,
        key: str,
        values: Sequence[Any],
        *,
        columns: Sequence[str] | None = None,
    ) -> list[Row]:
        if not values:
            return []
        async with self._session_factory() as session:
            table = await self._table(session, relation)
            selected = [table.c[name] for name in columns] if columns else [table]
            key_column = table.c[key]
            stmt = select(*selected).where(key_column.in_(_coerce_keys(key_column, values)))
            result = await session.execute(stmt)
            return [dict(row) for row in result.mappings().all()]

    async def _table(self, session: AsyncSession, relation: str) -> Table:
        if relation in self._metadata.tables:
            return self._metadata.tables[relation]
        if relation in self._reflected.tables:
            return self._reflected.tables[relation]

        def _reflect(sync_session: Any) -> Table:
            return Table(relation, self._reflected, autoload_with=sync_session.connection())

        logger.debug("Reflecting relation %s", relation)
        return await session.run_sync(_reflect)

    async def aclose(self) -> None:
        """Nothing to release; the session factory and its engine are shared."""


class RestDataSource:
    """DataSource over PostgREST."""

    def __init__(self, client: RestClient) -> None:
        self._client = client

    @property
    def client(self) -> RestClient:
        return self._client

    @property
    def identity(self) -> str:
        return f"rest:{self._client.base_url}"

    async def select(
        self,
        relation: str,
        *,
        start: int,
        end: int,
        order_by: str,
        descending: bool = True,
    ) -> list[Row]:
        suffix = "desc" if descending else "asc"
        order = f"{order_by}.{suffix}"
        if order_by != "id":
            order += f",id.{suffix}"
        return await self._client.select(
            relation, offset=start, limit=end - start + 1, order=order
        )

    async def select_in(
        self,
        relation: str,
        key: str,
        values: Sequence[Any],
        *,
        columns: Sequence[str] | None = None,
    ) -> list[Row]:
        return await self._client.select_in(relation, key, values, columns=columns)

    async def aclose(self) -> None:
        await self._client.aclose()


def build_data_source(backend: str | None = None) -> DataSource:
    """Create the configured data source.

    Raises:
        ValueError: Unknown backend name.
    """
    backend = backend or settings.data_backend
    if backend == "sql":
        from photo_roster.db import async_session_factory

        return SqlDataSource(async_session_factory)
    if backend == "rest":
        return RestDataSource(RestClient())
    raise ValueError(f"Unknown data backend: {backend!r}")


def _coerce_keys(column: Any, values: Sequence[Any]) -> list[Any]:
    """Convert string ids to UUIDs for UUID-typed key columns."""
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return list(values)
    if python_type is UUID:
        return [v if isinstance(v, UUID) else UUID(str(v)) for v in values]
    return list(values)
