"""Shared pytest fixtures for photo-roster tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from photo_roster.clients.storage import StorageClient
from photo_roster.models import Base
from photo_roster.records import EntityRecord

STORAGE_URL = "http://storage.test"
BUCKET = "personas-photos"
PUBLIC_PREFIX = f"{STORAGE_URL}/storage/v1/object/public/{BUCKET}/"
SIGN_PREFIX = f"/storage/v1/object/sign/{BUCKET}/"

Handler = Callable[[httpx.Request], httpx.Response]


class FakeSource:
    """In-memory DataSource with call recording and failure injection.

    ``rows`` are served newest-first by ``created_at`` like the real sources.
    """

    def __init__(
        self,
        rows: Sequence[dict[str, Any]] = (),
        *,
        identity: str = "fake:roster",
        lookups: dict[str, list[dict[str, Any]]] | None = None,
    ) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {"personas": list(rows)}
        self.tables.update(lookups or {})
        self._identity = identity
        self.select_calls: list[tuple[str, int, int]] = []
        self.select_in_calls: list[tuple[str, str, list[Any]]] = []
        self.fail_relations: set[str] = set()
        self.fail_next_selects = 0
        self.closed = False

    @property
    def identity(self) -> str:
        return self._identity

    async def select(
        self,
        relation: str,
        *,
        start: int,
        end: int,
        order_by: str,
        descending: bool = True,
    ) -> list[dict[str, Any]]:
        self.select_calls.append((relation, start, end))
        if relation in self.fail_relations or relation not in self.tables:
            raise LookupError(f"relation {relation} unavailable")
        if self.fail_next_selects:
            self.fail_next_selects -= 1
            raise ConnectionError("connection reset")
        ordered = sorted(
            self.tables[relation],
            key=lambda row: (row[order_by], row["id"]),
            reverse=descending,
        )
        return [dict(row) for row in ordered[start : end + 1]]

    async def select_in(
        self,
        relation: str,
        key: str,
        values: Sequence[Any],
        *,
        columns: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        self.select_in_calls.append((relation, key, list(values)))
        if relation in self.fail_relations:
            raise LookupError(f"relation {relation} unavailable")
        matched = [row for row in self.tables.get(relation, []) if row.get(key) in values]
        if columns:
            return [{c: row.get(c) for c in columns} for row in matched]
        return [dict(row) for row in matched]

    async def aclose(self) -> None:
        self.closed = True


def person_row(index: int, **overrides: Any) -> dict[str, Any]:
    """A ``personas`` row; higher index means newer."""
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    row: dict[str, Any] = {
        "id": f"p-{index:03d}",
        "nombre_completo": f"Persona {index}",
        "identificacion": f"ID{index:05d}",
        "tipo_identificacion": "CI",
        "email": f"persona{index}@example.com",
        "telefono": None,
        "direccion": None,
        "activo": True,
        "fec_nacimiento": None,
        "foto_path": f"p/{index}.jpg",
        "pais_id": None,
        "departamento_id": None,
        "ciudad_id": None,
        "barrio_id": None,
        "created_at": base + timedelta(minutes=index),
    }
    row.update(overrides)
    return row


def newest_first_ids(count: int) -> list[str]:
    """Ids of ``person_row(0..count-1)`` in list order."""
    return [f"p-{i:03d}" for i in reversed(range(count))]


def storage_client(handler: Handler) -> StorageClient:
    """StorageClient whose HTTP traffic is answered by ``handler``."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StorageClient(STORAGE_URL, "test-key", BUCKET, http_client=http_client)


def image_ok_handler(request: httpx.Request) -> httpx.Response:
    """Every public object is a reachable JPEG."""
    if request.method == "GET" and request.url.path.startswith("/storage/v1/object/public/"):
        return httpx.Response(206, headers={"content-type": "image/jpeg"}, content=b"\xff")
    return httpx.Response(404)


# Type aliases for factory fixtures
MakeRecord = Callable[..., EntityRecord]


@pytest.fixture
def make_record() -> MakeRecord:
    """Factory fixture for creating EntityRecord instances."""

    def _make(entity_id: str = "p-001", **fields: Any) -> EntityRecord:
        fields.setdefault("full_name", f"Persona {entity_id}")
        return EntityRecord(id=entity_id, **fields)

    return _make


@pytest.fixture
def fake_source() -> Callable[..., FakeSource]:
    """Factory fixture for in-memory data sources with ``count`` people."""

    def _make(count: int = 0, **kwargs: Any) -> FakeSource:
        return FakeSource([person_row(i) for i in range(count)], **kwargs)

    return _make


@pytest.fixture
async def sqlite_sessions() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory over an in-memory SQLite database with all tables."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


def uuid_for(index: int) -> UUID:
    return UUID(int=index + 1)
