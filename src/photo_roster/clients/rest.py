"""Async client for the PostgREST endpoint in front of the roster database."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from types import TracebackType
from typing import Any

import httpx

from photo_roster.config import settings

logger = logging.getLogger(__name__)


class RestClient:
    """Thin async wrapper over PostgREST range queries and ``in`` lookups.

    Usage:
        async with RestClient() as rest:
            rows = await rest.select("personas", offset=0, limit=10, order="created_at.desc")
            names = await rest.select_in("paises", "id", [1, 2], columns=["id", "nombre"])
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or settings.storage_url).rstrip("/")
        self._api_key = api_key or settings.storage_api_key
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=settings.request_timeout_seconds)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    async def __aenter__(self) -> RestClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def select(
        self,
        relation: str,
        *,
        offset: int,
        limit: int,
        order: str,
        columns: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Read ``limit`` rows of ``relation`` starting at ``offset``.

        Args:
            relation: Table or view name.
            offset: Index of the first row (0-based).
            limit: Maximum number of rows.
            order: PostgREST order expression, e.g. ``created_at.desc``.
            columns: Columns to select (all when omitted).
        """
        params = {
            "select": ",".join(columns) if columns else "*",
            "order": order,
            "offset": str(offset),
            "limit": str(limit),
        }
        return await self._get(relation, params)

    async def select_in(
        self,
        relation: str,
        key: str,
        values: Sequence[Any],
        *,
        columns: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Read the rows of ``relation`` whose ``key`` is one of ``values``."""
        if not values:
            return []
        params = {
            "select": ",".join(columns) if columns else "*",
            key: f"in.({','.join(str(v) for v in values)})",
        }
        return await self._get(relation, params)

    async def _get(self, relation: str, params: dict[str, str]) -> list[dict[str, Any]]:
        start_time = time.time()
        response = await self._client.get(
            f"{self._base_url}/rest/v1/{relation}",
            params=params,
            headers={
                "apikey": self._api_key,
                "Authorization": f"Bearer {self._api_key}",
                "Accept": "application/json",
            },
        )
        response.raise_for_status()
        rows = response.json()

        if settings.log_api_calls:
            elapsed = (time.time() - start_time) * 1000  # ms
            logger.info("[REST] %s %s → %d rows (%.0fms)", relation, params, len(rows), elapsed)

        return rows
