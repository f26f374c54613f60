"""Page retrieval: one range query plus best-effort enrichment.

A page is read from the configured view when there is one (it computes
derived columns such as age) and from the base table otherwise. Rows are
then enriched in secondary batches:

1. Image paths backfilled from the base table when the view omitted them.
2. Location names looked up per lookup table (one query per table per page).

Enrichment failures are logged and the page is returned unenriched; only a
failure of the range query itself fails the page.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from photo_roster.config import settings
from photo_roster.listing.sources import DataSource, Row
from photo_roster.records import EntityRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocationLookup:
    """A lookup table whose ``nombre`` fills one record attribute."""

    relation: str
    key_attr: str
    name_attr: str


LOCATION_LOOKUPS: Final[tuple[LocationLookup, ...]] = (
    LocationLookup("paises", "country_id", "country_name"),
    LocationLookup("departamentos", "department_id", "department_name"),
    LocationLookup("ciudades", "city_id", "city_name"),
    LocationLookup("barrios", "neighborhood_id", "neighborhood_name"),
)


class PageFetcher:
    """Fetch fixed-size pages of roster records.

    Usage:
        fetcher = PageFetcher(SqlDataSource(async_session_factory))
        records = await fetcher.fetch_page(0)  # rows 0..9, newest first
    """

    def __init__(
        self,
        source: DataSource,
        *,
        page_size: int | None = None,
        table: str | None = None,
        view: str | None = None,
        order_by: str | None = None,
        lookups: Sequence[LocationLookup] = LOCATION_LOOKUPS,
    ) -> None:
        """Initialize the fetcher.

        Args:
            source: Where rows come from.
            page_size: Rows per page (settings.page_size by default).
            table: Base table name.
            view: Optional view tried before the table; pass "" to disable.
            order_by: Stable sort column, read newest first.
            lookups: Location lookup tables to join in a secondary batch.
        """
        self._source = source
        self._page_size = page_size or settings.page_size
        if self._page_size < 1:
            raise ValueError(f"page_size must be positive, got {self._page_size}")
        self._table = table or settings.people_table
        self._view = settings.people_view if view is None else (view or None)
        self._order_by = order_by or settings.order_column
        self._lookups = tuple(lookups)
        self._view_failed = False

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def source(self) -> DataSource:
        return self._source

    def range_for(self, page_index: int) -> tuple[int, int]:
        """Inclusive row range covered by ``page_index``."""
        if page_index < 0:
            raise ValueError(f"page_index must be >= 0, got {page_index}")
        start = page_index * self._page_size
        return start, start + self._page_size - 1

    async def fetch_page(self, page_index: int) -> list[EntityRecord]:
        """Fetch and enrich one page.

        Raises:
            Whatever the data source raises for the base-table query.
        """
        start, end = self.range_for(page_index)
        rows, relation = await self._select_rows(start, end)
        logger.debug("Page %d (%d-%d) from %s: %d rows", page_index, start, end, relation, len(rows))

        records = [EntityRecord.from_row(row) for row in rows]
        if relation != self._table:
            records = await self._backfill_image_paths(records)
        return await self._enrich_locations(records)

    async def _select_rows(self, start: int, end: int) -> tuple[list[Row], str]:
        if self._view and not self._view_failed:
            try:
                rows = await self._source.select(
                    self._view, start=start, end=end, order_by=self._order_by
                )
                return rows, self._view
            except Exception as e:
                # Remember so later pages read the same relation as this one
                self._view_failed = True
                logger.warning("View %s unavailable, using %s: %s", self._view, self._table, e)

        rows = await self._source.select(self._table, start=start, end=end, order_by=self._order_by)
        return rows, self._table

    async def _backfill_image_paths(self, records: list[EntityRecord]) -> list[EntityRecord]:
        missing = [record.id for record in records if not record.image_path]
        if not missing:
            return records

        try:
            rows = await self._source.select_in(
                self._table, "id", missing, columns=["id", "foto_path"]
            )
        except Exception as e:
            logger.warning("Image path backfill failed for %d rows: %s", len(missing), e)
            return records

        paths = {str(row["id"]): row.get("foto_path") for row in rows}
        return [
            dataclasses.replace(record, image_path=paths[record.id])
            if not record.image_path and paths.get(record.id)
            else record
            for record in records
        ]

    async def _enrich_locations(self, records: list[EntityRecord]) -> list[EntityRecord]:
        if not records or not self._lookups:
            return records

        results = await asyncio.gather(
            *(self._lookup_names(lookup, records) for lookup in self._lookups),
            return_exceptions=True,
        )

        updates: dict[str, dict[str, str]] = {}
        for lookup, result in zip(self._lookups, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning("Lookup %s failed, leaving names empty: %s", lookup.relation, result)
                continue
            for record in records:
                key = getattr(record, lookup.key_attr)
                if key is not None and key in result:
                    updates.setdefault(record.id, {})[lookup.name_attr] = result[key]

        return [
            dataclasses.replace(record, **updates[record.id]) if record.id in updates else record
            for record in records
        ]

    async def _lookup_names(
        self,
        lookup: LocationLookup,
        records: Sequence[EntityRecord],
    ) -> dict[object, str]:
        keys = sorted({k for k in (getattr(r, lookup.key_attr) for r in records) if k is not None})
        if not keys:
            return {}
        rows = await self._source.select_in(lookup.relation, "id", keys, columns=["id", "nombre"])
        return {row["id"]: row["nombre"] for row in rows}
