"""Order-preserving, id-deduplicating accumulation of list pages."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Sequence

from photo_roster.models.enums import ResolutionMethod
from photo_roster.records import EntityRecord


def merge_unique(
    prev_items: Sequence[EntityRecord],
    next_items: Iterable[EntityRecord],
) -> list[EntityRecord]:
    """Append the items of ``next_items`` whose id is not already present.

    ``prev_items`` keep their relative order; new ids follow in arrival
    order. Re-merging the same page is a no-op, so a duplicated or raced
    fetch can never double a row.
    """
    index: dict[str, EntityRecord] = {}
    for item in prev_items:
        index.setdefault(item.id, item)
    for item in next_items:
        if item.id not in index:
            index[item.id] = item
    return list(index.values())


class MergeStore:
    """The accumulated list the UI renders from.

    Every mutation swaps ``_items`` in one assignment, so readers never see a
    half-applied page.
    """

    def __init__(self, items: Iterable[EntityRecord] = ()) -> None:
        self._items: tuple[EntityRecord, ...] = tuple(merge_unique([], items))

    @property
    def items(self) -> tuple[EntityRecord, ...]:
        return self._items

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, entity_id: object) -> bool:
        return any(item.id == entity_id for item in self._items)

    def get(self, entity_id: str) -> EntityRecord | None:
        for item in self._items:
            if item.id == entity_id:
                return item
        return None

    def merge(self, page: Iterable[EntityRecord]) -> tuple[EntityRecord, ...]:
        self._items = tuple(merge_unique(self._items, page))
        return self._items

    def replace(self, page: Iterable[EntityRecord]) -> tuple[EntityRecord, ...]:
        """Drop everything and start over from ``page`` (list reset)."""
        self._items = tuple(merge_unique([], page))
        return self._items

    def replace_photo(
        self,
        entity_id: str,
        url: str | None,
        method: ResolutionMethod | None = None,
    ) -> EntityRecord | None:
        """Swap in a fresher resolved URL for one record, keeping its position."""
        record = self.get(entity_id)
        if record is None:
            return None
        if url is None:
            method = ResolutionMethod.NONE
        updated = dataclasses.replace(
            record,
            resolved_photo_url=url,
            resolution_method=method or record.resolution_method,
        )
        self._items = tuple(updated if item.id == entity_id else item for item in self._items)
        return updated

    def clear(self) -> None:
        self._items = ()
