"""Placeholder avatars and the photo-vs-placeholder render decision."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Final

from photo_roster.photos.broken import BrokenImageTracker
from photo_roster.records import EntityRecord

PLACEHOLDER_COLORS: Final[tuple[str, ...]] = (
    "#01257D",
    "#0891B2",
    "#7C3AED",
    "#DB2777",
    "#EA580C",
    "#16A34A",
    "#CA8A04",
    "#475569",
)


@dataclass(frozen=True)
class Placeholder:
    """Initial letter on a coloured circle."""

    initial: str
    color: str


@dataclass(frozen=True)
class PhotoView:
    """What the UI should draw for one record: a URL or a placeholder."""

    url: str | None
    placeholder: Placeholder | None

    @property
    def shows_photo(self) -> bool:
        return self.url is not None


def initial_for(name: str | None) -> str:
    """First letter of the display name, upper-cased; ``?`` when empty."""
    stripped = (name or "").strip()
    return stripped[0].upper() if stripped else "?"


def color_for(entity_id: str) -> str:
    """Stable colour for an id, so a person keeps the same circle across pages."""
    digest = hashlib.sha256(entity_id.encode("utf-8")).digest()
    return PLACEHOLDER_COLORS[digest[0] % len(PLACEHOLDER_COLORS)]


def placeholder_for(record: EntityRecord) -> Placeholder:
    return Placeholder(initial=initial_for(record.display_name), color=color_for(record.id))


def photo_for(record: EntityRecord, tracker: BrokenImageTracker) -> PhotoView:
    """Decide between photo and placeholder.

    A broken flag overrides any resolved URL; the cached URL itself is left
    alone so a later successful load can bring the photo back.
    """
    if tracker.is_broken(record.id) or not record.resolved_photo_url:
        return PhotoView(url=None, placeholder=placeholder_for(record))
    return PhotoView(url=record.resolved_photo_url, placeholder=None)
