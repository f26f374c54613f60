"""Render-time image failure tracking.

Fed only by the UI's image load/error events. A URL that passed the probe can
still fail in the browser (signed URL expired before paint, transient CDN
error); once an id is marked broken the placeholder wins until a later
successful load clears it.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class BrokenImageTracker:
    """Per-session map of entity id → known broken."""

    def __init__(self) -> None:
        self._broken: set[str] = set()

    def mark_broken(self, entity_id: str) -> None:
        if entity_id not in self._broken:
            logger.debug("Image marked broken for %s", entity_id)
        self._broken.add(entity_id)

    def mark_ok(self, entity_id: str) -> None:
        self._broken.discard(entity_id)

    def is_broken(self, entity_id: str) -> bool:
        return entity_id in self._broken

    def reset(self) -> None:
        """Forget every flag (the list's data source changed)."""
        self._broken = set()

    def snapshot(self) -> dict[str, bool]:
        return {entity_id: True for entity_id in sorted(self._broken)}

    def __len__(self) -> int:
        return len(self._broken)
