"""The list surface a UI binds to.

A ``ListSession`` is one open roster list: its loader, its merged items and
its broken-image map. Broken flags are scoped to the session and dropped
when the session is rebound to a different data source.
"""

from __future__ import annotations

import logging

from photo_roster.config import settings
from photo_roster.listing.fetcher import PageFetcher
from photo_roster.listing.loader import IncrementalLoader, PageState
from photo_roster.models.enums import LoaderState, ResolutionMethod
from photo_roster.photos.broken import BrokenImageTracker
from photo_roster.photos.placeholder import PhotoView, photo_for
from photo_roster.photos.resolver import PhotoResolution, PhotoResolver
from photo_roster.records import EntityRecord

logger = logging.getLogger(__name__)


class ListSession:
    """One roster list as seen by the UI layer.

    Usage:
        session = ListSession(fetcher, resolver)
        await session.open()
        for record in session.items:
            view = session.photo_for(record)
        await session.load_more()
        session.on_image_error(record.id)  # wired to <img onerror>
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        resolver: PhotoResolver,
        *,
        tracker: BrokenImageTracker | None = None,
        list_expiry: int | None = None,
        detail_expiry: int | None = None,
    ) -> None:
        self._resolver = resolver
        self._tracker = tracker or BrokenImageTracker()
        self._list_expiry = list_expiry or settings.signed_url_expiry_list
        self._detail_expiry = detail_expiry or settings.signed_url_expiry_detail
        self._fetcher = fetcher
        self._loader = self._new_loader(fetcher)

    @property
    def source_identity(self) -> str:
        return self._fetcher.source.identity

    @property
    def items(self) -> tuple[EntityRecord, ...]:
        return self._loader.items

    @property
    def has_more(self) -> bool:
        return self._loader.has_more

    @property
    def loading(self) -> bool:
        return self._loader.loading

    @property
    def state(self) -> LoaderState:
        return self._loader.state

    @property
    def last_error(self) -> Exception | None:
        return self._loader.last_error

    @property
    def tracker(self) -> BrokenImageTracker:
        return self._tracker

    def snapshot(self) -> PageState:
        return self._loader.snapshot()

    async def open(self) -> bool:
        """Load the first page."""
        return await self._loader.reset()

    async def load_more(self) -> bool:
        return await self._loader.load_more()

    async def on_sentinel_visible(self) -> bool:
        return await self._loader.on_sentinel_visible()

    async def reset(self) -> bool:
        """Reload from page 0, e.g. after a record was created."""
        return await self._loader.reset()

    async def rebind(self, fetcher: PageFetcher) -> bool:
        """Point the session at another fetcher and reload.

        Broken-image flags only survive when the data source is the same one.
        """
        if fetcher.source.identity != self.source_identity:
            logger.debug(
                "Data source changed (%s → %s), clearing broken images",
                self.source_identity, fetcher.source.identity,
            )
            self._tracker.reset()
        self._fetcher = fetcher
        self._loader = self._new_loader(fetcher)
        return await self._loader.reset()

    def on_image_error(self, entity_id: str) -> None:
        self._tracker.mark_broken(entity_id)

    def on_image_load(self, entity_id: str) -> None:
        self._tracker.mark_ok(entity_id)

    def is_broken(self, entity_id: str) -> bool:
        return self._tracker.is_broken(entity_id)

    def get(self, entity_id: str) -> EntityRecord | None:
        return self._loader.store.get(entity_id)

    def photo_for(self, record: EntityRecord) -> PhotoView:
        return photo_for(record, self._tracker)

    def search(self, term: str) -> list[EntityRecord]:
        """Loaded items matching ``term``, in list order."""
        return [record for record in self.items if record.matches(term)]

    def replace_photo(
        self,
        entity_id: str,
        url: str | None,
        method: ResolutionMethod | None = None,
    ) -> EntityRecord | None:
        """Install a fresher photo URL (edit flow) and clear the broken flag."""
        updated = self._loader.store.replace_photo(entity_id, url, method)
        if updated is not None:
            self._tracker.mark_ok(entity_id)
        return updated

    async def resolve_detail(self, entity_id: str) -> PhotoResolution | None:
        """Re-resolve one record with the long detail-view expiry.

        The new URL replaces the cached one only when it is usable, so a
        failed re-resolution never removes a photo that was showing.
        """
        record = self.get(entity_id)
        if record is None:
            return None
        resolution = await self._resolver.resolve(record.image_path, expires_in=self._detail_expiry)
        if resolution.url is not None:
            self.replace_photo(entity_id, resolution.url, resolution.method)
        return resolution

    def _new_loader(self, fetcher: PageFetcher) -> IncrementalLoader:
        return IncrementalLoader(fetcher, self._resolver, expires_in=self._list_expiry)
