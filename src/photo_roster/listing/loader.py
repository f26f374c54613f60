"""Incremental "load more" coordination.

One loader owns the page cursor, the ``has_more`` flag and the single
in-flight guard shared by the explicit button and the viewport sentinel:

    IDLE ──trigger──▶ LOADING ──success──▶ IDLE (or TERMINAL on a short page)
                         │
                         └──failure──▶ IDLE (cursor and has_more untouched)

A reset bumps the generation counter and reloads page 0, replacing the
items. A fetch that started under an older generation is discarded when it
lands, so a slow "load more" can never append to a freshly reset list. A
reset whose fetch fails stays pending: the cursor and items are kept and the
next trigger retries page 0 as a replacement.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from photo_roster.listing.fetcher import PageFetcher
from photo_roster.listing.merge import MergeStore
from photo_roster.models.enums import LoaderState
from photo_roster.photos.resolver import PhotoResolver
from photo_roster.records import EntityRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageState:
    """Snapshot of the list as the UI should render it."""

    page_index: int
    page_size: int
    has_more: bool
    loading: bool
    items: tuple[EntityRecord, ...]


class IncrementalLoader:
    """Sequential page loading with an at-most-one-in-flight guard.

    Usage:
        loader = IncrementalLoader(fetcher, resolver)
        await loader.reset()       # first page
        await loader.load_more()   # button
        await loader.on_sentinel_visible()  # sentinel scrolled into view
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        resolver: PhotoResolver,
        *,
        store: MergeStore | None = None,
        expires_in: int | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._resolver = resolver
        self._store = store or MergeStore()
        self._expires_in = expires_in

        # -1 until the first page lands
        self._page_index = -1
        self._has_more = True
        self._loading = False
        self._generation = 0
        self._pending_reset = False
        self._last_error: Exception | None = None

    @property
    def store(self) -> MergeStore:
        return self._store

    @property
    def items(self) -> tuple[EntityRecord, ...]:
        return self._store.items

    @property
    def page_index(self) -> int:
        return self._page_index

    @property
    def page_size(self) -> int:
        return self._fetcher.page_size

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending_reset(self) -> bool:
        """A reset was requested but its first page has not landed yet."""
        return self._pending_reset

    @property
    def last_error(self) -> Exception | None:
        """Failure of the most recent fetch, cleared when the next one starts."""
        return self._last_error

    @property
    def state(self) -> LoaderState:
        if self._loading:
            return LoaderState.LOADING
        if not self._has_more and not self._pending_reset:
            return LoaderState.TERMINAL
        return LoaderState.IDLE

    def snapshot(self) -> PageState:
        return PageState(
            page_index=self._page_index,
            page_size=self._fetcher.page_size,
            has_more=self._has_more,
            loading=self._loading,
            items=self._store.items,
        )

    async def load_more(self) -> bool:
        """Fetch the next page unless a fetch is running or the list is done.

        Returns:
            True if a page was fetched and merged, False otherwise.
        """
        if self._loading:
            return False
        if self._pending_reset:
            return await self._load(0, replace=True)
        if not self._has_more:
            return False
        return await self._load(self._page_index + 1, replace=False)

    async def on_sentinel_visible(self) -> bool:
        """Automatic trigger; shares the guard with ``load_more``."""
        return await self.load_more()

    async def reset(self) -> bool:
        """Start over from page 0, replacing the current items on success.

        Any fetch still in flight belongs to the previous generation and will
        be discarded when it completes. On failure the current items, cursor
        and ``has_more`` are kept until a retry succeeds.
        """
        self._generation += 1
        self._pending_reset = True
        self._loading = False
        return await self._load(0, replace=True)

    async def _load(self, page_index: int, *, replace: bool) -> bool:
        generation = self._generation
        self._loading = True
        self._last_error = None
        try:
            records = await self._fetcher.fetch_page(page_index)
            resolved = await self._resolver.resolve_records(records, expires_in=self._expires_in)
        except Exception as e:
            if generation == self._generation:
                self._last_error = e
                logger.warning("Loading page %d failed: %s", page_index, e)
            return False
        else:
            if generation != self._generation:
                logger.debug(
                    "Discarding page %d from generation %d (now %d)",
                    page_index, generation, self._generation,
                )
                return False

            if replace:
                self._store.replace(resolved)
                self._pending_reset = False
                self._has_more = True
            else:
                self._store.merge(resolved)
            self._page_index = page_index
            if len(records) < self._fetcher.page_size:
                self._has_more = False
            logger.debug(
                "Page %d merged: %d rows, %d items, has_more=%s",
                page_index, len(records), len(self._store), self._has_more,
            )
            return True
        finally:
            if generation == self._generation:
                self._loading = False
