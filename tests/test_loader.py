"""Tests for IncrementalLoader: paging, guard, failures and resets."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest
from conftest import FakeSource, image_ok_handler, newest_first_ids, person_row, storage_client

from photo_roster.listing.fetcher import PageFetcher
from photo_roster.listing.loader import IncrementalLoader
from photo_roster.models.enums import LoaderState, ResolutionMethod
from photo_roster.photos.resolver import PhotoResolver


class GatedSource(FakeSource):
    """FakeSource whose range queries wait until the test opens the gate."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()

    async def select(self, relation: str, **kwargs: Any) -> list[dict[str, Any]]:
        self.entered.set()
        await self.gate.wait()
        return await super().select(relation, **kwargs)


def make_loader(source: FakeSource, page_size: int = 10) -> IncrementalLoader:
    fetcher = PageFetcher(source, page_size=page_size, table="personas", view="", order_by="created_at")
    resolver = PhotoResolver(storage_client(image_ok_handler), strategy_timeout=1.0)
    return IncrementalLoader(fetcher, resolver)


def ids(loader: IncrementalLoader) -> list[str]:
    return [item.id for item in loader.items]


class TestPaging:
    """Example scenarios with page size 10."""

    async def test_full_first_page_keeps_has_more(self, fake_source) -> None:
        loader = make_loader(fake_source(14))

        assert await loader.reset()

        assert len(loader.items) == 10
        assert loader.has_more
        assert loader.page_index == 0
        assert loader.state == LoaderState.IDLE

    async def test_short_page_ends_the_list(self, fake_source) -> None:
        source = fake_source(14)
        loader = make_loader(source)
        await loader.reset()

        assert await loader.load_more()

        assert len(loader.items) == 14
        assert not loader.has_more
        assert loader.page_index == 1
        assert loader.state == LoaderState.TERMINAL
        assert ids(loader) == newest_first_ids(14)

    async def test_terminal_load_more_makes_no_request(self, fake_source) -> None:
        source = fake_source(4)
        loader = make_loader(source)
        await loader.reset()
        calls_before = len(source.select_calls)

        assert not await loader.load_more()
        assert not await loader.on_sentinel_visible()

        assert len(source.select_calls) == calls_before
        assert len(loader.items) == 4

    async def test_load_more_before_reset_loads_first_page(self, fake_source) -> None:
        source = fake_source(3)
        loader = make_loader(source)

        assert await loader.load_more()

        assert source.select_calls == [("personas", 0, 9)]
        assert len(loader.items) == 3

    async def test_exact_multiple_needs_one_empty_page(self, fake_source) -> None:
        source = fake_source(20)
        loader = make_loader(source)
        await loader.reset()
        await loader.load_more()
        assert loader.has_more

        assert await loader.load_more()

        assert not loader.has_more
        assert len(loader.items) == 20
        assert loader.page_index == 2

    async def test_items_are_resolved_before_merge(self, fake_source) -> None:
        loader = make_loader(fake_source(2))

        await loader.reset()

        assert all(item.resolution_method == ResolutionMethod.PUBLIC for item in loader.items)
        assert all(item.resolved_photo_url for item in loader.items)

    async def test_overlapping_page_does_not_duplicate(self, fake_source) -> None:
        """A row shifting into the next page (new insert) is not shown twice."""
        source = fake_source(15)
        loader = make_loader(source)
        await loader.reset()

        # Newer row inserted between page loads shifts every row down by one
        source.tables["personas"].append(person_row(99))
        await loader.load_more()

        assert len(ids(loader)) == len(set(ids(loader)))
        assert ids(loader)[:10] == newest_first_ids(15)[:10]


class TestGuard:
    """At most one page fetch in flight."""

    async def test_concurrent_triggers_make_one_request(self) -> None:
        source = GatedSource([person_row(i) for i in range(25)])
        loader = make_loader(source)
        source.gate.set()
        await loader.reset()
        source.gate.clear()
        source.entered.clear()
        calls_before = len(source.select_calls)

        first = asyncio.create_task(loader.load_more())
        await source.entered.wait()
        assert loader.state == LoaderState.LOADING

        second = await loader.load_more()
        third = await loader.on_sentinel_visible()
        source.gate.set()
        first_result = await first

        assert (first_result, second, third) == (True, False, False)
        assert source.select_calls[calls_before:] == [("personas", 10, 19)]
        assert len(loader.items) == 20

    async def test_pages_are_sequential(self, fake_source) -> None:
        source = fake_source(35)
        loader = make_loader(source)
        await loader.reset()

        await asyncio.gather(*(loader.load_more() for _ in range(5)))
        while loader.has_more:
            await loader.load_more()

        starts = [start for _, start, _ in source.select_calls]
        assert starts == [0, 10, 20, 30]
        assert ids(loader) == newest_first_ids(35)


class TestFailures:
    """A failed fetch leaves the list untouched and is retryable."""

    async def test_failure_keeps_cursor_and_items(self, fake_source) -> None:
        source = fake_source(25)
        loader = make_loader(source)
        await loader.reset()
        before = loader.items

        source.fail_next_selects = 1
        assert not await loader.load_more()

        assert loader.items == before
        assert loader.page_index == 0
        assert loader.has_more
        assert not loader.loading
        assert isinstance(loader.last_error, ConnectionError)

    async def test_retry_fetches_the_same_page(self, fake_source) -> None:
        source = fake_source(25)
        loader = make_loader(source)
        await loader.reset()
        source.fail_next_selects = 1
        await loader.load_more()

        assert await loader.load_more()

        assert [start for _, start, _ in source.select_calls] == [0, 10, 10]
        assert loader.page_index == 1
        assert loader.last_error is None
        assert len(loader.items) == 20

    async def test_failed_first_page_leaves_empty_list(self, fake_source) -> None:
        source = fake_source(5)
        source.fail_next_selects = 1
        loader = make_loader(source)

        assert not await loader.reset()

        assert loader.items == ()
        assert loader.has_more
        assert loader.state == LoaderState.IDLE

    async def test_failed_reset_keeps_cursor_and_items(self, fake_source) -> None:
        source = fake_source(14)
        loader = make_loader(source)
        await loader.reset()
        await loader.load_more()
        before = loader.items
        source.tables["personas"].append(person_row(50))

        source.fail_next_selects = 1
        assert not await loader.reset()

        assert loader.items == before
        assert loader.page_index == 1
        assert not loader.has_more
        assert loader.pending_reset
        assert loader.state == LoaderState.IDLE
        assert isinstance(loader.last_error, ConnectionError)

    async def test_retry_after_failed_reset_replaces_items(self, fake_source) -> None:
        source = fake_source(14)
        loader = make_loader(source)
        await loader.reset()
        await loader.load_more()
        source.tables["personas"].append(person_row(50))
        source.fail_next_selects = 1
        await loader.reset()

        assert await loader.load_more()

        assert ids(loader)[0] == "p-050"
        assert len(loader.items) == 10
        assert loader.page_index == 0
        assert loader.has_more
        assert not loader.pending_reset
        assert [start for _, start, _ in source.select_calls][-2:] == [0, 0]

    async def test_photo_failures_do_not_fail_the_page(self, fake_source) -> None:
        fetcher = PageFetcher(
            fake_source(3), page_size=10, table="personas", view="", order_by="created_at"
        )
        def always_down(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("storage down")

        loader = IncrementalLoader(
            fetcher, PhotoResolver(storage_client(always_down), strategy_timeout=1.0)
        )

        assert await loader.reset()

        assert len(loader.items) == 3
        assert all(item.resolution_method == ResolutionMethod.NONE for item in loader.items)


class TestReset:
    """Resets replace the list and invalidate in-flight fetches."""

    async def test_reset_replaces_items_with_fresh_first_page(self, fake_source) -> None:
        source = fake_source(14)
        loader = make_loader(source)
        await loader.reset()
        await loader.load_more()
        assert not loader.has_more

        source.tables["personas"].append(person_row(50))
        assert await loader.reset()

        assert loader.page_index == 0
        assert loader.has_more
        assert len(loader.items) == 10
        assert ids(loader)[0] == "p-050"

    async def test_stale_page_discarded_after_reset(self) -> None:
        source = GatedSource([person_row(i) for i in range(25)])
        loader = make_loader(source)
        source.gate.set()
        await loader.reset()

        source.gate.clear()
        source.entered.clear()
        stale = asyncio.create_task(loader.load_more())
        await source.entered.wait()
        generation_before = loader.generation

        # Reset while page 1 is in flight; both complete once the gate opens
        fresh = asyncio.create_task(loader.reset())
        await asyncio.sleep(0)
        source.gate.set()
        stale_result, fresh_result = await asyncio.gather(stale, fresh)

        assert loader.generation == generation_before + 1
        assert stale_result is False
        assert fresh_result is True
        assert loader.page_index == 0
        assert ids(loader) == newest_first_ids(25)[:10]
        assert not loader.loading

    async def test_snapshot(self, fake_source) -> None:
        loader = make_loader(fake_source(3), page_size=5)
        await loader.reset()

        snapshot = loader.snapshot()

        assert snapshot.page_index == 0
        assert snapshot.page_size == 5
        assert snapshot.has_more is False
        assert snapshot.loading is False
        assert [i.id for i in snapshot.items] == newest_first_ids(3)


@pytest.mark.parametrize("total", [0, 1, 9, 10, 11, 30])
async def test_drains_every_row_exactly_once(fake_source, total: int) -> None:
    loader = make_loader(fake_source(total))
    await loader.reset()
    while loader.has_more:
        assert await loader.load_more()

    assert ids(loader) == newest_first_ids(total)
