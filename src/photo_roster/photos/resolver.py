"""Photo resolution: turn a stored image path into a displayable URL.

The chain is an ordered list of strategies tried with early exit:

1. Empty path → no URL (placeholder).
2. Public URL, accepted only if a ``bytes=0-0`` probe answers with a success
   status and an ``image/*`` content type.
3. Signed URL from the storage service.
4. Nothing worked → no URL (placeholder).

``PhotoResolver.resolve`` never raises: every strategy failure, including
transport errors and timeouts, degrades to the next tier.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from photo_roster.clients.storage import StorageClient
from photo_roster.config import settings
from photo_roster.models.enums import ResolutionMethod
from photo_roster.records import EntityRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhotoResolution:
    """Outcome of resolving one image path."""

    url: str | None
    method: ResolutionMethod

    @classmethod
    def none(cls) -> PhotoResolution:
        return cls(url=None, method=ResolutionMethod.NONE)


@dataclass(frozen=True)
class StrategyResult:
    """Either a usable URL or the reason a strategy gave up."""

    url: str | None = None
    failure: str | None = None

    @property
    def ok(self) -> bool:
        return self.url is not None

    @classmethod
    def success(cls, url: str) -> StrategyResult:
        return cls(url=url)

    @classmethod
    def fail(cls, reason: str) -> StrategyResult:
        return cls(failure=reason)


class ResolutionStrategy(Protocol):
    """One tier of the fallback chain."""

    method: ResolutionMethod

    async def __call__(self, path: str, expires_in: int) -> StrategyResult:
        ...


class PublicProbeStrategy:
    """Accept the public URL if a one-byte ranged GET returns an image."""

    method = ResolutionMethod.PUBLIC

    def __init__(self, storage: StorageClient) -> None:
        self._storage = storage

    async def __call__(self, path: str, expires_in: int) -> StrategyResult:
        public_url = self._storage.public_url(path)
        response = await self._storage.fetch_range(public_url)
        content_type = response.headers.get("content-type", "")
        if response.is_success and content_type.lower().startswith("image"):
            return StrategyResult.success(public_url)
        return StrategyResult.fail(f"probe {response.status_code} {content_type or '-'}")


class SignedUrlStrategy:
    """Ask the storage service for a time-limited URL."""

    method = ResolutionMethod.SIGNED

    def __init__(self, storage: StorageClient) -> None:
        self._storage = storage

    async def __call__(self, path: str, expires_in: int) -> StrategyResult:
        signed_url = await self._storage.sign_url(path, expires_in)
        return StrategyResult.success(signed_url)


def default_strategies(storage: StorageClient) -> list[ResolutionStrategy]:
    """Probe the public URL first, then fall back to signing."""
    return [PublicProbeStrategy(storage), SignedUrlStrategy(storage)]


class PhotoResolver:
    """Resolve image paths through an ordered strategy chain.

    Usage:
        async with StorageClient() as storage:
            resolver = PhotoResolver(storage)
            resolution = await resolver.resolve("p/123.jpg")
            # resolution.url, resolution.method
    """

    def __init__(
        self,
        storage: StorageClient,
        strategies: Sequence[ResolutionStrategy] | None = None,
        *,
        default_expiry: int | None = None,
        strategy_timeout: float | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            storage: Storage client shared by the default strategies.
            strategies: Override the chain (tried in order).
            default_expiry: Signed-URL lifetime when ``resolve`` gets none.
            strategy_timeout: Upper bound for a single strategy attempt.
        """
        self._strategies = list(strategies) if strategies is not None else default_strategies(storage)
        self._default_expiry = default_expiry or settings.signed_url_expiry_list
        self._strategy_timeout = strategy_timeout or settings.request_timeout_seconds

    @property
    def strategies(self) -> list[ResolutionStrategy]:
        return list(self._strategies)

    async def resolve(self, image_path: str | None, *, expires_in: int | None = None) -> PhotoResolution:
        """Resolve one image path. Never raises.

        Args:
            image_path: Storage key, or None/empty for records without a photo.
            expires_in: Signed-URL lifetime in seconds (list default if None).

        Returns:
            PhotoResolution tagged public, signed or none.
        """
        if not image_path or not image_path.strip():
            return PhotoResolution.none()

        expiry = expires_in or self._default_expiry
        for strategy in self._strategies:
            try:
                result = await asyncio.wait_for(
                    strategy(image_path, expiry), timeout=self._strategy_timeout
                )
            except Exception as e:
                result = StrategyResult.fail(f"{type(e).__name__}: {e}")

            if result.ok:
                logger.debug("Resolved %s via %s", image_path, strategy.method.value)
                return PhotoResolution(url=result.url, method=strategy.method)

            if strategy.method == ResolutionMethod.SIGNED:
                logger.warning("Signed URL failed for %s: %s", image_path, result.failure)
            else:
                logger.debug("%s tier failed for %s: %s", strategy.method.value, image_path, result.failure)

        return PhotoResolution.none()

    async def resolve_records(
        self,
        records: Sequence[EntityRecord],
        *,
        expires_in: int | None = None,
    ) -> list[EntityRecord]:
        """Resolve every record of a page concurrently.

        Returns new records (same order) carrying ``resolved_photo_url`` and
        ``resolution_method``. Completes only once every record has settled.
        """
        resolutions = await asyncio.gather(
            *(self.resolve(record.image_path, expires_in=expires_in) for record in records)
        )
        return [
            dataclasses.replace(
                record,
                resolved_photo_url=resolution.url,
                resolution_method=resolution.method,
            )
            for record, resolution in zip(records, resolutions, strict=True)
        ]
