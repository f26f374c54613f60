"""Async client for the object-storage service (Supabase Storage compatible).

Covers the three storage capabilities the roster needs:
    - public_url: deterministic public URL for an object (no network)
    - sign_url: time-limited signed URL for a private object
    - fetch_range: byte-range GET used to probe reachability cheaply
"""

from __future__ import annotations

import logging
import time
from types import TracebackType
from urllib.parse import quote

import httpx

from photo_roster.config import settings

logger = logging.getLogger(__name__)


class SigningError(RuntimeError):
    """The storage service answered but did not return a usable signed URL."""


class StorageClient:
    """Async client for one storage bucket.

    Usage:
        async with StorageClient() as storage:
            url = storage.public_url("p/123.jpg")
            response = await storage.fetch_range(url)
            signed = await storage.sign_url("p/123.jpg", expires_in=60)
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        bucket: str | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or settings.storage_url).rstrip("/")
        self._api_key = api_key or settings.storage_api_key
        self._bucket = bucket or settings.photo_bucket
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=settings.request_timeout_seconds)

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def storage_root(self) -> str:
        return f"{self._base_url}/storage/v1"

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    async def __aenter__(self) -> StorageClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    def public_url(self, path: str) -> str:
        """Build the public URL for an object. Pure string derivation."""
        return f"{self.storage_root}/object/public/{self._bucket}/{_quote_path(path)}"

    async def sign_url(self, path: str, expires_in: int) -> str:
        """Request a signed URL valid for ``expires_in`` seconds.

        Raises:
            httpx.HTTPStatusError: The service rejected the request.
            httpx.TransportError: The service could not be reached.
            SigningError: The response carried no signed URL.
        """
        start_time = time.time()
        response = await self._client.post(
            f"{self.storage_root}/object/sign/{self._bucket}/{_quote_path(path)}",
            json={"expiresIn": expires_in},
            headers=self._auth_headers(),
        )
        response.raise_for_status()

        try:
            payload = response.json()
        except ValueError as e:
            raise SigningError(f"Signing response for {path!r} is not JSON") from e

        signed = None
        if isinstance(payload, dict):
            # Older storage versions spell it signedURL, newer ones signedUrl
            signed = payload.get("signedURL") or payload.get("signedUrl")
        if not signed:
            raise SigningError(f"No signed URL returned for {path!r}")

        if settings.log_api_calls:
            elapsed = (time.time() - start_time) * 1000  # ms
            logger.info("[SIGN] %s/%s (%ds) (%.0fms)", self._bucket, path, expires_in, elapsed)

        if signed.startswith(("http://", "https://")):
            return signed
        return f"{self.storage_root}/{signed.lstrip('/')}"

    async def fetch_range(
        self,
        url: str,
        *,
        start: int = 0,
        end: int = 0,
        timeout: float | None = None,
    ) -> httpx.Response:
        """GET only ``bytes=start-end`` of ``url``.

        Some storage configurations reject HEAD or answer it with a JSON
        error, so the probe is a ranged GET instead. The response is streamed
        and closed unread: only the status line and headers are returned, even
        when the server ignores ``Range`` and starts sending the whole object.
        """
        start_time = time.time()
        async with self._client.stream(
            "GET",
            url,
            headers={"Range": f"bytes={start}-{end}"},
            timeout=timeout if timeout is not None else settings.probe_timeout_seconds,
            follow_redirects=True,
        ) as response:
            pass

        if settings.log_api_calls:
            elapsed = (time.time() - start_time) * 1000  # ms
            logger.info(
                "[PROBE] %s → %d %s (%.0fms)",
                url, response.status_code, response.headers.get("content-type", "-"), elapsed,
            )

        return response

    def _auth_headers(self) -> dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
        }


def _quote_path(path: str) -> str:
    return quote(path.lstrip("/"), safe="/")
