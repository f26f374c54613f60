"""FastAPI application for photo-roster.

Holds open list sessions in process memory and exposes the list surface a
UI needs: items with render decisions, load-more, reset and the image
load/error callbacks.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status

from photo_roster import __version__
from photo_roster.clients.storage import StorageClient
from photo_roster.config import settings
from photo_roster.listing.fetcher import PageFetcher
from photo_roster.listing.session import ListSession
from photo_roster.listing.sources import DataSource, build_data_source
from photo_roster.photos.resolver import PhotoResolver
from photo_roster.schemas import ResolutionOut, SessionOut

logger = logging.getLogger(__name__)


@dataclass
class RosterRuntime:
    """Shared collaborators and the open sessions of one app instance.

    Sessions are kept in least-recently-used order. Opening one beyond
    ``max_sessions`` evicts the session that was touched longest ago.
    """

    storage: StorageClient
    source: DataSource
    resolver: PhotoResolver
    fetcher_factory: Callable[[DataSource], PageFetcher] = PageFetcher
    max_sessions: int = field(default_factory=lambda: settings.max_sessions)
    sessions: OrderedDict[str, ListSession] = field(default_factory=OrderedDict)

    @classmethod
    def from_settings(cls) -> RosterRuntime:
        storage = StorageClient()
        return cls(
            storage=storage,
            source=build_data_source(),
            resolver=PhotoResolver(storage),
        )

    def open_session(self) -> tuple[str, ListSession]:
        session_id = uuid4().hex
        session = ListSession(self.fetcher_factory(self.source), self.resolver)
        self.sessions[session_id] = session
        while len(self.sessions) > self.max_sessions:
            evicted, _ = self.sessions.popitem(last=False)
            logger.info("Evicted least recently used session %s", evicted)
        return session_id, session

    def lookup(self, session_id: str) -> ListSession | None:
        """Return an open session and mark it as recently used."""
        session = self.sessions.get(session_id)
        if session is not None:
            self.sessions.move_to_end(session_id)
        return session

    async def aclose(self) -> None:
        await self.storage.aclose()
        await self.source.aclose()


def create_app(runtime: RosterRuntime | None = None) -> FastAPI:
    """Build the app; tests pass a runtime with fake collaborators."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan handler."""
        owned = app.state.runtime is None
        if owned:
            app.state.runtime = RosterRuntime.from_settings()
        yield
        if owned:
            await app.state.runtime.aclose()

    app = FastAPI(
        title="photo-roster",
        description="Photo resolution and incremental list loading for roster views",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "version": __version__}

    @app.post("/sessions", status_code=status.HTTP_201_CREATED)
    async def create_session(rt: RosterRuntime = Depends(get_runtime)) -> SessionOut:
        """Open a list session and load its first page."""
        session_id, session = rt.open_session()
        loaded = await session.open()
        return SessionOut.from_session(session_id, session, loaded=loaded)

    @app.get("/sessions/{session_id}")
    async def read_session(
        session_id: str,
        q: str | None = None,
        rt: RosterRuntime = Depends(get_runtime),
    ) -> SessionOut:
        """Current items, optionally filtered by a search term."""
        return SessionOut.from_session(session_id, _session_or_404(rt, session_id), query=q)

    @app.post("/sessions/{session_id}/load-more")
    async def load_more(session_id: str, rt: RosterRuntime = Depends(get_runtime)) -> SessionOut:
        """Explicit "load more" or sentinel trigger; a no-op while loading or done."""
        session = _session_or_404(rt, session_id)
        loaded = await session.load_more()
        return SessionOut.from_session(session_id, session, loaded=loaded)

    @app.post("/sessions/{session_id}/reset")
    async def reset(session_id: str, rt: RosterRuntime = Depends(get_runtime)) -> SessionOut:
        """Reload from the first page (e.g. after a record was created)."""
        session = _session_or_404(rt, session_id)
        loaded = await session.reset()
        return SessionOut.from_session(session_id, session, loaded=loaded)

    @app.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def close_session(session_id: str, rt: RosterRuntime = Depends(get_runtime)) -> Response:
        _session_or_404(rt, session_id)
        del rt.sessions[session_id]
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post(
        "/sessions/{session_id}/images/{entity_id}/error",
        status_code=status.HTTP_204_NO_CONTENT,
    )
    async def image_error(
        session_id: str, entity_id: str, rt: RosterRuntime = Depends(get_runtime)
    ) -> Response:
        """Browser reported that the image for ``entity_id`` failed to load."""
        _session_or_404(rt, session_id).on_image_error(entity_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post(
        "/sessions/{session_id}/images/{entity_id}/load",
        status_code=status.HTTP_204_NO_CONTENT,
    )
    async def image_load(
        session_id: str, entity_id: str, rt: RosterRuntime = Depends(get_runtime)
    ) -> Response:
        """Browser loaded the image for ``entity_id``."""
        _session_or_404(rt, session_id).on_image_load(entity_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/sessions/{session_id}/items/{entity_id}/photo")
    async def detail_photo(
        session_id: str, entity_id: str, rt: RosterRuntime = Depends(get_runtime)
    ) -> ResolutionOut:
        """Re-resolve one record's photo with the detail-view expiry."""
        session = _session_or_404(rt, session_id)
        resolution = await session.resolve_detail(entity_id)
        if resolution is None:
            raise HTTPException(status_code=404, detail=f"Item not loaded: {entity_id}")
        record = session.get(entity_id)
        return ResolutionOut.from_resolution(record.image_path if record else None, resolution)

    @app.get("/photos/resolve")
    async def resolve_photo(
        path: str | None = None,
        detail: bool = False,
        rt: RosterRuntime = Depends(get_runtime),
    ) -> ResolutionOut:
        """Run the fallback chain for an arbitrary storage path."""
        expiry = settings.signed_url_expiry_detail if detail else settings.signed_url_expiry_list
        resolution = await rt.resolver.resolve(path, expires_in=expiry)
        return ResolutionOut.from_resolution(path, resolution)

    return app


def get_runtime(request: Request) -> RosterRuntime:
    """Dependency for the app's runtime, built from settings on first use."""
    if request.app.state.runtime is None:
        request.app.state.runtime = RosterRuntime.from_settings()
    return request.app.state.runtime


def _session_or_404(rt: RosterRuntime, session_id: str) -> ListSession:
    session = rt.lookup(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return session


app = create_app()
