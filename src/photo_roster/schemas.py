"""Pydantic schemas for the HTTP surface."""

from __future__ import annotations

from pydantic import BaseModel, Field

from photo_roster.listing.session import ListSession
from photo_roster.models.enums import LoaderState, ResolutionMethod
from photo_roster.photos.resolver import PhotoResolution
from photo_roster.records import EntityRecord


class PlaceholderOut(BaseModel):
    """Initial-letter avatar to draw instead of a photo."""

    initial: str
    color: str


class ItemOut(BaseModel):
    """One roster row plus the photo-vs-placeholder decision."""

    id: str
    full_name: str
    identification: str
    identification_type: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    active: bool
    age: int | None = None
    location: str
    image_path: str | None = None
    resolution_method: ResolutionMethod
    broken: bool = Field(description="A browser reported this record's image as failing to load")
    photo_url: str | None = Field(
        default=None, description="URL to render; None means draw the placeholder"
    )
    placeholder: PlaceholderOut | None = None

    @classmethod
    def from_record(cls, record: EntityRecord, session: ListSession) -> ItemOut:
        view = session.photo_for(record)
        placeholder = None
        if view.placeholder is not None:
            placeholder = PlaceholderOut(
                initial=view.placeholder.initial, color=view.placeholder.color
            )
        return cls(
            id=record.id,
            full_name=record.full_name,
            identification=record.identification,
            identification_type=record.identification_type,
            email=record.email,
            phone=record.phone,
            address=record.address,
            active=record.active,
            age=record.age,
            location=record.location_label,
            image_path=record.image_path,
            resolution_method=record.resolution_method,
            broken=session.is_broken(record.id),
            photo_url=view.url,
            placeholder=placeholder,
        )


class SessionOut(BaseModel):
    """State of one list session."""

    session_id: str
    state: LoaderState
    page_index: int
    has_more: bool
    loading: bool
    error: str | None = Field(default=None, description="Last page-fetch failure, if any")
    loaded: bool | None = Field(
        default=None, description="Whether the triggering call fetched a page"
    )
    items: list[ItemOut]

    @classmethod
    def from_session(
        cls,
        session_id: str,
        session: ListSession,
        *,
        query: str | None = None,
        loaded: bool | None = None,
    ) -> SessionOut:
        snapshot = session.snapshot()
        records = session.search(query) if query else list(snapshot.items)
        error = session.last_error
        return cls(
            session_id=session_id,
            state=session.state,
            page_index=snapshot.page_index,
            has_more=snapshot.has_more,
            loading=snapshot.loading,
            error=f"{type(error).__name__}: {error}" if error else None,
            loaded=loaded,
            items=[ItemOut.from_record(record, session) for record in records],
        )


class ResolutionOut(BaseModel):
    """Outcome of resolving a single image path."""

    path: str | None
    url: str | None
    method: ResolutionMethod

    @classmethod
    def from_resolution(cls, path: str | None, resolution: PhotoResolution) -> ResolutionOut:
        return cls(path=path, url=resolution.url, method=resolution.method)
