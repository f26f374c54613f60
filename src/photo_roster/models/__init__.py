"""Database models for photo-roster."""

from photo_roster.models.base import Base
from photo_roster.models.enums import LoaderState, ResolutionMethod
from photo_roster.models.person import City, Country, Department, Neighborhood, Person

__all__ = [
    "Base",
    "City",
    "Country",
    "Department",
    "LoaderState",
    "Neighborhood",
    "Person",
    "ResolutionMethod",
]
