"""Enumerations for the photo-roster data model."""

from enum import Enum


class ResolutionMethod(str, Enum):
    """How a record's photo URL was obtained."""

    PUBLIC = "public"  # Public URL passed the range probe
    SIGNED = "signed"  # Time-limited URL issued by the storage service
    NONE = "none"  # No usable URL, render the placeholder


class LoaderState(str, Enum):
    """Observable state of an incremental list loader."""

    IDLE = "idle"  # Accepts load triggers
    LOADING = "loading"  # A page fetch is in flight, triggers are ignored
    TERMINAL = "terminal"  # Last page seen, nothing more to fetch
