"""Photo resolution and rendering decisions.

Main entry points:
    from photo_roster.photos import PhotoResolver, BrokenImageTracker, photo_for

    resolver = PhotoResolver(storage)
    resolution = await resolver.resolve("p/123.jpg")
"""

from photo_roster.photos.broken import BrokenImageTracker
from photo_roster.photos.placeholder import (
    PhotoView,
    Placeholder,
    color_for,
    initial_for,
    photo_for,
    placeholder_for,
)
from photo_roster.photos.resolver import (
    PhotoResolution,
    PhotoResolver,
    PublicProbeStrategy,
    ResolutionStrategy,
    SignedUrlStrategy,
    StrategyResult,
    default_strategies,
)

__all__ = [
    "BrokenImageTracker",
    "PhotoResolution",
    "PhotoResolver",
    "PhotoView",
    "Placeholder",
    "PublicProbeStrategy",
    "ResolutionStrategy",
    "SignedUrlStrategy",
    "StrategyResult",
    "color_for",
    "default_strategies",
    "initial_for",
    "photo_for",
    "placeholder_for",
]
