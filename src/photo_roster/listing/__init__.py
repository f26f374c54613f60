"""Incremental list loading.

Main entry point:
    from photo_roster.listing import ListSession

    session = ListSession(PageFetcher(source), PhotoResolver(storage))
    await session.open()
    await session.load_more()
"""

from photo_roster.listing.fetcher import LOCATION_LOOKUPS, LocationLookup, PageFetcher
from photo_roster.listing.loader import IncrementalLoader, PageState
from photo_roster.listing.merge import MergeStore, merge_unique
from photo_roster.listing.session import ListSession
from photo_roster.listing.sources import (
    DataSource,
    RestDataSource,
    SqlDataSource,
    build_data_source,
)
from photo_roster.records import EntityRecord, compute_age

__all__ = [
    "LOCATION_LOOKUPS",
    "DataSource",
    "EntityRecord",
    "IncrementalLoader",
    "ListSession",
    "LocationLookup",
    "MergeStore",
    "PageFetcher",
    "PageState",
    "RestDataSource",
    "SqlDataSource",
    "build_data_source",
    "compute_age",
    "merge_unique",
]
