"""HTTP clients for the storage and REST services."""

from photo_roster.clients.rest import RestClient
from photo_roster.clients.storage import SigningError, StorageClient

__all__ = ["RestClient", "SigningError", "StorageClient"]
