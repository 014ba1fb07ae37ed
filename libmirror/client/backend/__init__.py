"""Remote backend implementations for the library client."""

from libmirror.client.backend.base import LibraryBackend, RemoteCallError, RemoteTimeoutError
from libmirror.client.backend.http import HttpLibraryBackend

__all__ = ["HttpLibraryBackend", "LibraryBackend", "RemoteCallError", "RemoteTimeoutError"]
