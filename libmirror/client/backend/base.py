"""Remote library backend interface.

The backend is the authoritative catalog store: a GitHub-backed service that
owns workspaces, catalogs, variations, collections and the local resource
index.  The client reaches it only through these request / response
operations; each either returns a typed result or raises
``RemoteCallError``.

Tags are ``list[str]`` on this interface.  Implementations that speak a
JSON-string tag encoding convert at their own edge.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from libmirror.client.models.library import (
    CatalogWithVariations,
    Collection,
    LocalResource,
    PublishResult,
    PullResult,
    ScanResult,
    SyncResult,
    Workspace,
)


class RemoteCallError(RuntimeError):
    """Raised when a backend operation fails (transport error or rejection)."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(message)
        self.operation = operation
        self.message = message


class RemoteTimeoutError(RemoteCallError):
    """Raised when a backend operation exceeds its caller-assigned deadline."""

    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(operation, f"Operation '{operation}' timed out after {timeout:g}s")
        self.timeout = timeout


@runtime_checkable
class LibraryBackend(Protocol):
    """Async protocol for the remote library operations."""

    async def aclose(self) -> None:
        """Release transport resources."""
        ...

    # -- Workspaces / catalogs -------------------------------------------------

    async def list_workspaces(self) -> list[Workspace]: ...

    async def list_catalogs(self, workspace_id: str) -> list[CatalogWithVariations]: ...

    async def sync_workspace_catalog(self, workspace_id: str) -> SyncResult: ...

    async def delete_catalogs(self, catalog_ids: list[str]) -> int:
        """Delete catalogs and their variations.  Returns the deleted count."""
        ...

    # -- Collections -----------------------------------------------------------

    async def get_collections(self, workspace_id: str) -> list[Collection]: ...

    async def get_collection_catalog_ids(self, collection_id: str) -> list[str]: ...

    async def create_collection(
        self,
        workspace_id: str,
        name: str,
        description: str | None = None,
        tags: list[str] | None = None,
    ) -> str:
        """Create a collection.  Returns the server-issued collection id."""
        ...

    async def update_collection(
        self,
        collection_id: str,
        name: str,
        description: str | None = None,
        tags: list[str] | None = None,
        color: str | None = None,
    ) -> None: ...

    async def delete_collection(self, collection_id: str) -> None: ...

    async def add_catalogs_to_collection(self, collection_id: str, catalog_ids: list[str]) -> None: ...

    async def remove_catalogs_from_collection(self, collection_id: str, catalog_ids: list[str]) -> None: ...

    # -- Local resources -------------------------------------------------------

    async def scan_project_resources(self, project_id: str, project_path: str) -> ScanResult: ...

    async def get_project_resources(self, project_id: str) -> list[LocalResource]: ...

    # -- Publish / pull --------------------------------------------------------

    async def publish_resource(
        self,
        resource_id: str,
        workspace_id: str,
        *,
        version_tag: str | None = None,
        overwrite_variation_id: str | None = None,
    ) -> PublishResult: ...

    async def pull_variation(
        self,
        variation_id: str,
        target_project_id: str,
        target_project_path: str,
        overwrite_if_exists: bool,
    ) -> PullResult: ...
