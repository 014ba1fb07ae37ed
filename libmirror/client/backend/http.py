"""HTTP library backend.

Talks to the library service over its RPC-style API (reads use GET, writes
use POST)::

    GET  /api/workspaces/list
    GET  /api/workspaces/{workspace_id}/catalogs/list
    POST /api/workspaces/{workspace_id}/catalogs/sync
    POST /api/catalogs/delete
    GET  /api/workspaces/{workspace_id}/collections/list
    POST /api/workspaces/{workspace_id}/collections/create
    GET  /api/collections/{collection_id}/catalog_ids
    POST /api/collections/{collection_id}/update
    POST /api/collections/{collection_id}/delete
    POST /api/collections/{collection_id}/catalogs/add
    POST /api/collections/{collection_id}/catalogs/remove
    POST /api/projects/{project_id}/resources/scan
    GET  /api/projects/{project_id}/resources/list
    POST /api/resources/{resource_id}/publish
    POST /api/variations/{variation_id}/pull

The service stores tags as a JSON-encoded string.  This module is the only
place that encoding is visible: tags are decoded to ``list[str]`` on read
and encoded back on write.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import TypeAdapter

from libmirror.client.backend.base import RemoteCallError
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

if TYPE_CHECKING:
    from libmirror.client.settings import LibrarySettings

logger = logging.getLogger(__name__)

_PUBLISH_RESULT: TypeAdapter[PublishResult] = TypeAdapter(PublishResult)


# ---------------------------------------------------------------------------
# Tag wire encoding
# ---------------------------------------------------------------------------


def decode_tags(raw: Any) -> list[str]:
    """Decode a wire tag field (JSON array string, list or null) to ``list[str]``."""
    if raw is None or raw == "":
        return []
    if isinstance(raw, list):
        return [str(tag) for tag in raw]
    try:
        value = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        logger.warning("Ignoring malformed tag string: %r", raw)
        return []
    if not isinstance(value, list):
        logger.warning("Ignoring non-list tag value: %r", raw)
        return []
    return [str(tag) for tag in value]


def encode_tags(tags: list[str] | None) -> str | None:
    """Encode tags for the wire.  ``None`` means "not provided"."""
    if tags is None:
        return None
    return json.dumps(tags)


def _with_tags(data: dict[str, Any]) -> dict[str, Any]:
    return {**data, "tags": decode_tags(data.get("tags"))}


def _camel_resource(data: dict[str, Any]) -> dict[str, Any]:
    """Accept both snake_case and camelCase resource payloads."""
    aliases = {
        "projectId": "project_id",
        "relativePath": "relative_path",
        "fileName": "file_name",
        "artifactType": "artifact_type",
        "contentHash": "content_hash",
        "isDeleted": "is_deleted",
    }
    return {aliases.get(key, key): value for key, value in data.items()}


# ---------------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------------


class HttpLibraryBackend:
    """``LibraryBackend`` implementation over HTTP.

    Owns its ``httpx.AsyncClient`` unless one is injected (tests pass a
    client built on ``httpx.MockTransport``).  Use as an async context
    manager or call ``aclose()`` when done.
    """

    def __init__(
        self,
        base_url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._own_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: LibrarySettings) -> HttpLibraryBackend:
        return cls(
            settings.backend_url,
            headers=settings.auth_headers(),
            timeout=settings.sync_timeout,
        )

    async def aclose(self) -> None:
        if self._own_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpLibraryBackend:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # -- Transport -------------------------------------------------------------

    async def _request(self, operation: str, method: str, path: str, payload: dict | None = None) -> Any:
        try:
            if method == "GET":
                resp = await self._client.get(path, params=payload)
            else:
                body = {k: v for k, v in (payload or {}).items() if v is not None}
                resp = await self._client.post(path, json=body)
        except httpx.HTTPError as exc:
            msg = f"{operation}: {exc}"
            raise RemoteCallError(operation, msg) from exc

        if resp.is_error:
            raise RemoteCallError(operation, _error_detail(operation, resp))

        if resp.status_code == httpx.codes.NO_CONTENT or not resp.content:
            return None
        return resp.json()

    # -- Workspaces / catalogs -------------------------------------------------

    async def list_workspaces(self) -> list[Workspace]:
        data = await self._request("list_workspaces", "GET", "/api/workspaces/list")
        return [Workspace.model_validate(item) for item in data or []]

    async def list_catalogs(self, workspace_id: str) -> list[CatalogWithVariations]:
        data = await self._request("list_catalogs", "GET", f"/api/workspaces/{workspace_id}/catalogs/list")
        return [
            CatalogWithVariations.model_validate({
                "catalog": _with_tags(item["catalog"]),
                "variations": item.get("variations", []),
            })
            for item in data or []
        ]

    async def sync_workspace_catalog(self, workspace_id: str) -> SyncResult:
        data = await self._request("sync_workspace_catalog", "POST", f"/api/workspaces/{workspace_id}/catalogs/sync")
        return SyncResult.model_validate(data or {})

    async def delete_catalogs(self, catalog_ids: list[str]) -> int:
        data = await self._request("delete_catalogs", "POST", "/api/catalogs/delete", {"catalog_ids": catalog_ids})
        if isinstance(data, dict):
            return int(data.get("deleted_count", 0))
        return int(data or 0)

    # -- Collections -----------------------------------------------------------

    async def get_collections(self, workspace_id: str) -> list[Collection]:
        data = await self._request("get_collections", "GET", f"/api/workspaces/{workspace_id}/collections/list")
        return [Collection.model_validate(_with_tags(item)) for item in data or []]

    async def get_collection_catalog_ids(self, collection_id: str) -> list[str]:
        data = await self._request(
            "get_collection_catalog_ids", "GET", f"/api/collections/{collection_id}/catalog_ids"
        )
        return [str(catalog_id) for catalog_id in data or []]

    async def create_collection(
        self,
        workspace_id: str,
        name: str,
        description: str | None = None,
        tags: list[str] | None = None,
    ) -> str:
        data = await self._request(
            "create_collection",
            "POST",
            f"/api/workspaces/{workspace_id}/collections/create",
            {"name": name, "description": description, "tags": encode_tags(tags)},
        )
        if isinstance(data, dict):
            return str(data["id"])
        return str(data)

    async def update_collection(
        self,
        collection_id: str,
        name: str,
        description: str | None = None,
        tags: list[str] | None = None,
        color: str | None = None,
    ) -> None:
        await self._request(
            "update_collection",
            "POST",
            f"/api/collections/{collection_id}/update",
            {"name": name, "description": description, "tags": encode_tags(tags), "color": color},
        )

    async def delete_collection(self, collection_id: str) -> None:
        await self._request("delete_collection", "POST", f"/api/collections/{collection_id}/delete")

    async def add_catalogs_to_collection(self, collection_id: str, catalog_ids: list[str]) -> None:
        await self._request(
            "add_catalogs_to_collection",
            "POST",
            f"/api/collections/{collection_id}/catalogs/add",
            {"catalog_ids": catalog_ids},
        )

    async def remove_catalogs_from_collection(self, collection_id: str, catalog_ids: list[str]) -> None:
        await self._request(
            "remove_catalogs_from_collection",
            "POST",
            f"/api/collections/{collection_id}/catalogs/remove",
            {"catalog_ids": catalog_ids},
        )

    # -- Local resources -------------------------------------------------------

    async def scan_project_resources(self, project_id: str, project_path: str) -> ScanResult:
        data = await self._request(
            "scan_project_resources",
            "POST",
            f"/api/projects/{project_id}/resources/scan",
            {"project_path": project_path},
        )
        return ScanResult.model_validate(data or {})

    async def get_project_resources(self, project_id: str) -> list[LocalResource]:
        data = await self._request("get_project_resources", "GET", f"/api/projects/{project_id}/resources/list")
        return [LocalResource.model_validate(_camel_resource(item)) for item in data or []]

    # -- Publish / pull --------------------------------------------------------

    async def publish_resource(
        self,
        resource_id: str,
        workspace_id: str,
        *,
        version_tag: str | None = None,
        overwrite_variation_id: str | None = None,
    ) -> PublishResult:
        data = await self._request(
            "publish_resource",
            "POST",
            f"/api/resources/{resource_id}/publish",
            {
                "workspace_id": workspace_id,
                "version_tag": version_tag,
                "overwrite_variation_id": overwrite_variation_id,
            },
        )
        return _PUBLISH_RESULT.validate_python(data)

    async def pull_variation(
        self,
        variation_id: str,
        target_project_id: str,
        target_project_path: str,
        overwrite_if_exists: bool,
    ) -> PullResult:
        data = await self._request(
            "pull_variation",
            "POST",
            f"/api/variations/{variation_id}/pull",
            {
                "target_project_id": target_project_id,
                "target_project_path": target_project_path,
                "overwrite_if_exists": overwrite_if_exists,
            },
        )
        return PullResult.model_validate(data)


def _error_detail(operation: str, resp: httpx.Response) -> str:
    """Extract the backend's ``detail`` message from an error response."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return f"{operation} failed with HTTP {resp.status_code}"
