"""Shared test fixtures: an in-memory library backend and a loaded session.

``FakeBackend`` implements the ``LibraryBackend`` protocol over plain dicts.
Tests inject failures per operation through ``failures`` and latency through
``delays``; every call is recorded in ``calls``.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Iterator
from typing import Any

import pytest

from libmirror.client.cache import TtlCacheStore
from libmirror.client.context import BrowsingSession
from libmirror.client.coordinator import MutationCoordinator
from libmirror.client.models.library import (
    Catalog,
    CatalogWithVariations,
    Collection,
    LocalResource,
    Published,
    PullResult,
    ScanResult,
    SyncResult,
    Variation,
    Workspace,
)
from libmirror.client.models.results import Notification
from libmirror.client.settings import _get_settings_cached

WS = "ws-1"


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def build_catalog(
    catalog_id: str,
    name: str | None = None,
    *,
    tags: list[str] | None = None,
    variations: int = 1,
    workspace_id: str = WS,
) -> CatalogWithVariations:
    catalog = Catalog(
        id=catalog_id,
        workspace_id=workspace_id,
        name=name or catalog_id,
        artifact_type="kit",
        tags=tags or [],
        remote_path=f"kits/{catalog_id}",
    )
    return CatalogWithVariations(
        catalog=catalog,
        variations=[
            Variation(
                id=f"{catalog_id}-v{n}",
                catalog_id=catalog_id,
                workspace_id=workspace_id,
                remote_path=f"kits/{catalog_id}/v{n}.md",
                content_hash=f"hash-{catalog_id}-{n}",
                published_at=1000 + n,
            )
            for n in range(1, variations + 1)
        ],
    )


def build_collection(
    collection_id: str,
    name: str | None = None,
    *,
    order_index: int = 0,
    created_at: int = 0,
    workspace_id: str = WS,
) -> Collection:
    return Collection(
        id=collection_id,
        workspace_id=workspace_id,
        name=name or collection_id,
        order_index=order_index,
        created_at=created_at,
    )


# ---------------------------------------------------------------------------
# Fake backend
# ---------------------------------------------------------------------------


class FakeBackend:
    """In-memory ``LibraryBackend`` with failure and latency injection."""

    def __init__(self) -> None:
        self.workspaces: list[Workspace] = []
        self.catalogs: dict[str, list[CatalogWithVariations]] = {}
        self.collections: dict[str, list[Collection]] = {}
        self.membership: dict[str, list[str]] = {}
        self.resources: dict[str, list[LocalResource]] = {}
        self.incoming: dict[str, list[CatalogWithVariations]] = {}
        """Catalogs that appear on the next sync of a workspace."""

        self.failures: dict[str, Exception] = {}
        self.delays: dict[str, float] = {}
        self.failing_collections: set[str] = set()
        self.failing_projects: set[str] = set()
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.closed = False
        self._counter = 0

    async def _enter(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, args))
        if operation in self.delays:
            await asyncio.sleep(self.delays[operation])
        if operation in self.failures:
            raise self.failures[operation]

    def called(self, operation: str) -> list[tuple[Any, ...]]:
        return [args for op, args in self.calls if op == operation]

    async def aclose(self) -> None:
        self.closed = True

    # -- Workspaces / catalogs -------------------------------------------------

    async def list_workspaces(self) -> list[Workspace]:
        await self._enter("list_workspaces")
        return list(self.workspaces)

    async def list_catalogs(self, workspace_id: str) -> list[CatalogWithVariations]:
        await self._enter("list_catalogs", workspace_id)
        return list(self.catalogs.get(workspace_id, []))

    async def sync_workspace_catalog(self, workspace_id: str) -> SyncResult:
        await self._enter("sync_workspace_catalog", workspace_id)
        new = self.incoming.pop(workspace_id, [])
        self.catalogs.setdefault(workspace_id, []).extend(new)
        return SyncResult(catalogs_created=len(new), variations_created=sum(len(c.variations) for c in new))

    async def delete_catalogs(self, catalog_ids: list[str]) -> int:
        await self._enter("delete_catalogs", list(catalog_ids))
        ids = set(catalog_ids)
        deleted = 0
        for workspace_id, items in self.catalogs.items():
            kept = [c for c in items if c.catalog.id not in ids]
            deleted += len(items) - len(kept)
            self.catalogs[workspace_id] = kept
        for collection_id, members in self.membership.items():
            self.membership[collection_id] = [m for m in members if m not in ids]
        return deleted

    # -- Collections -----------------------------------------------------------

    async def get_collections(self, workspace_id: str) -> list[Collection]:
        await self._enter("get_collections", workspace_id)
        return list(self.collections.get(workspace_id, []))

    async def get_collection_catalog_ids(self, collection_id: str) -> list[str]:
        await self._enter("get_collection_catalog_ids", collection_id)
        if collection_id in self.failing_collections:
            msg = f"membership unavailable for {collection_id}"
            raise RuntimeError(msg)
        return list(self.membership.get(collection_id, []))

    async def create_collection(
        self,
        workspace_id: str,
        name: str,
        description: str | None = None,
        tags: list[str] | None = None,
    ) -> str:
        await self._enter("create_collection", workspace_id, name)
        self._counter += 1
        existing = self.collections.setdefault(workspace_id, [])
        collection = Collection(
            id=f"col-srv-{self._counter}",
            workspace_id=workspace_id,
            name=name,
            description=description,
            tags=tags or [],
            order_index=max((c.order_index for c in existing), default=-1) + 1,
            created_at=2000 + self._counter,
        )
        existing.append(collection)
        self.membership[collection.id] = []
        return collection.id

    async def update_collection(
        self,
        collection_id: str,
        name: str,
        description: str | None = None,
        tags: list[str] | None = None,
        color: str | None = None,
    ) -> None:
        await self._enter("update_collection", collection_id, name)
        for workspace_id, items in self.collections.items():
            self.collections[workspace_id] = [
                c.model_copy(update={"name": name, "description": description, "tags": tags or [], "color": color})
                if c.id == collection_id
                else c
                for c in items
            ]

    async def delete_collection(self, collection_id: str) -> None:
        await self._enter("delete_collection", collection_id)
        for workspace_id, items in self.collections.items():
            self.collections[workspace_id] = [c for c in items if c.id != collection_id]
        self.membership.pop(collection_id, None)

    async def add_catalogs_to_collection(self, collection_id: str, catalog_ids: list[str]) -> None:
        await self._enter("add_catalogs_to_collection", collection_id, list(catalog_ids))
        members = self.membership.setdefault(collection_id, [])
        members.extend(cid for cid in catalog_ids if cid not in members)

    async def remove_catalogs_from_collection(self, collection_id: str, catalog_ids: list[str]) -> None:
        await self._enter("remove_catalogs_from_collection", collection_id, list(catalog_ids))
        self.membership[collection_id] = [m for m in self.membership.get(collection_id, []) if m not in catalog_ids]

    # -- Local resources -------------------------------------------------------

    async def scan_project_resources(self, project_id: str, project_path: str) -> ScanResult:
        await self._enter("scan_project_resources", project_id, project_path)
        if project_id in self.failing_projects:
            msg = f"cannot scan {project_path}"
            raise RuntimeError(msg)
        return ScanResult(resources_updated=len(self.resources.get(project_id, [])))

    async def get_project_resources(self, project_id: str) -> list[LocalResource]:
        await self._enter("get_project_resources", project_id)
        return list(self.resources.get(project_id, []))

    # -- Publish / pull --------------------------------------------------------

    async def publish_resource(
        self,
        resource_id: str,
        workspace_id: str,
        *,
        version_tag: str | None = None,
        overwrite_variation_id: str | None = None,
    ) -> Published:
        await self._enter("publish_resource", resource_id, workspace_id, version_tag)
        return Published(catalog_id=f"cat-{resource_id}", variation_id=f"var-{resource_id}", github_commit_sha="abc123")

    async def pull_variation(
        self,
        variation_id: str,
        target_project_id: str,
        target_project_path: str,
        overwrite_if_exists: bool,
    ) -> PullResult:
        await self._enter("pull_variation", variation_id, target_project_id, overwrite_if_exists)
        if target_project_id in self.failing_projects:
            msg = f"{target_project_path} is read-only"
            raise RuntimeError(msg)
        return PullResult(
            resource_id=f"res-{variation_id}",
            subscription_id=f"sub-{variation_id}",
            file_path=f"{target_project_path}/{variation_id}.md",
            content_hash=f"hash-{variation_id}",
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Drop LIBMIRROR_* env vars and the cached settings around each test."""
    for key in list(os.environ):
        if key.startswith("LIBMIRROR_"):
            monkeypatch.delenv(key)
    _get_settings_cached.cache_clear()
    yield
    _get_settings_cached.cache_clear()


@pytest.fixture
def backend() -> FakeBackend:
    """Two workspaces; ws-1 holds three catalogs and one collection."""
    fake = FakeBackend()
    fake.workspaces = [
        Workspace(id="ws-2", name="Scratch", github_owner="acme", github_repo="scratch"),
        Workspace(id=WS, name="Main", github_owner="acme", github_repo="library", pinned=True),
    ]
    fake.catalogs[WS] = [
        build_catalog("cat-a", "Button Kit", tags=["react", "ui"], variations=2),
        build_catalog("cat-b", "Data Loader", tags=["python"]),
        build_catalog("cat-c", "Form Kit", tags=["React"]),
    ]
    fake.collections[WS] = [build_collection("col-1", "Frontend", order_index=0, created_at=100)]
    fake.membership["col-1"] = ["cat-c"]
    return fake


@pytest.fixture
def notifications() -> list[Notification]:
    return []


@pytest.fixture
def session() -> BrowsingSession:
    s = BrowsingSession(cache=TtlCacheStore())
    s.switch_workspace(WS)
    return s


@pytest.fixture
def make_coordinator(
    backend: FakeBackend,
    session: BrowsingSession,
    notifications: list[Notification],
) -> Callable[..., MutationCoordinator]:
    async def record(notification: Notification) -> None:
        notifications.append(notification)

    def factory(**timeouts: float) -> MutationCoordinator:
        return MutationCoordinator(backend, session, on_notify=record, **timeouts)

    return factory


@pytest.fixture
async def coordinator(make_coordinator: Callable[..., MutationCoordinator]) -> MutationCoordinator:
    """Coordinator over the seeded backend with ws-1 already loaded."""
    coord = make_coordinator()
    await coord.refresh()
    return coord
