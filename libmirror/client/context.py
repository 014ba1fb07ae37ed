"""Workspace browsing session.

Holds everything one browsing session owns: the active workspace, the TTL
cache, the selection sets, the in-memory catalog / collection state and the
active filters.  It is constructed explicitly and handed to the
``MutationCoordinator`` and the batch managers; nothing here is global.

Lifecycle: create one per browsing session, call ``switch_workspace`` when
the user picks a workspace, ``end`` when the session closes.  Switching
workspace clears selections, filters and in-memory state; cache entries
survive because they are keyed by workspace.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from libmirror.client.cache import TtlCacheStore
from libmirror.client.models.library import CatalogWithVariations, Collection, CollectionSnapshot
from libmirror.client.models.results import LibraryViews
from libmirror.client.organizer import CatalogFilter, derive_views, sort_collections
from libmirror.client.selection import SelectionManager


class NoWorkspaceSelectedError(LookupError):
    """Raised when an operation needs an active workspace and none is set."""


@dataclass(frozen=True)
class StateSnapshot:
    """Point-in-time copy of the in-memory state, used for rollback."""

    catalogs: tuple[CatalogWithVariations, ...]
    collections: tuple[Collection, ...]
    membership: dict[str, list[str]]


@dataclass
class BrowsingSession:
    """In-memory state for one workspace browsing session."""

    # -- Collaborators ---------------------------------------------------------
    cache: TtlCacheStore = field(default_factory=TtlCacheStore)
    selection: SelectionManager = field(default_factory=SelectionManager)

    # -- Identity --------------------------------------------------------------
    workspace_id: str | None = None

    # -- Loaded state ----------------------------------------------------------
    catalogs: list[CatalogWithVariations] = field(default_factory=list)
    collections: list[Collection] = field(default_factory=list)
    """Always kept sorted by (order_index, created_at)."""
    membership: dict[str, list[str]] = field(default_factory=dict)
    """collection_id -> ordered catalog ids."""
    resolved_ids: dict[str, str] = field(default_factory=dict)
    """placeholder collection id -> id issued by the backend."""

    # -- Filters ---------------------------------------------------------------
    catalog_filter: CatalogFilter = field(default_factory=CatalogFilter)

    # -- Workspace -------------------------------------------------------------

    def require_workspace(self) -> str:
        if self.workspace_id is None:
            msg = "No workspace selected"
            raise NoWorkspaceSelectedError(msg)
        return self.workspace_id

    def switch_workspace(self, workspace_id: str | None) -> None:
        """Make *workspace_id* active, discarding all per-workspace state."""
        if workspace_id == self.workspace_id:
            return
        logger.info("Session: switching workspace {} -> {}", self.workspace_id, workspace_id)
        self.selection.clear()
        self._reset_state()
        self.workspace_id = workspace_id

    def end(self) -> None:
        """Tear the session down: forget selections, state and cache."""
        self.selection.clear()
        self._reset_state()
        self.cache.clear_all()
        self.workspace_id = None

    def _reset_state(self) -> None:
        self.catalogs = []
        self.collections = []
        self.membership = {}
        self.resolved_ids = {}
        self.catalog_filter = CatalogFilter()

    # -- State replacement -----------------------------------------------------

    def set_catalogs(self, catalogs: list[CatalogWithVariations]) -> None:
        self.catalogs = list(catalogs)

    def set_collections(self, snapshot: CollectionSnapshot) -> None:
        self.collections = sort_collections(snapshot.collections)
        self.membership = {cid: list(ids) for cid, ids in snapshot.membership.items()}

    def collection_snapshot(self) -> CollectionSnapshot:
        return CollectionSnapshot(
            collections=list(self.collections),
            membership={cid: list(ids) for cid, ids in self.membership.items()},
        )

    def snapshot(self) -> StateSnapshot:
        return StateSnapshot(
            catalogs=tuple(self.catalogs),
            collections=tuple(self.collections),
            membership={cid: list(ids) for cid, ids in self.membership.items()},
        )

    def resolve_placeholder(self, placeholder: str, collection_id: str) -> None:
        """Swap a placeholder collection id for the one the backend issued."""
        self.resolved_ids[placeholder] = collection_id
        self.collections = [
            c.model_copy(update={"id": collection_id}) if c.id == placeholder else c for c in self.collections
        ]
        self.membership[collection_id] = self.membership.pop(placeholder, [])

    def restore(self, snapshot: StateSnapshot) -> None:
        """Reinstate *snapshot*, keeping any placeholder ids resolved since it was taken."""
        ids = self.resolved_ids
        self.catalogs = list(snapshot.catalogs)
        self.collections = [
            c.model_copy(update={"id": ids[c.id]}) if c.id in ids else c for c in snapshot.collections
        ]
        self.membership = {ids.get(cid, cid): list(members) for cid, members in snapshot.membership.items()}

    def find_catalog(self, catalog_id: str) -> CatalogWithVariations | None:
        for item in self.catalogs:
            if item.catalog.id == catalog_id:
                return item
        return None

    def find_collection(self, collection_id: str) -> Collection | None:
        for collection in self.collections:
            if collection.id == collection_id:
                return collection
        return None

    # -- Filters ---------------------------------------------------------------

    def set_name_filter(self, name: str) -> LibraryViews:
        self.catalog_filter.name = name
        return self.views()

    def toggle_tag(self, tag: str) -> LibraryViews:
        """Add *tag* to the tag filter, or remove it if already present."""
        tags = self.catalog_filter.tags
        if tag in tags:
            tags.remove(tag)
        else:
            tags.append(tag)
        return self.views()

    def clear_filters(self) -> LibraryViews:
        self.catalog_filter = CatalogFilter()
        return self.views()

    # -- Views -----------------------------------------------------------------

    def views(self) -> LibraryViews:
        """Re-derive the grouped / ungrouped views from current state."""
        return derive_views(self.catalogs, self.collections, self.membership, self.catalog_filter)
