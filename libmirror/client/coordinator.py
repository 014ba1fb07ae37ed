"""Optimistic mutation coordinator -- local-first writes with rollback.

Every collection / catalog mutation follows the same protocol:

1. **Apply**: compute the next local state and install it synchronously
   (session state and a write-through cache entry), so views reflect the
   change before any remote call is made.
2. **Authoritative call**: invoke the backend operation under its deadline.
   Server-assigned ids replace temporary placeholders as soon as they
   arrive.
3. **Reconcile**: reload the affected entity kind from the backend and
   replace local state wholesale.  The authoritative result always wins.
   A failed reload is logged and the optimistic state is kept.
4. **Rollback** (authoritative call failed or timed out): restore the
   pre-apply state, invalidate the cache entries and reload ground truth,
   then surface an error notification.

Mutations on the same ``(workspace_id, EntityKind)`` pair run steps 2-4 one
at a time in FIFO order.  A reconciliation result is installed only when no
later mutation on that pair is still pending, so a fast reload can never
overwrite a newer optimistic apply.  A mutation that defers its reconcile
reports ``confirmed`` only once a later reload on the pair succeeds.

Sync is the one operation without an optimistic half: cache entries for
both kinds are invalidated, the backend sync runs, and only then is fresh
state loaded.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from loguru import logger

from libmirror.client.backend.base import RemoteCallError
from libmirror.client.models.enums import EntityKind, MutationStatus, NotificationLevel
from libmirror.client.models.library import Collection, CollectionSnapshot
from libmirror.client.models.results import MutationResult, Notification
from libmirror.client.organizer import next_order_index, sort_collections
from libmirror.client.remote import call_remote, describe_error

if TYPE_CHECKING:
    from libmirror.client.backend.base import LibraryBackend
    from libmirror.client.context import BrowsingSession, StateSnapshot
    from libmirror.client.models.library import CatalogWithVariations, SyncResult
    from libmirror.client.models.results import LibraryViews
    from libmirror.client.settings import LibrarySettings

NotifyCallback = Callable[[Notification], Awaitable[None]]

PLACEHOLDER_PREFIX = "pending-"


class MutationRejectedError(Exception):
    """Raised by a success hook when the backend accepted the call but changed nothing."""

    def __init__(self, notification: Notification) -> None:
        super().__init__(notification.description or notification.title)
        self.notification = notification


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def _dedupe(ids: list[str]) -> list[str]:
    return list(dict.fromkeys(ids))


class MutationCoordinator:
    """Drives loads and optimistic mutations for one ``BrowsingSession``."""

    def __init__(
        self,
        backend: LibraryBackend,
        session: BrowsingSession,
        *,
        read_timeout: float = 10.0,
        write_timeout: float = 15.0,
        bulk_timeout: float = 30.0,
        sync_timeout: float = 60.0,
        on_notify: NotifyCallback | None = None,
    ) -> None:
        self._backend = backend
        self._session = session
        self._read_timeout = read_timeout
        self._write_timeout = write_timeout
        self._bulk_timeout = bulk_timeout
        self._sync_timeout = sync_timeout
        self._on_notify = on_notify
        self._locks: defaultdict[tuple[str, EntityKind], asyncio.Lock] = defaultdict(asyncio.Lock)
        self._pending: defaultdict[tuple[str, EntityKind], int] = defaultdict(int)
        self._settled: dict[tuple[str, EntityKind], asyncio.Future[bool]] = {}

    @classmethod
    def from_settings(
        cls,
        backend: LibraryBackend,
        session: BrowsingSession,
        settings: LibrarySettings,
        *,
        on_notify: NotifyCallback | None = None,
    ) -> MutationCoordinator:
        return cls(
            backend,
            session,
            read_timeout=settings.read_timeout,
            write_timeout=settings.write_timeout,
            bulk_timeout=settings.bulk_timeout,
            sync_timeout=settings.sync_timeout,
            on_notify=on_notify,
        )

    @property
    def session(self) -> BrowsingSession:
        return self._session

    @property
    def backend(self) -> LibraryBackend:
        return self._backend

    @property
    def read_timeout(self) -> float:
        return self._read_timeout

    @property
    def bulk_timeout(self) -> float:
        return self._bulk_timeout

    # -----------------------------------------------------------------------
    # Notifications
    # -----------------------------------------------------------------------

    async def notify(self, level: NotificationLevel, title: str, description: str = "") -> Notification:
        notification = Notification(level=level, title=title, description=description)
        logger.log(level.upper(), "{}: {}", title, description)
        if self._on_notify is not None:
            await self._on_notify(notification)
        return notification

    # -----------------------------------------------------------------------
    # Fetching (no locking, no state changes)
    # -----------------------------------------------------------------------

    async def _fetch_catalogs(self, workspace_id: str) -> list[CatalogWithVariations]:
        return await call_remote(
            "list_catalogs",
            lambda: self._backend.list_catalogs(workspace_id),
            self._read_timeout,
        )

    async def _fetch_collections(self, workspace_id: str) -> CollectionSnapshot:
        """Load collections, then each collection's catalog ids one by one.

        A failure for one collection's membership yields an empty list for
        that collection rather than failing the whole load.
        """
        collections = await call_remote(
            "get_collections",
            lambda: self._backend.get_collections(workspace_id),
            self._read_timeout,
        )
        ordered = sort_collections(collections)

        membership: dict[str, list[str]] = {}
        for collection in ordered:
            try:
                ids = await call_remote(
                    "get_collection_catalog_ids",
                    lambda cid=collection.id: self._backend.get_collection_catalog_ids(cid),
                    self._read_timeout,
                )
            except RemoteCallError:
                logger.exception("Failed to load catalog ids for collection {}", collection.id)
                ids = []
            membership[collection.id] = _dedupe(ids)

        return CollectionSnapshot(collections=ordered, membership=membership)

    # -----------------------------------------------------------------------
    # Installing state
    # -----------------------------------------------------------------------

    def _is_active(self, workspace_id: str) -> bool:
        return self._session.workspace_id == workspace_id

    def _install_catalogs(self, workspace_id: str, catalogs: list[CatalogWithVariations]) -> None:
        self._session.cache.set(workspace_id, EntityKind.CATALOGS, catalogs)
        if not self._is_active(workspace_id):
            return
        self._session.set_catalogs(catalogs)
        self._session.selection.reconcile(catalogs)

    def _install_collections(self, workspace_id: str, snapshot: CollectionSnapshot) -> None:
        self._session.cache.set(workspace_id, EntityKind.COLLECTIONS, snapshot)
        if self._is_active(workspace_id):
            self._session.set_collections(snapshot)

    def _write_through(self, workspace_id: str, kind: EntityKind) -> None:
        """Mirror the current optimistic session state into the cache."""
        if kind == EntityKind.CATALOGS:
            self._session.cache.set(workspace_id, kind, list(self._session.catalogs))
        else:
            self._session.cache.set(workspace_id, kind, self._session.collection_snapshot())

    async def _reload(self, workspace_id: str, kind: EntityKind) -> None:
        if kind == EntityKind.CATALOGS:
            self._install_catalogs(workspace_id, await self._fetch_catalogs(workspace_id))
        else:
            self._install_collections(workspace_id, await self._fetch_collections(workspace_id))

    # -----------------------------------------------------------------------
    # Loading
    # -----------------------------------------------------------------------

    async def load_catalogs(self, *, force: bool = False) -> list[CatalogWithVariations]:
        """Return the active workspace's catalogs, from cache unless *force*.

        Raises ``RemoteCallError`` if the backend read fails.
        """
        workspace_id = self._session.require_workspace()
        if not force:
            cached = self._session.cache.get(workspace_id, EntityKind.CATALOGS)
            if cached is not None:
                self._session.set_catalogs(cached)
                self._session.selection.reconcile(cached)
                return cached

        async with self._locks[(workspace_id, EntityKind.CATALOGS)]:
            catalogs = await self._fetch_catalogs(workspace_id)
            self._install_catalogs(workspace_id, catalogs)
        logger.info("Loaded {} for workspace {}", _plural(len(catalogs), "catalog"), workspace_id)
        return catalogs

    async def load_collections(self, *, force: bool = False) -> CollectionSnapshot:
        """Return the active workspace's collections and membership.

        Raises ``RemoteCallError`` if the collection list cannot be read.
        """
        workspace_id = self._session.require_workspace()
        if not force:
            cached = self._session.cache.get(workspace_id, EntityKind.COLLECTIONS)
            if cached is not None:
                self._session.set_collections(cached)
                return cached

        async with self._locks[(workspace_id, EntityKind.COLLECTIONS)]:
            snapshot = await self._fetch_collections(workspace_id)
            self._install_collections(workspace_id, snapshot)
        logger.info("Loaded {} for workspace {}", _plural(len(snapshot.collections), "collection"), workspace_id)
        return snapshot

    async def refresh(self, *, force: bool = False) -> LibraryViews:
        """Load catalogs and collections, then derive views.

        Load failures are surfaced as an error notification and re-raised.
        """
        try:
            await self.load_catalogs(force=force)
            await self.load_collections(force=force)
        except RemoteCallError as exc:
            await self.notify(NotificationLevel.ERROR, "Failed to load library", describe_error(exc))
            raise
        return self._session.views()

    # -----------------------------------------------------------------------
    # Mutation protocol
    # -----------------------------------------------------------------------

    async def _mutate(
        self,
        *,
        operation: str,
        kind: EntityKind,
        apply: Callable[[], None],
        remote: Callable[[], Awaitable[Any]],
        on_success: Callable[[Any], None] | None = None,
        success: Callable[[Any], tuple[str, str]],
        failure_title: str,
    ) -> MutationResult:
        workspace_id = self._session.require_workspace()
        key = (workspace_id, kind)

        # -- 1. Optimistic apply (synchronous) --------------------------------
        before = self._session.snapshot()
        apply()
        self._write_through(workspace_id, kind)

        self._pending[key] += 1
        try:
            async with self._locks[key]:
                # -- 2. Authoritative call ------------------------------------
                try:
                    value = await remote()
                    if on_success is not None:
                        on_success(value)
                except MutationRejectedError as exc:
                    await self._rollback(workspace_id, kind, before)
                    n = exc.notification
                    await self.notify(n.level, n.title, n.description)
                    return MutationResult(operation=operation, status=MutationStatus.ROLLED_BACK, error=str(exc))
                except RemoteCallError as exc:
                    logger.error("{} failed: {}", operation, exc)
                    await self._rollback(workspace_id, kind, before)
                    message = describe_error(exc)
                    await self.notify(NotificationLevel.ERROR, failure_title, message)
                    return MutationResult(operation=operation, status=MutationStatus.ROLLED_BACK, error=message)

                # -- 3. Reconcile ---------------------------------------------
                settled = None
                if self._pending[key] > 1:
                    logger.debug("{}: reconciliation deferred to a newer pending mutation", operation)
                    settled = self._settlement(key)
                else:
                    status = await self._reconcile(workspace_id, kind, operation)
        finally:
            self._pending[key] -= 1
            if not self._pending[key]:
                self._settle(key, confirmed=False)

        if settled is not None:
            status = MutationStatus.CONFIRMED if await settled else MutationStatus.UNCONFIRMED

        title, description = success(value)
        await self.notify(NotificationLevel.SUCCESS, title, description)
        return MutationResult(operation=operation, status=status, value=value)

    def _settlement(self, key: tuple[str, EntityKind]) -> asyncio.Future[bool]:
        """Future resolved by the next reload on *key*: ``True`` if it succeeded."""
        future = self._settled.get(key)
        if future is None:
            future = self._settled[key] = asyncio.get_running_loop().create_future()
        return future

    def _settle(self, key: tuple[str, EntityKind], *, confirmed: bool) -> None:
        future = self._settled.pop(key, None)
        if future is not None and not future.done():
            future.set_result(confirmed)

    async def _reconcile(self, workspace_id: str, kind: EntityKind, operation: str) -> MutationStatus:
        try:
            await self._reload(workspace_id, kind)
        except RemoteCallError:
            logger.exception("{}: background refresh failed (keeping optimistic state)", operation)
            return MutationStatus.UNCONFIRMED
        self._settle((workspace_id, kind), confirmed=True)
        return MutationStatus.CONFIRMED

    async def _rollback(self, workspace_id: str, kind: EntityKind, before: StateSnapshot) -> None:
        if self._is_active(workspace_id):
            self._session.restore(before)
        self._session.cache.invalidate(workspace_id, kind)
        try:
            await self._reload(workspace_id, kind)
        except RemoteCallError:
            logger.exception("Reload after failed mutation failed for workspace {}", workspace_id)
        else:
            self._settle((workspace_id, kind), confirmed=True)

    # -----------------------------------------------------------------------
    # Collections
    # -----------------------------------------------------------------------

    async def create_collection(
        self,
        name: str,
        description: str | None = None,
        tags: list[str] | None = None,
    ) -> MutationResult:
        """Create a collection, showing it immediately under a placeholder id."""
        workspace_id = self._session.require_workspace()
        placeholder = f"{PLACEHOLDER_PREFIX}{uuid.uuid4().hex}"
        now = int(time.time())

        def apply() -> None:
            optimistic = Collection(
                id=placeholder,
                workspace_id=workspace_id,
                name=name,
                description=description,
                tags=list(tags or []),
                order_index=next_order_index(self._session.collections),
                created_at=now,
                updated_at=now,
            )
            self._session.collections = sort_collections([*self._session.collections, optimistic])
            self._session.membership[placeholder] = []

        def patch_id(collection_id: str) -> None:
            if not self._is_active(workspace_id):
                return
            self._session.resolve_placeholder(placeholder, collection_id)
            self._write_through(workspace_id, EntityKind.COLLECTIONS)

        return await self._mutate(
            operation="create_collection",
            kind=EntityKind.COLLECTIONS,
            apply=apply,
            remote=lambda: call_remote(
                "create_collection",
                lambda: self._backend.create_collection(workspace_id, name, description, tags),
                self._write_timeout,
            ),
            on_success=patch_id,
            success=lambda _: ("Collection created", f'Created collection "{name}"'),
            failure_title="Failed to create collection",
        )

    async def update_collection(
        self,
        collection_id: str,
        *,
        name: str,
        description: str | None = None,
        tags: list[str] | None = None,
        color: str | None = None,
    ) -> MutationResult:
        if self._session.find_collection(collection_id) is None:
            return await self._skip("update_collection", f"Unknown collection {collection_id}")

        changes = {"name": name, "description": description, "tags": list(tags or []), "color": color}

        def apply() -> None:
            self._session.collections = sort_collections(
                c.model_copy(update=changes) if c.id == collection_id else c for c in self._session.collections
            )

        return await self._mutate(
            operation="update_collection",
            kind=EntityKind.COLLECTIONS,
            apply=apply,
            remote=lambda: call_remote(
                "update_collection",
                lambda: self._backend.update_collection(collection_id, name, description, tags, color),
                self._write_timeout,
            ),
            success=lambda _: ("Collection updated", f'Updated collection "{name}"'),
            failure_title="Failed to update collection",
        )

    async def delete_collection(self, collection_id: str) -> MutationResult:
        collection = self._session.find_collection(collection_id)
        if collection is None:
            return await self._skip("delete_collection", f"Unknown collection {collection_id}")

        def apply() -> None:
            self._session.collections = [c for c in self._session.collections if c.id != collection_id]
            self._session.membership.pop(collection_id, None)

        return await self._mutate(
            operation="delete_collection",
            kind=EntityKind.COLLECTIONS,
            apply=apply,
            remote=lambda: call_remote(
                "delete_collection",
                lambda: self._backend.delete_collection(collection_id),
                self._write_timeout,
            ),
            success=lambda _: ("Collection deleted", f'Deleted collection "{collection.name}"'),
            failure_title="Failed to delete collection",
        )

    async def move_catalogs_to_collection(
        self,
        collection_id: str,
        catalog_ids: list[str] | None = None,
    ) -> MutationResult:
        """Add catalogs (default: the current selection) to a collection.

        The selection is cleared as part of the optimistic step.
        """
        ids = _dedupe(catalog_ids if catalog_ids is not None else self._session.selection.target_catalog_ids())
        if not ids:
            return await self._skip("move_catalogs_to_collection", "No catalogs selected")
        if self._session.find_collection(collection_id) is None:
            return await self._skip("move_catalogs_to_collection", f"Unknown collection {collection_id}")

        def apply() -> None:
            self._session.selection.clear()
            existing = self._session.membership.get(collection_id, [])
            self._session.membership[collection_id] = _dedupe([*existing, *ids])

        return await self._mutate(
            operation="move_catalogs_to_collection",
            kind=EntityKind.COLLECTIONS,
            apply=apply,
            remote=lambda: call_remote(
                "add_catalogs_to_collection",
                lambda: self._backend.add_catalogs_to_collection(collection_id, ids),
                self._write_timeout,
            ),
            success=lambda _: ("Moved to collection", f"Moved {_plural(len(ids), 'catalog')} to collection"),
            failure_title="Failed to move catalogs",
        )

    async def remove_catalogs_from_collection(
        self,
        catalog_ids: list[str] | None = None,
        *,
        collection_id: str | None = None,
    ) -> MutationResult:
        """Remove catalogs (default: the current selection) from collections.

        Without *collection_id* the catalogs leave every collection holding
        them, returning to the ungrouped pool.  The selection is cleared as
        part of the optimistic step.
        """
        ids = _dedupe(catalog_ids if catalog_ids is not None else self._session.selection.target_catalog_ids())
        if not ids:
            return await self._skip("remove_catalogs_from_collection", "No catalogs selected")

        removing = set(ids)
        targets = [
            cid
            for cid, members in self._session.membership.items()
            if (collection_id is None or cid == collection_id) and removing.intersection(members)
        ]
        if not targets:
            return await self._skip("remove_catalogs_from_collection", "Catalogs are not in any collection")

        def apply() -> None:
            self._session.selection.clear()
            for cid in targets:
                self._session.membership[cid] = [c for c in self._session.membership[cid] if c not in removing]

        async def remote() -> None:
            for cid in targets:
                await call_remote(
                    "remove_catalogs_from_collection",
                    lambda cid=cid: self._backend.remove_catalogs_from_collection(cid, ids),
                    self._write_timeout,
                )

        return await self._mutate(
            operation="remove_catalogs_from_collection",
            kind=EntityKind.COLLECTIONS,
            apply=apply,
            remote=remote,
            success=lambda _: ("Removed from collection", f"Removed {_plural(len(ids), 'catalog')} from collection"),
            failure_title="Failed to remove catalogs",
        )

    # -----------------------------------------------------------------------
    # Catalogs
    # -----------------------------------------------------------------------

    async def delete_catalogs(self, catalog_ids: list[str] | None = None) -> MutationResult:
        """Delete catalogs (default: the current selection) and their variations.

        Selections referencing the catalogs are purged in the optimistic step.
        """
        ids = _dedupe(catalog_ids if catalog_ids is not None else self._session.selection.target_catalog_ids())
        if not ids:
            return await self._skip("delete_catalogs", "No catalogs selected")
        deleting = set(ids)

        def apply() -> None:
            self._session.selection.purge_catalogs(deleting)
            self._session.catalogs = [c for c in self._session.catalogs if c.catalog.id not in deleting]
            for cid, members in self._session.membership.items():
                self._session.membership[cid] = [m for m in members if m not in deleting]

        def check_count(deleted: int) -> None:
            if deleted == 0:
                raise MutationRejectedError(
                    Notification(
                        level=NotificationLevel.WARNING,
                        title="No catalogs deleted",
                        description="No catalogs were found to delete",
                    )
                )

        return await self._mutate(
            operation="delete_catalogs",
            kind=EntityKind.CATALOGS,
            apply=apply,
            remote=lambda: call_remote(
                "delete_catalogs",
                lambda: self._backend.delete_catalogs(ids),
                self._bulk_timeout,
            ),
            on_success=check_count,
            success=lambda deleted: (
                "Catalogs deleted",
                f"Deleted {_plural(deleted, 'catalog')} and all variations from the workspace",
            ),
            failure_title="Failed to delete catalogs",
        )

    async def sync_workspace(self) -> MutationResult:
        """Pull newly published content from GitHub into the catalog store.

        No optimistic half: both cache entries are invalidated first and the
        local state changes only once the sync and the reload complete.
        """
        workspace_id = self._session.require_workspace()
        keys = [(workspace_id, EntityKind.CATALOGS), (workspace_id, EntityKind.COLLECTIONS)]

        self._session.cache.invalidate(workspace_id, EntityKind.CATALOGS)
        self._session.cache.invalidate(workspace_id, EntityKind.COLLECTIONS)

        for key in keys:
            self._pending[key] += 1
        try:
            async with self._locks[keys[0]], self._locks[keys[1]]:
                try:
                    result: SyncResult = await call_remote(
                        "sync_workspace_catalog",
                        lambda: self._backend.sync_workspace_catalog(workspace_id),
                        self._sync_timeout,
                    )
                    catalogs = await self._fetch_catalogs(workspace_id)
                    snapshot = await self._fetch_collections(workspace_id)
                except RemoteCallError as exc:
                    message = describe_error(exc)
                    await self.notify(NotificationLevel.ERROR, "Sync failed", message)
                    return MutationResult(operation="sync_workspace", status=MutationStatus.FAILED, error=message)

                self._install_catalogs(workspace_id, catalogs)
                self._install_collections(workspace_id, snapshot)
                for key in keys:
                    self._settle(key, confirmed=True)
        finally:
            for key in keys:
                self._pending[key] -= 1
                if not self._pending[key]:
                    self._settle(key, confirmed=False)

        await self.notify(
            NotificationLevel.SUCCESS,
            "Workspace synced",
            f"{_plural(result.catalogs_created, 'catalog')} created, {result.catalogs_updated} updated; "
            f"{_plural(result.variations_created, 'variation')} created, {result.variations_updated} updated",
        )
        return MutationResult(operation="sync_workspace", status=MutationStatus.CONFIRMED, value=result)

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _skip(self, operation: str, reason: str) -> MutationResult:
        logger.info("{} skipped: {}", operation, reason)
        return MutationResult(operation=operation, status=MutationStatus.SKIPPED, error=reason)
