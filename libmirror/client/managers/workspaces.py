"""Workspace listing and selection.

Workspaces are read-only here: listing, choosing a default and making one
active in a ``BrowsingSession``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from libmirror.client.remote import call_remote

if TYPE_CHECKING:
    from collections.abc import Sequence

    from libmirror.client.backend.base import LibraryBackend
    from libmirror.client.coordinator import MutationCoordinator
    from libmirror.client.models.library import Workspace
    from libmirror.client.models.results import LibraryViews


class WorkspaceNotFoundError(LookupError):
    """Raised when a workspace is not found."""


async def list_workspaces(backend: LibraryBackend, *, timeout: float = 10.0) -> list[Workspace]:
    """List workspaces, pinned ones first, otherwise in backend order."""
    workspaces = await call_remote("list_workspaces", backend.list_workspaces, timeout)
    return sorted(workspaces, key=lambda w: not w.pinned)


def default_workspace(workspaces: Sequence[Workspace]) -> Workspace | None:
    """The pinned workspace if there is one, else the first, else ``None``."""
    for workspace in workspaces:
        if workspace.pinned:
            return workspace
    return workspaces[0] if workspaces else None


def find_workspace(workspaces: Sequence[Workspace], workspace_id: str) -> Workspace:
    """Get a workspace by ID.  Raises ``WorkspaceNotFoundError`` if missing."""
    for workspace in workspaces:
        if workspace.id == workspace_id:
            return workspace
    raise WorkspaceNotFoundError(workspace_id)


async def select_workspace(coordinator: MutationCoordinator, workspace_id: str) -> LibraryViews:
    """Make *workspace_id* active and load its library.

    Selections, filters and in-memory state of the previous workspace are
    discarded; its cache entries survive.
    """
    coordinator.session.switch_workspace(workspace_id)
    return await coordinator.refresh()
