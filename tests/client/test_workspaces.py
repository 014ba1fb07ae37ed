"""Tests for workspace listing, selection and the browsing session."""

from __future__ import annotations

import pytest
from conftest import WS, FakeBackend, build_catalog

from libmirror.client.context import BrowsingSession
from libmirror.client.managers.workspaces import (
    WorkspaceNotFoundError,
    default_workspace,
    find_workspace,
    list_workspaces,
    select_workspace,
)
from libmirror.client.models.enums import EntityKind

# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


async def test_list_workspaces_pinned_first(backend: FakeBackend) -> None:
    workspaces = await list_workspaces(backend)
    assert [w.id for w in workspaces] == [WS, "ws-2"]


async def test_default_workspace(backend: FakeBackend) -> None:
    workspaces = await list_workspaces(backend)
    assert default_workspace(workspaces).id == WS
    assert default_workspace([workspaces[1]]).id == "ws-2"
    assert default_workspace([]) is None


async def test_find_workspace(backend: FakeBackend) -> None:
    workspaces = await list_workspaces(backend)
    assert find_workspace(workspaces, "ws-2").name == "Scratch"
    with pytest.raises(WorkspaceNotFoundError):
        find_workspace(workspaces, "ws-9")


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


async def test_select_workspace_clears_session(make_coordinator, backend: FakeBackend) -> None:
    backend.catalogs["ws-2"] = [build_catalog("cat-z", workspace_id="ws-2")]
    coordinator = make_coordinator()
    await coordinator.refresh()
    session = coordinator.session
    session.selection.toggle_catalog(session.find_catalog("cat-a"))
    session.set_name_filter("button")

    views = await select_workspace(coordinator, "ws-2")

    assert session.workspace_id == "ws-2"
    assert not session.selection.has_selections
    assert not session.catalog_filter.is_active
    assert [item.catalog.id for item in views.ungrouped] == ["cat-z"]
    assert session.cache.get(WS, EntityKind.CATALOGS) is not None


async def test_select_same_workspace_keeps_selection(make_coordinator) -> None:
    coordinator = make_coordinator()
    await coordinator.refresh()
    session = coordinator.session
    session.selection.toggle_catalog(session.find_catalog("cat-b"))

    await select_workspace(coordinator, WS)

    assert session.selection.catalog_ids == {"cat-b"}


# ---------------------------------------------------------------------------
# Session filters
# ---------------------------------------------------------------------------


async def test_session_filters(coordinator) -> None:
    session: BrowsingSession = coordinator.session

    views = session.toggle_tag("REACT")
    assert [item.catalog.id for item in views.ungrouped] == ["cat-a"]

    views = session.set_name_filter("data")
    assert views.ungrouped == []

    views = session.toggle_tag("REACT")
    assert [item.catalog.id for item in views.ungrouped] == ["cat-b"]

    views = session.clear_filters()
    assert [item.catalog.id for item in views.ungrouped] == ["cat-a", "cat-b"]


def test_end_clears_cache(session: BrowsingSession) -> None:
    session.cache.set(WS, EntityKind.CATALOGS, [])
    session.end()
    assert session.workspace_id is None
    assert session.cache.get(WS, EntityKind.CATALOGS) is None
