from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import PurePath
from typing import TYPE_CHECKING

import click

from libmirror.client.backend import HttpLibraryBackend, RemoteCallError
from libmirror.client.cache import TtlCacheStore
from libmirror.client.context import BrowsingSession
from libmirror.client.coordinator import MutationCoordinator
from libmirror.client.log import setup_logging
from libmirror.client.managers.publishing import publish_items
from libmirror.client.managers.pulling import pull_variations
from libmirror.client.managers.workspaces import (
    default_workspace,
    find_workspace,
    list_workspaces,
    select_workspace,
)
from libmirror.client.models.library import PublishItem, TargetProject
from libmirror.client.organizer import variation_labels
from libmirror.client.remote import describe_error
from libmirror.client.selection import SelectedVariation
from libmirror.client.settings import get_settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Coroutine

    from libmirror.client.backend.base import LibraryBackend
    from libmirror.client.models.library import CatalogWithVariations
    from libmirror.client.models.results import BatchResult, LibraryViews, MutationResult, Notification
    from libmirror.client.settings import LibrarySettings


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log at DEBUG, including HTTP requests.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """libmirror - browse and organize a GitHub-backed content library."""
    settings = get_settings()
    setup_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj = settings


# ---------------------------------------------------------------------------
# Plumbing
# ---------------------------------------------------------------------------


def _build_backend(settings: LibrarySettings) -> LibraryBackend:
    return HttpLibraryBackend.from_settings(settings)


async def _echo_notification(notification: Notification) -> None:
    line = f"[{notification.level}] {notification.title}"
    if notification.description:
        line = f"{line}: {notification.description}"
    click.echo(line)


@asynccontextmanager
async def _open_library(settings: LibrarySettings, workspace_id: str | None) -> AsyncIterator[MutationCoordinator]:
    """Select a workspace (given, pinned or first) and load its library."""
    backend = _build_backend(settings)
    try:
        session = BrowsingSession(cache=TtlCacheStore(ttl=settings.cache_ttl_seconds))
        coordinator = MutationCoordinator.from_settings(backend, session, settings, on_notify=_echo_notification)

        workspaces = await list_workspaces(backend, timeout=settings.read_timeout)
        workspace = find_workspace(workspaces, workspace_id) if workspace_id else default_workspace(workspaces)
        if workspace is None:
            msg = "No workspaces available"
            raise click.ClickException(msg)

        await select_workspace(coordinator, workspace.id)
        yield coordinator
    finally:
        await backend.aclose()


def _run(coro: Coroutine[object, object, None]) -> None:
    try:
        asyncio.run(coro)
    except (RemoteCallError, LookupError) as exc:
        raise click.ClickException(describe_error(exc)) from exc


def _check(result: MutationResult) -> None:
    if not result.ok:
        raise click.ClickException(result.error or f"{result.operation} {result.status}")


def _echo_batch(batch: BatchResult) -> None:
    for item in batch.items:
        mark = "ok  " if item.success else "FAIL"
        click.echo(f"{mark} {item.name}" + ("" if item.success else f" - {item.error}"))
    if batch.failed:
        raise click.ClickException(f"{batch.failed} of {len(batch.items)} failed")


def _echo_catalog(item: CatalogWithVariations, *, indent: str = "  ") -> None:
    catalog = item.catalog
    tags = f"  #{' #'.join(catalog.tags)}" if catalog.tags else ""
    click.echo(f"{indent}{catalog.name} [{catalog.id}]{tags}")
    for labeled in variation_labels(item.variations):
        version = f" ({labeled.variation.version_tag})" if labeled.variation.version_tag else ""
        click.echo(f"{indent}    {labeled.label}{version} [{labeled.variation.id}]")


def _echo_views(views: LibraryViews) -> None:
    for collection in views.collections:
        members = views.grouped.get(collection.id, [])
        click.echo(f"== {collection.name} [{collection.id}] ({len(members)})")
        for item in members:
            _echo_catalog(item)
    click.echo(f"== Ungrouped ({len(views.ungrouped)})")
    for item in views.ungrouped:
        _echo_catalog(item)
    if views.available_tags:
        click.echo(f"Tags: {', '.join(views.available_tags)}")


workspace_option = click.option("--workspace", "-w", "workspace_id", default=None, help="Workspace ID (default: pinned).")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@main.command()
@click.pass_obj
def workspaces(settings: LibrarySettings) -> None:
    """List workspaces, pinned first."""

    async def run() -> None:
        backend = _build_backend(settings)
        try:
            for workspace in await list_workspaces(backend, timeout=settings.read_timeout):
                pin = "*" if workspace.pinned else " "
                click.echo(f"{pin} {workspace.id}  {workspace.name}  {workspace.github_owner}/{workspace.github_repo}")
        finally:
            await backend.aclose()

    _run(run())


@main.command()
@workspace_option
@click.option("--name", default="", help="Only show ungrouped catalogs whose name contains this.")
@click.option("--tag", "tags", multiple=True, help="Only show ungrouped catalogs carrying any of these tags.")
@click.pass_obj
def browse(settings: LibrarySettings, workspace_id: str | None, name: str, tags: tuple[str, ...]) -> None:
    """Show collections and the ungrouped catalog pool."""

    async def run() -> None:
        async with _open_library(settings, workspace_id) as coordinator:
            session = coordinator.session
            views = session.set_name_filter(name)
            for tag in tags:
                views = session.toggle_tag(tag)
            _echo_views(views)

    _run(run())


@main.command()
@workspace_option
@click.pass_obj
def sync(settings: LibrarySettings, workspace_id: str | None) -> None:
    """Sync the workspace catalog from GitHub."""

    async def run() -> None:
        async with _open_library(settings, workspace_id) as coordinator:
            _check(await coordinator.sync_workspace())

    _run(run())


@main.command("create-collection")
@workspace_option
@click.argument("name")
@click.option("--description", default=None, help="Collection description.")
@click.option("--tag", "tags", multiple=True, help="Collection tag (repeatable).")
@click.pass_obj
def create_collection(
    settings: LibrarySettings,
    workspace_id: str | None,
    name: str,
    description: str | None,
    tags: tuple[str, ...],
) -> None:
    """Create a collection."""

    async def run() -> None:
        async with _open_library(settings, workspace_id) as coordinator:
            result = await coordinator.create_collection(name, description, list(tags) or None)
            _check(result)
            click.echo(result.value)

    _run(run())


@main.command()
@workspace_option
@click.argument("collection_id")
@click.argument("catalog_ids", nargs=-1, required=True)
@click.pass_obj
def move(settings: LibrarySettings, workspace_id: str | None, collection_id: str, catalog_ids: tuple[str, ...]) -> None:
    """Add catalogs to a collection."""

    async def run() -> None:
        async with _open_library(settings, workspace_id) as coordinator:
            _check(await coordinator.move_catalogs_to_collection(collection_id, list(catalog_ids)))

    _run(run())


@main.command()
@workspace_option
@click.argument("paths", nargs=-1, required=True)
@click.option("--project-id", required=True, help="ID of the local project holding the files.")
@click.option("--project-path", required=True, help="Filesystem path of the local project.")
@click.option("--version-tag", default=None, help="Version tag for the new variations.")
@click.pass_obj
def publish(
    settings: LibrarySettings,
    workspace_id: str | None,
    paths: tuple[str, ...],
    project_id: str,
    project_path: str,
    version_tag: str | None,
) -> None:
    """Publish local files to the workspace."""
    items = [
        PublishItem(name=PurePath(path).name, path=path, project_id=project_id, project_path=project_path)
        for path in paths
    ]

    async def run() -> None:
        async with _open_library(settings, workspace_id) as coordinator:
            _echo_batch(await publish_items(coordinator, items, version_tag=version_tag))

    _run(run())


@main.command()
@workspace_option
@click.argument("variation_ids", nargs=-1, required=True)
@click.option("--project-id", required=True, help="ID of the target local project.")
@click.option("--project-path", required=True, help="Filesystem path of the target project.")
@click.option("--overwrite", is_flag=True, default=False, help="Overwrite files that already exist.")
@click.pass_obj
def pull(
    settings: LibrarySettings,
    workspace_id: str | None,
    variation_ids: tuple[str, ...],
    project_id: str,
    project_path: str,
    overwrite: bool,
) -> None:
    """Pull variations into a local project."""
    project = TargetProject(id=project_id, path=project_path)

    async def run() -> None:
        async with _open_library(settings, workspace_id) as coordinator:
            known = {
                variation.id: SelectedVariation(variation=variation, catalog=item.catalog)
                for item in coordinator.session.catalogs
                for variation in item.variations
            }
            missing = [vid for vid in variation_ids if vid not in known]
            if missing:
                msg = f"Unknown variation(s): {', '.join(missing)}"
                raise click.ClickException(msg)

            selection = coordinator.session.selection
            for vid in variation_ids:
                if not selection.is_variation_selected(vid):
                    selection.toggle_variation(known[vid].variation, known[vid].catalog)
            _echo_batch(await pull_variations(coordinator, [project], overwrite_if_exists=overwrite))

    _run(run())


if __name__ == "__main__":
    main()
