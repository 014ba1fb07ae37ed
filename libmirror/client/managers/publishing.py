"""Batch publishing of local resources into the active workspace.

Items are grouped by project.  Each project is re-scanned once so its
resource index is fresh, then every item of that project is matched to an
indexed resource and published.  Failures are recorded per item and never
abort the rest of the batch.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from libmirror.client.backend.base import RemoteCallError
from libmirror.client.matcher import ResourceNotFoundError, match_resource
from libmirror.client.models.enums import EntityKind, NotificationLevel, PublishStatus
from libmirror.client.models.results import BatchItemResult, BatchResult
from libmirror.client.remote import call_remote, describe_error

if TYPE_CHECKING:
    from collections.abc import Sequence

    from libmirror.client.coordinator import MutationCoordinator
    from libmirror.client.models.library import LocalResource, PublishItem

NO_PROJECT_ERROR = "Item is not associated with a project"


def group_by_project(items: Sequence[PublishItem]) -> tuple[dict[tuple[str, str], list[int]], list[int]]:
    """Split item indexes into per-project groups and project-less leftovers.

    Groups are keyed by ``(project_id, project_path)`` in first-seen order.
    """
    groups: dict[tuple[str, str], list[int]] = {}
    orphans: list[int] = []
    for index, item in enumerate(items):
        if not item.project_id or not item.project_path:
            orphans.append(index)
            continue
        groups.setdefault((item.project_id, item.project_path), []).append(index)
    return groups, orphans


async def _load_resources(coordinator: MutationCoordinator, project_id: str, project_path: str) -> list[LocalResource]:
    backend = coordinator.backend
    scan = await call_remote(
        "scan_project_resources",
        lambda: backend.scan_project_resources(project_id, project_path),
        coordinator.bulk_timeout,
    )
    logger.debug(
        "Scanned project {}: {} created, {} updated, {} deleted",
        project_id,
        scan.resources_created,
        scan.resources_updated,
        scan.resources_deleted,
    )
    return await call_remote(
        "get_project_resources",
        lambda: backend.get_project_resources(project_id),
        coordinator.read_timeout,
    )


async def publish_items(
    coordinator: MutationCoordinator,
    items: Sequence[PublishItem],
    *,
    version_tag: str | None = None,
) -> BatchResult:
    """Publish *items* to the active workspace.

    Returns one ``BatchItemResult`` per item, in input order.  A successful
    publish stores the ``PublishResult`` as the item's ``detail``.
    """
    workspace_id = coordinator.session.require_workspace()
    backend = coordinator.backend
    results: dict[int, BatchItemResult] = {}

    groups, orphans = group_by_project(items)
    for index in orphans:
        results[index] = BatchItemResult(name=items[index].name, success=False, error=NO_PROJECT_ERROR)

    for (project_id, project_path), indexes in groups.items():
        try:
            resources = await _load_resources(coordinator, project_id, project_path)
        except RemoteCallError as exc:
            logger.error("Failed to index project {}: {}", project_id, exc)
            for index in indexes:
                results[index] = BatchItemResult(name=items[index].name, success=False, error=describe_error(exc))
            continue

        for index in indexes:
            item = items[index]
            try:
                resource = match_resource(item, resources)
                outcome = await call_remote(
                    "publish_resource",
                    lambda resource_id=resource.id: backend.publish_resource(
                        resource_id, workspace_id, version_tag=version_tag
                    ),
                    coordinator.bulk_timeout,
                )
            except ResourceNotFoundError as exc:
                results[index] = BatchItemResult(name=item.name, success=False, error=str(exc))
            except RemoteCallError as exc:
                logger.error("Failed to publish {}: {}", item.name, exc)
                results[index] = BatchItemResult(name=item.name, success=False, error=describe_error(exc))
            else:
                if outcome.status == PublishStatus.PUBLISHED:
                    logger.info("Published {} as variation {}", item.name, outcome.variation_id)
                else:
                    logger.info("Publishing {} returned {}", item.name, outcome.status)
                results[index] = BatchItemResult(name=item.name, success=True, detail=outcome)

    batch = BatchResult(items=[results[index] for index in range(len(items))])

    if batch.succeeded:
        coordinator.session.cache.invalidate(workspace_id, EntityKind.CATALOGS)
    await _notify_summary(coordinator, batch)
    return batch


async def _notify_summary(coordinator: MutationCoordinator, batch: BatchResult) -> None:
    total = len(batch.items)
    if not total:
        return
    if not batch.failed:
        await coordinator.notify(NotificationLevel.SUCCESS, "Published", f"Published {batch.succeeded} item(s)")
    elif batch.succeeded:
        await coordinator.notify(
            NotificationLevel.WARNING,
            "Partially published",
            f"Published {batch.succeeded} of {total} item(s); {batch.failed} failed",
        )
    else:
        first = next(item.error for item in batch.items if item.error)
        await coordinator.notify(NotificationLevel.ERROR, "Publish failed", first or "")
