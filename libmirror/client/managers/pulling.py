"""Bulk pull of selected variations into local projects.

Every selected variation is pulled into every target project.  Attempts are
independent: one failure is recorded and the rest continue.  The selection
is cleared once the batch completes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from libmirror.client.backend.base import RemoteCallError
from libmirror.client.models.enums import NotificationLevel
from libmirror.client.models.results import BatchItemResult, BatchResult
from libmirror.client.remote import call_remote, describe_error

if TYPE_CHECKING:
    from collections.abc import Sequence

    from libmirror.client.coordinator import MutationCoordinator
    from libmirror.client.models.library import TargetProject
    from libmirror.client.selection import SelectedVariation


async def pull_variations(
    coordinator: MutationCoordinator,
    projects: Sequence[TargetProject],
    *,
    variations: Sequence[SelectedVariation] | None = None,
    overwrite_if_exists: bool = False,
) -> BatchResult:
    """Pull *variations* (default: the current selection) into *projects*.

    Returns one ``BatchItemResult`` per (variation, project) pair with the
    ``PullResult`` as ``detail`` on success.
    """
    session = coordinator.session
    session.require_workspace()
    selected = list(variations) if variations is not None else session.selection.selected_variations()

    if not selected or not projects:
        logger.info("Pull skipped: {} variation(s), {} project(s)", len(selected), len(projects))
        return BatchResult()

    backend = coordinator.backend
    items: list[BatchItemResult] = []
    for entry in selected:
        for project in projects:
            name = f"{entry.catalog.name} -> {project.name or project.path}"
            try:
                outcome = await call_remote(
                    "pull_variation",
                    lambda vid=entry.variation.id, p=project: backend.pull_variation(
                        vid, p.id, p.path, overwrite_if_exists
                    ),
                    coordinator.bulk_timeout,
                )
            except RemoteCallError as exc:
                logger.error("Failed to pull {}: {}", name, exc)
                items.append(BatchItemResult(name=name, success=False, error=describe_error(exc)))
            else:
                items.append(BatchItemResult(name=name, success=True, detail=outcome))

    batch = BatchResult(items=items)
    session.selection.clear()

    if not batch.failed:
        await coordinator.notify(
            NotificationLevel.SUCCESS,
            "Pulled",
            f"Pulled {len(selected)} variation(s) into {len(projects)} project(s)",
        )
    elif batch.succeeded:
        await coordinator.notify(
            NotificationLevel.WARNING,
            "Partially pulled",
            f"{batch.succeeded} succeeded, {batch.failed} failed",
        )
    else:
        await coordinator.notify(NotificationLevel.ERROR, "Pull failed", f"All {batch.failed} pull(s) failed")
    return batch
