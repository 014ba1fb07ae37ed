"""Match items the user wants to publish to indexed local resources.

Path rules are tried across all candidates first; the file-name fallback
only runs when no candidate matches by path.  Within a rule the first
candidate in index order wins.  Deleted resources are never candidates.

The index must be fresh: callers re-scan the project right before matching.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from libmirror.client.models.library import LocalResource, PublishItem

logger = logging.getLogger(__name__)

STAGING_DIR = ".bluekit"

_LEADING = re.compile(r"^\.?/")


class ResourceNotFoundError(LookupError):
    """Raised when no indexed resource corresponds to a publish item."""

    def __init__(self, item_name: str) -> None:
        super().__init__(
            f"Resource '{item_name}' not found in project index. Re-scan the project and try again."
        )
        self.item_name = item_name


def normalize_path(path: str) -> str:
    """Strip one leading ``./`` or ``/``, then use forward slashes.

    The prefix is stripped before separators are converted, so ``.\\kits``
    keeps its leading dot as ``./kits``.
    """
    return _LEADING.sub("", path, count=1).replace("\\", "/")


def path_matches(item_path: str, resource_path: str) -> bool:
    """Compare two *normalized* paths.

    Equal paths match, as does either one being a ``/``-bounded suffix of the
    other, or the item path pointing into the project's staging directory.
    """
    if not item_path or not resource_path:
        return False
    return (
        item_path == resource_path
        or item_path.endswith("/" + resource_path)
        or resource_path.endswith("/" + item_path)
        or f"/{STAGING_DIR}/{resource_path}" in item_path
    )


def name_matches(item_name: str, file_name: str) -> bool:
    return file_name in (item_name, f"{item_name}.md")


def match_resource(item: PublishItem, resources: Iterable[LocalResource]) -> LocalResource:
    """Return the resource that corresponds to *item*.

    Raises ``ResourceNotFoundError`` if neither a path nor a name matches.
    """
    candidates = [r for r in resources if not r.is_deleted]

    if item.path:
        item_path = normalize_path(item.path)
        for resource in candidates:
            if path_matches(item_path, normalize_path(resource.relative_path)):
                logger.debug("Matched %s by path -> %s", item.name, resource.id)
                return resource

    for resource in candidates:
        if name_matches(item.name, resource.file_name):
            logger.debug("Matched %s by file name -> %s", item.name, resource.id)
            return resource

    raise ResourceNotFoundError(item.name)
