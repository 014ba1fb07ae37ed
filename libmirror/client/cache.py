"""Time-bounded cache of remote-derived state.

Entries are keyed by ``(workspace_id, EntityKind)`` and hold the payload
together with the moment it was captured.  A read returns the payload only
while it is younger than the TTL; older entries are ignored (not deleted),
so the next ``set`` simply supersedes them.

No locking and no size bound: one store belongs to one browsing session,
entries are bounded by the number of workspaces, and every mutation flow is
driven from a single event loop.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from libmirror.client.models.enums import EntityKind

DEFAULT_TTL_SECONDS = 5 * 60


class TtlCacheStore:
    """Per-workspace, per-entity-kind snapshots with a shared fixed TTL."""

    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[tuple[str, EntityKind], tuple[Any, float]] = {}

    @property
    def ttl(self) -> float:
        return self._ttl

    # -- Query -----------------------------------------------------------------

    def get(self, workspace_id: str, kind: EntityKind) -> Any | None:
        """Return the cached payload, or ``None`` if absent or expired."""
        entry = self._entries.get((workspace_id, kind))
        if entry is None:
            return None
        payload, captured_at = entry
        age = self._clock() - captured_at
        if age >= self._ttl:
            logger.debug("Cache: {} for {} expired ({:.1f}s old)", kind, workspace_id, age)
            return None
        return payload

    def __contains__(self, key: tuple[str, EntityKind]) -> bool:
        return self.get(*key) is not None

    # -- Mutation --------------------------------------------------------------

    def set(self, workspace_id: str, kind: EntityKind, payload: Any) -> None:
        self._entries[(workspace_id, kind)] = (payload, self._clock())

    def invalidate(self, workspace_id: str, kind: EntityKind) -> None:
        """Drop one entry.  No-op if it is not cached."""
        if self._entries.pop((workspace_id, kind), None) is not None:
            logger.debug("Cache: invalidated {} for {}", kind, workspace_id)

    def clear_all(self) -> None:
        self._entries.clear()
        logger.debug("Cache: cleared")
