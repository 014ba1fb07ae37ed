"""Outcome models for mutations, batches and derived views."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from libmirror.client.models.enums import MutationStatus, NotificationLevel
from libmirror.client.models.library import CatalogWithVariations, Collection

# -- Notifications -----------------------------------------------------------


class Notification(BaseModel):
    """User-visible message emitted after a mutation or batch completes."""

    level: NotificationLevel
    title: str
    description: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)


# -- Mutations ---------------------------------------------------------------


class MutationResult(BaseModel):
    """Outcome of one optimistic mutation."""

    operation: str
    status: MutationStatus
    value: Any = None
    """Authoritative return value (collection id, deleted count, sync counts...)."""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (MutationStatus.CONFIRMED, MutationStatus.UNCONFIRMED)


# -- Batches -----------------------------------------------------------------


class BatchItemResult(BaseModel):
    name: str
    success: bool
    error: str | None = None
    detail: Any = None


class BatchResult(BaseModel):
    """Per-item outcomes of a bulk publish or pull."""

    items: list[BatchItemResult] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.items if item.success)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.items if not item.success)


# -- Derived views -----------------------------------------------------------


class LibraryViews(BaseModel):
    """Grouped and ungrouped projections of a workspace's catalogs."""

    collections: list[Collection] = Field(default_factory=list, description="Sorted by (order_index, created_at)")
    grouped: dict[str, list[CatalogWithVariations]] = Field(default_factory=dict)
    ungrouped: list[CatalogWithVariations] = Field(default_factory=list)
    available_tags: list[str] = Field(default_factory=list, description="Tags found on ungrouped catalogs")
