"""Data models for the library client."""

from libmirror.client.models.enums import EntityKind, MutationStatus, NotificationLevel, PublishStatus
from libmirror.client.models.library import (
    Catalog,
    CatalogExists,
    CatalogWithVariations,
    Collection,
    CollectionSnapshot,
    LabeledVariation,
    LocalResource,
    NoCatalogExists,
    Published,
    PublishItem,
    PublishResult,
    PullResult,
    ScanResult,
    SyncResult,
    TargetProject,
    Variation,
    VariationInfo,
    Workspace,
)
from libmirror.client.models.results import (
    BatchItemResult,
    BatchResult,
    LibraryViews,
    MutationResult,
    Notification,
)

__all__ = [
    # Batches
    "BatchItemResult",
    "BatchResult",
    # Library
    "Catalog",
    "CatalogExists",
    "CatalogWithVariations",
    "Collection",
    "CollectionSnapshot",
    # Enums
    "EntityKind",
    "LabeledVariation",
    "LibraryViews",
    "LocalResource",
    "MutationResult",
    "MutationStatus",
    "NoCatalogExists",
    "Notification",
    "NotificationLevel",
    "PublishItem",
    "PublishResult",
    "PublishStatus",
    "Published",
    "PullResult",
    "ScanResult",
    "SyncResult",
    "TargetProject",
    "Variation",
    "VariationInfo",
    "Workspace",
]
