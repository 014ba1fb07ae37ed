"""Derived grouped / ungrouped views of a workspace's catalogs.

Pure recomputation from three inputs -- the catalog list, the collection
list and the collection -> catalog-id membership map -- plus the active
filters.  Nothing is retained between derivations.

Name and tag filters narrow only the ungrouped pool.  Catalogs inside a
collection are always listed in full, whatever the filters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from libmirror.client.models.library import LabeledVariation
from libmirror.client.models.results import LibraryViews

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from libmirror.client.models.library import CatalogWithVariations, Collection, Variation


@dataclass
class CatalogFilter:
    """Name substring and tag filters for the ungrouped pool."""

    name: str = ""
    tags: list[str] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return bool(self.name or self.tags)

    def matches(self, item: CatalogWithVariations) -> bool:
        catalog = item.catalog
        if self.name and self.name.lower() not in catalog.name.lower():
            return False
        if not self.tags:
            return True
        wanted = {tag.lower() for tag in self.tags}
        return any(tag.lower() in wanted for tag in catalog.tags)


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def collection_sort_key(collection: Collection) -> tuple[int, int]:
    return (collection.order_index, collection.created_at)


def sort_collections(collections: Iterable[Collection]) -> list[Collection]:
    """Order by ``order_index`` then ``created_at``, dropping duplicate ids.

    The first occurrence of an id wins.
    """
    unique: dict[str, Collection] = {}
    for collection in collections:
        unique.setdefault(collection.id, collection)
    return sorted(unique.values(), key=collection_sort_key)


def next_order_index(collections: Sequence[Collection]) -> int:
    """Order index for a collection appended after all existing ones."""
    if not collections:
        return 0
    return max(c.order_index for c in collections) + 1


def variation_labels(variations: Iterable[Variation]) -> list[LabeledVariation]:
    """Label variations ``v{N}`` .. ``v1``, newest first."""
    ordered = sorted(variations, key=lambda v: v.published_at, reverse=True)
    total = len(ordered)
    return [LabeledVariation(label=f"v{total - index}", variation=v) for index, v in enumerate(ordered)]


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


def grouped_catalog_ids(membership: Mapping[str, Sequence[str]], collections: Iterable[Collection]) -> set[str]:
    """Ids of catalogs that belong to at least one listed collection."""
    ids: set[str] = set()
    for collection in collections:
        ids.update(membership.get(collection.id, ()))
    return ids


def derive_views(
    catalogs: Sequence[CatalogWithVariations],
    collections: Iterable[Collection],
    membership: Mapping[str, Sequence[str]],
    catalog_filter: CatalogFilter | None = None,
) -> LibraryViews:
    """Partition *catalogs* into per-collection lists and the ungrouped pool.

    Membership entries that point at unknown catalogs, or belong to
    collections not in *collections*, are ignored.  Collection sub-lists
    follow the order of *catalogs*, not the order of membership.
    """
    catalog_filter = catalog_filter or CatalogFilter()
    ordered = sort_collections(collections)
    in_collection = grouped_catalog_ids(membership, ordered)

    grouped: dict[str, list[CatalogWithVariations]] = {}
    for collection in ordered:
        members = set(membership.get(collection.id, ()))
        grouped[collection.id] = [item for item in catalogs if item.catalog.id in members]

    pool = [item for item in catalogs if item.catalog.id not in in_collection]
    tags = sorted({tag for item in pool for tag in item.catalog.tags})

    return LibraryViews(
        collections=ordered,
        grouped=grouped,
        ungrouped=[item for item in pool if catalog_filter.matches(item)],
        available_tags=tags,
    )
