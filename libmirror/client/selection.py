"""Two cascading selection sets: variations and catalogs.

A selected catalog always has every one of its current variations in the
variation set.  Deselecting a catalog removes the variations its selection
added, so a select / deselect round trip leaves the variation set exactly
as it was.  Deselecting a single variation of a selected catalog
drops the catalog from the catalog set (it is no longer fully selected)
but leaves its other variations selected.

Selections live for one workspace browsing session and are never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from libmirror.client.models.library import Catalog, CatalogWithVariations, Variation


@dataclass(frozen=True)
class SelectedVariation:
    """A selected variation and the catalog that owns it."""

    variation: Variation
    catalog: Catalog


class SelectionManager:
    """Keyed variation / catalog selections with cascade rules."""

    def __init__(self) -> None:
        self._variations: dict[str, SelectedVariation] = {}
        self._catalogs: dict[str, CatalogWithVariations] = {}
        self._cascaded: dict[str, set[str]] = {}
        """catalog id -> variation ids added by selecting that catalog."""

    # -- Toggles ---------------------------------------------------------------

    def toggle_variation(self, variation: Variation, catalog: Catalog) -> bool:
        """Select *variation* if absent, else deselect it.  Returns the new state."""
        if variation.id in self._variations:
            del self._variations[variation.id]
            self._catalogs.pop(catalog.id, None)
            self._cascaded.pop(catalog.id, None)
            return False
        self._variations[variation.id] = SelectedVariation(variation=variation, catalog=catalog)
        return True

    def toggle_catalog(self, item: CatalogWithVariations) -> bool:
        """Select a catalog with all its variations, or deselect both.

        Returns ``True`` if the catalog is selected afterwards.
        """
        catalog = item.catalog
        if catalog.id in self._catalogs:
            del self._catalogs[catalog.id]
            for variation_id in self._cascaded.pop(catalog.id, set()):
                self._variations.pop(variation_id, None)
            return False

        self._catalogs[catalog.id] = item
        self._cascaded[catalog.id] = {v.id for v in item.variations if v.id not in self._variations}
        for variation in item.variations:
            self._variations[variation.id] = SelectedVariation(variation=variation, catalog=catalog)
        return True

    # -- Bulk ------------------------------------------------------------------

    def purge_catalogs(self, catalog_ids: Iterable[str]) -> None:
        """Remove the given catalogs and every variation they own."""
        ids = set(catalog_ids)
        for catalog_id in ids:
            self._catalogs.pop(catalog_id, None)
            self._cascaded.pop(catalog_id, None)
        self._drop_variations_of(ids)

    def reconcile(self, catalogs: Iterable[CatalogWithVariations]) -> None:
        """Re-point every selection at freshly loaded *catalogs*.

        Variations that are no longer live are dropped, selected catalogs
        that vanished are dropped, and a still-selected catalog picks up any
        variation it gained.
        """
        live = {item.catalog.id: item for item in catalogs}
        live_variations = {v.id: (v, item.catalog) for item in live.values() for v in item.variations}

        gone = [vid for vid in self._variations if vid not in live_variations]
        for variation_id in gone:
            del self._variations[variation_id]
        for variation_id in self._variations:
            variation, catalog = live_variations[variation_id]
            self._variations[variation_id] = SelectedVariation(variation=variation, catalog=catalog)

        for catalog_id in list(self._catalogs):
            item = live.get(catalog_id)
            if item is None:
                del self._catalogs[catalog_id]
                self._cascaded.pop(catalog_id, None)
                continue
            self._catalogs[catalog_id] = item
            cascaded = self._cascaded.setdefault(catalog_id, set())
            cascaded.intersection_update(v.id for v in item.variations)
            for variation in item.variations:
                if variation.id not in self._variations:
                    cascaded.add(variation.id)
                    self._variations[variation.id] = SelectedVariation(variation=variation, catalog=item.catalog)

        if gone:
            logger.debug("Selection: dropped {} vanished variations", len(gone))

    def clear_variations(self) -> None:
        """Wipe the variation set.

        Selected catalogs go with it: a catalog cannot stay selected without
        its variations.
        """
        self._variations.clear()
        self._catalogs.clear()
        self._cascaded.clear()

    def clear_catalogs(self) -> None:
        """Wipe the catalog set, keeping every selected variation."""
        self._catalogs.clear()
        self._cascaded.clear()

    def clear(self) -> None:
        if self._variations or self._catalogs:
            logger.debug(
                "Selection: cleared {} variations, {} catalogs",
                len(self._variations),
                len(self._catalogs),
            )
        self._variations.clear()
        self._catalogs.clear()
        self._cascaded.clear()

    # -- Query -----------------------------------------------------------------

    def is_variation_selected(self, variation_id: str) -> bool:
        return variation_id in self._variations

    def is_catalog_selected(self, catalog_id: str) -> bool:
        return catalog_id in self._catalogs

    def selected_variations(self) -> list[SelectedVariation]:
        return list(self._variations.values())

    def selected_catalogs(self) -> list[CatalogWithVariations]:
        return list(self._catalogs.values())

    @property
    def variation_ids(self) -> set[str]:
        return set(self._variations)

    @property
    def catalog_ids(self) -> set[str]:
        return set(self._catalogs)

    def target_catalog_ids(self) -> list[str]:
        """Catalog ids a bulk action should act on, in first-selected order.

        The union of explicitly selected catalogs and catalogs owning an
        individually selected variation.
        """
        ids = dict.fromkeys(self._catalogs)
        for selected in self._variations.values():
            ids.setdefault(selected.catalog.id)
        return list(ids)

    @property
    def has_selections(self) -> bool:
        return bool(self._variations or self._catalogs)

    # -- Internals -------------------------------------------------------------

    def _drop_variations_of(self, catalog_ids: set[str]) -> None:
        for variation_id in [vid for vid, sel in self._variations.items() if sel.catalog.id in catalog_ids]:
            del self._variations[variation_id]
