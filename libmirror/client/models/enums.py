"""Shared enumerations used across the library client."""

from __future__ import annotations

from enum import StrEnum

# -- Cache -------------------------------------------------------------------


class EntityKind(StrEnum):
    """Per-workspace entity families held in the TTL cache."""

    CATALOGS = "catalogs"
    COLLECTIONS = "collections"


# -- Mutations ---------------------------------------------------------------


class MutationStatus(StrEnum):
    """Outcome of an optimistic mutation."""

    CONFIRMED = "confirmed"
    UNCONFIRMED = "unconfirmed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"
    SKIPPED = "skipped"


# -- Notifications -----------------------------------------------------------


class NotificationLevel(StrEnum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


# -- Publishing --------------------------------------------------------------


class PublishStatus(StrEnum):
    """Tag of the ``PublishResult`` union as sent by the remote."""

    PUBLISHED = "Published"
    CATALOG_EXISTS = "CatalogExists"
    NO_CATALOG_EXISTS = "NoCatalogExists"
