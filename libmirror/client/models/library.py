"""Library domain models.

Immutable value records mirroring the remote catalog store: workspaces,
catalogs, variations, collections and the local resources that get
published into them.  Tags are typed ``list[str]`` here; the JSON-string
wire encoding is handled by the backend, never by core logic.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


_FROZEN = ConfigDict(frozen=True)

# -- Workspace ---------------------------------------------------------------


class Workspace(BaseModel):
    """A named binding to one remote repository holding library content."""

    model_config = _FROZEN

    id: str
    name: str
    github_owner: str
    github_repo: str
    pinned: bool = False
    created_at: int = 0
    updated_at: int = 0


# -- Catalog / variation -----------------------------------------------------


class Catalog(BaseModel):
    """A logical resource entry; groups one or more variations."""

    model_config = _FROZEN

    id: str
    workspace_id: str
    name: str
    description: str | None = None
    artifact_type: str
    tags: list[str] = Field(default_factory=list)
    remote_path: str
    created_at: int = 0
    updated_at: int = 0


class Variation(BaseModel):
    """One published, content-hashed instance of a catalog."""

    model_config = _FROZEN

    id: str
    catalog_id: str
    workspace_id: str
    remote_path: str
    content_hash: str
    github_commit_sha: str | None = None
    published_at: int
    publisher_name: str | None = None
    version_tag: str | None = None
    created_at: int = 0
    updated_at: int = 0


class CatalogWithVariations(BaseModel):
    """A catalog together with all of its current variations."""

    model_config = _FROZEN

    catalog: Catalog
    variations: list[Variation] = Field(default_factory=list)

    @property
    def id(self) -> str:
        return self.catalog.id


class LabeledVariation(BaseModel):
    """A variation with its ordinal ``v{N}`` label (newest = highest)."""

    model_config = _FROZEN

    label: str
    variation: Variation


# -- Collection --------------------------------------------------------------


class Collection(BaseModel):
    """A user-defined, ordered grouping of catalogs within a workspace."""

    model_config = _FROZEN

    id: str
    workspace_id: str
    name: str
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    color: str | None = None
    order_index: int = 0
    created_at: int = 0
    updated_at: int = 0


class CollectionSnapshot(BaseModel):
    """Collections of one workspace plus their catalog membership.

    ``membership`` maps collection id -> ordered, de-duplicated catalog ids.
    This is the payload cached under ``EntityKind.COLLECTIONS``.
    """

    model_config = _FROZEN

    collections: list[Collection] = Field(default_factory=list)
    membership: dict[str, list[str]] = Field(default_factory=dict)


# -- Local resources ---------------------------------------------------------


class LocalResource(BaseModel):
    """A file indexed in a local project, independent of any catalog."""

    model_config = _FROZEN

    id: str
    project_id: str
    relative_path: str
    file_name: str
    artifact_type: str = ""
    content_hash: str | None = None
    is_deleted: bool = False


class PublishItem(BaseModel):
    """Something the user wants to publish: a name and optional on-disk path."""

    model_config = _FROZEN

    name: str
    path: str | None = None
    project_id: str | None = None
    project_path: str | None = None


class TargetProject(BaseModel):
    """A local project that variations can be pulled into."""

    model_config = _FROZEN

    id: str
    path: str
    name: str | None = None


# -- Remote operation results ------------------------------------------------


class SyncResult(BaseModel):
    catalogs_created: int = 0
    catalogs_updated: int = 0
    variations_created: int = 0
    variations_updated: int = 0


class ScanResult(BaseModel):
    resources_created: int = 0
    resources_updated: int = 0
    resources_deleted: int = 0


class VariationInfo(BaseModel):
    id: str
    content_hash: str
    published_at: int
    publisher_name: str | None = None
    version_tag: str | None = None
    github_commit_sha: str | None = None


class Published(BaseModel):
    status: Literal["Published"] = "Published"
    catalog_id: str
    variation_id: str
    github_commit_sha: str


class CatalogExists(BaseModel):
    status: Literal["CatalogExists"] = "CatalogExists"
    catalog_id: str
    catalog_name: str
    variations: list[VariationInfo] = Field(default_factory=list)


class NoCatalogExists(BaseModel):
    status: Literal["NoCatalogExists"] = "NoCatalogExists"
    resource_id: str
    suggested_catalog_name: str
    suggested_remote_path: str


PublishResult = Annotated[Published | CatalogExists | NoCatalogExists, Field(discriminator="status")]


class PullResult(BaseModel):
    resource_id: str
    subscription_id: str
    file_path: str
    content_hash: str
