"""Update candidate, change set and option models."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Provider(str, Enum):
    """External metadata catalogs."""

    OMDB = "omdb"
    TMDB = "tmdb"
    TRAKT = "trakt"

    @property
    def identifier_key(self) -> str:
        """ExternalIdentifierSet field this provider is looked up by."""
        return _IDENTIFIER_KEYS[self]

    @property
    def label(self) -> str:
        return self.value.upper()


_IDENTIFIER_KEYS = {
    Provider.OMDB: "imdb",  # OMDb is keyed by IMDb ids
    Provider.TMDB: "tmdb",
    Provider.TRAKT: "trakt",
}


class CoverImageMode(str, Enum):
    """How cover images are persisted."""

    URL = "url"
    BINARY = "binary"


DEFAULT_SOURCES = [Provider.OMDB, Provider.TMDB, Provider.TRAKT]


class ReconciliationOptions(BaseModel):
    """Update policy for one reconciliation run."""

    model_config = ConfigDict(frozen=True)

    update_titles: bool = Field(default=True, description="Propose title changes")
    update_descriptions: bool = Field(default=True, description="Propose description changes")
    update_cover_images: bool = Field(default=True, description="Propose cover image changes")
    only_missing: bool = Field(
        default=True, description="Only fill empty fields instead of overwriting"
    )
    preferred_sources: List[Provider] = Field(
        default_factory=lambda: list(DEFAULT_SOURCES),
        description="Providers in priority order",
    )
    cover_image_mode: CoverImageMode = Field(
        default=CoverImageMode.URL, description="Persist covers as URL or binary"
    )

    @property
    def any_field_selected(self) -> bool:
        return self.update_titles or self.update_descriptions or self.update_cover_images


@dataclass(frozen=True)
class UpdateCandidate:
    """Metadata proposed by a single provider call."""

    title: str
    description: Optional[str] = None
    cover_image_url: Optional[str] = None
    release_date: Optional[str] = None
    runtime: Optional[int] = None
    genres: tuple[str, ...] = ()
    source: Optional[str] = None
    # Season or episode fetched by its numbers; its title is the episode name
    numbered_part: bool = False

    def with_title(self, title: str) -> "UpdateCandidate":
        return replace(self, title=title)

    def with_source(self, source: str) -> "UpdateCandidate":
        return replace(self, source=source)


@dataclass
class ChangeSet:
    """Fields of a record that would change, derived from one candidate."""

    candidate: UpdateCandidate
    title: Optional[str] = None
    description: Optional[str] = None
    cover_image_url: Optional[str] = None
    source: Optional[str] = None
    binary_cover: bool = False  # Cover must be ingested as binary on commit
    cover_uploaded: bool = False  # Set once the binary upload succeeded
    notes: List[str] = field(default_factory=list)

    def changed_fields(self) -> List[str]:
        """Names of the fields this change set touches."""
        return [
            name
            for name in ("title", "description", "cover_image_url")
            if getattr(self, name) is not None
        ]

    def to_store_fields(self, include_cover_url: bool = True) -> dict:
        """Map changed fields to content store field names."""
        fields = {}
        if self.title is not None:
            fields["DisplayName"] = self.title
        if self.description is not None:
            fields["Description"] = self.description
        if self.cover_image_url is not None and include_cover_url:
            fields["CoverImageUrl"] = self.cover_image_url
        return fields

    def __bool__(self) -> bool:
        return bool(self.changed_fields())
