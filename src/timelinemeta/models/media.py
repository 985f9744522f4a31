"""Media record data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Optional


class MediaKind(str, Enum):
    """Coarse classification of a record's free-form MediaType."""

    MOVIE = "movie"
    SERIES = "series"
    SEASON = "season"
    EPISODE = "episode"
    UNKNOWN = "unknown"

    @classmethod
    def classify(cls, media_type: Optional[str]) -> "MediaKind":
        """Map a MediaType string such as "TV Series" or "Film" to a kind."""
        value = (media_type or "").lower()
        if "movie" in value or "film" in value:
            return cls.MOVIE
        # Episode and season before series: "Series Episode" is an episode
        if "episode" in value:
            return cls.EPISODE
        if "season" in value:
            return cls.SEASON
        if "tv" in value or "series" in value or "show" in value:
            return cls.SERIES
        return cls.UNKNOWN

    @property
    def is_sub_resource(self) -> bool:
        """Whether this kind lives below a parent series."""
        return self in (MediaKind.SEASON, MediaKind.EPISODE)


@dataclass
class MediaRecord:
    """A media item as stored in the content repository."""

    id: int
    display_name: str = ""
    description: Optional[str] = None
    media_type: Optional[str] = None
    external_links: Optional[str] = None  # JSON map or free text with URLs
    cover_image_url: Optional[str] = None
    subtitle: Optional[str] = None  # e.g. "S01E01" or "Season 1"
    title: Optional[str] = None  # Clean show/movie title
    name: Optional[str] = None  # Repository content name
    parent_id: Optional[int] = None

    @property
    def kind(self) -> MediaKind:
        return MediaKind.classify(self.media_type)

    @property
    def label(self) -> str:
        """Label used for progress reporting."""
        return self.display_name or "Unknown"

    @classmethod
    def from_content(cls, data: dict[str, Any]) -> "MediaRecord":
        """Build a record from a content store JSON body."""
        return cls(
            id=int(data["Id"]),
            display_name=data.get("DisplayName") or "",
            description=data.get("Description"),
            media_type=data.get("MediaType"),
            external_links=data.get("ExternalLinks"),
            cover_image_url=data.get("CoverImageUrl"),
            subtitle=data.get("Subtitle"),
            title=data.get("Title"),
            name=data.get("Name"),
            parent_id=data.get("ParentId"),
        )

    def __str__(self) -> str:
        """Human-readable representation."""
        return f"#{self.id} {self.label} ({self.media_type or 'unknown type'})"


@dataclass(frozen=True)
class ExternalIdentifierSet:
    """Provider identifiers extracted from a record's ExternalLinks."""

    imdb: Optional[str] = None
    tmdb: Optional[str] = None
    trakt: Optional[str] = None
    tvdb: Optional[str] = None

    def get(self, key: str) -> Optional[str]:
        return getattr(self, key, None)

    def __bool__(self) -> bool:
        return any((self.imdb, self.tmdb, self.trakt, self.tvdb))


@dataclass(frozen=True)
class EpisodeHint:
    """Season/episode numbers for a season or episode record."""

    season: int
    episode: Optional[int] = None
    origin: Literal["subtitle", "display_name"] = "subtitle"

    def __str__(self) -> str:
        if self.episode is None:
            return f"Season {self.season}"
        return f"S{self.season:02d}E{self.episode:02d}"
