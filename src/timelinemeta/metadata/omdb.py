"""OMDb API adapter (flat, single query endpoint keyed by IMDb id or title)."""

from typing import Optional

import httpx
import structlog

from timelinemeta.errors import RateLimitError
from timelinemeta.metadata.base import HttpProviderAdapter, retry_after_seconds
from timelinemeta.metadata.heuristic import split_title_year
from timelinemeta.models.media import EpisodeHint, MediaKind
from timelinemeta.models.update import Provider, UpdateCandidate

logger = structlog.get_logger(__name__)

# OMDb answers quota exhaustion with an error body, often on HTTP 200
RATE_LIMIT_MARKERS = ("daily limit exceeded", "request limit reached")


def _omdb_type(media_kind: MediaKind) -> Optional[str]:
    if media_kind == MediaKind.MOVIE:
        return "movie"
    if media_kind == MediaKind.SERIES:
        return "series"
    return None


def _value(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    if not value or value == "N/A":
        return None
    return value


def _parse_runtime(value: Optional[str]) -> Optional[int]:
    """Parse "142 min" into minutes."""
    if not value:
        return None
    head = value.split(" ", 1)[0]
    return int(head) if head.isdigit() else None


def parse_omdb_response(data: dict) -> UpdateCandidate:
    """Convert an OMDb response body into a candidate.

    Args:
        data: Successful OMDb JSON body

    Returns:
        UpdateCandidate
    """
    genres = _value(data, "Genre")
    return UpdateCandidate(
        title=data.get("Title") or "",
        description=_value(data, "Plot"),
        cover_image_url=_value(data, "Poster"),
        release_date=_value(data, "Released"),
        runtime=_parse_runtime(_value(data, "Runtime")),
        genres=tuple(genres.split(", ")) if genres else (),
    )


class OMDbAdapter(HttpProviderAdapter):
    """OMDb client. Looks up by IMDb id or by title + year + type."""

    provider = Provider.OMDB

    async def fetch_by_id(
        self,
        identifier: str,
        media_kind: MediaKind,
        hint: Optional[EpisodeHint] = None,
    ) -> Optional[UpdateCandidate]:
        """Fetch a title by IMDb id.

        Args:
            identifier: IMDb id, with or without the "tt" prefix
            media_kind: Narrows the lookup to movie or series
            hint: Unused; OMDb is flat

        Returns:
            Candidate or None if not found

        Raises:
            RateLimitError: If OMDb reports quota exhaustion
        """
        imdb_id = identifier if identifier.startswith("tt") else f"tt{identifier}"
        params = {"i": imdb_id, "plot": "full"}
        if omdb_type := _omdb_type(media_kind):
            params["type"] = omdb_type
        return await self._query(params)

    async def search_by_title(
        self,
        title: str,
        media_kind: MediaKind,
    ) -> Optional[UpdateCandidate]:
        """Look up the best match for a title.

        A trailing "(YYYY)" is moved from the query into the year parameter.
        """
        clean_title, year = split_title_year(title)
        params = {"t": clean_title, "plot": "full"}
        if year:
            params["y"] = str(year)
        if omdb_type := _omdb_type(media_kind):
            params["type"] = omdb_type
        return await self._query(params)

    async def _query(self, params: dict) -> Optional[UpdateCandidate]:
        api_key = await self._api_key()
        if not api_key:
            return None

        response = await self._get(self.base_url + "/", {**params, "apikey": api_key})
        query = {k: v for k, v in params.items() if k in ("i", "t", "y", "type")}

        if response.status_code == 429:
            raise RateLimitError(self.provider, retry_after_seconds(response))

        try:
            data = response.json()
        except ValueError:
            logger.warning(
                "OMDb returned non-JSON body",
                status_code=response.status_code,
                **query,
            )
            return None

        error = str(data.get("Error") or "") if isinstance(data, dict) else ""
        if any(marker in error.lower() for marker in RATE_LIMIT_MARKERS):
            logger.warning("OMDb quota exhausted", error=error, **query)
            raise RateLimitError(self.provider, retry_after_seconds(response), message=error)

        if response.status_code != httpx.codes.OK or not isinstance(data, dict):
            logger.warning("OMDb API error", status_code=response.status_code, **query)
            return None

        if data.get("Response") != "True":
            logger.info("Not found on OMDb", error=error, **query)
            return None

        candidate = parse_omdb_response(data)
        logger.info("Fetched from OMDb", title=candidate.title, **query)
        return candidate
