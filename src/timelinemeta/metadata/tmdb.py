"""TMDB API adapter with movie, series, season and episode endpoints."""

from dataclasses import replace
from typing import Optional

import structlog

from timelinemeta.errors import RateLimitError
from timelinemeta.metadata.base import HttpProviderAdapter, retry_after_seconds
from timelinemeta.metadata.heuristic import base_title, split_title_year
from timelinemeta.metadata.matching import validate_content_match
from timelinemeta.models.media import EpisodeHint, MediaKind, MediaRecord
from timelinemeta.models.update import Provider, UpdateCandidate

logger = structlog.get_logger(__name__)

IMAGE_BASE_URL = "https://image.tmdb.org/t/p/w500"


def _image_url(path: Optional[str]) -> Optional[str]:
    return f"{IMAGE_BASE_URL}{path}" if path else None


def _candidate_from_details(data: dict) -> UpdateCandidate:
    """Build a candidate from a movie, series, season or episode body."""
    run_times = data.get("episode_run_time") or []
    return UpdateCandidate(
        title=data.get("title") or data.get("name") or "",
        description=data.get("overview") or None,
        # Episodes carry a still instead of a poster
        cover_image_url=_image_url(data.get("poster_path") or data.get("still_path")),
        release_date=data.get("release_date") or data.get("first_air_date") or data.get("air_date"),
        runtime=data.get("runtime") or (run_times[0] if run_times else None),
        genres=tuple(g["name"] for g in data.get("genres") or [] if g.get("name")),
    )


def _endpoint_types(media_kind: MediaKind) -> list[str]:
    if media_kind == MediaKind.MOVIE:
        return ["movie"]
    if media_kind == MediaKind.UNKNOWN:
        return ["movie", "tv"]
    return ["tv"]


class TMDBAdapter(HttpProviderAdapter):
    """TMDB client. Resolves seasons and episodes through their parent series."""

    provider = Provider.TMDB
    supports_sub_resources = True

    async def _request(self, path: str, params: Optional[dict] = None) -> Optional[dict]:
        """GET a TMDB endpoint.

        Returns:
            JSON body, or None for missing key or non-success status

        Raises:
            RateLimitError: On HTTP 429
        """
        api_key = await self._api_key()
        if not api_key:
            return None

        response = await self._get(
            f"{self.base_url}{path}",
            {**(params or {}), "api_key": api_key},
        )

        if response.status_code == 429:
            retry_after = retry_after_seconds(response)
            logger.warning("TMDB rate limited", path=path, retry_after=retry_after)
            raise RateLimitError(self.provider, retry_after)

        if not response.is_success:
            logger.info("TMDB endpoint returned error", path=path, status_code=response.status_code)
            return None

        try:
            return response.json()
        except ValueError:
            logger.warning("TMDB returned non-JSON body", path=path)
            return None

    async def get_movie(self, tmdb_id: str) -> Optional[dict]:
        return await self._request(f"/movie/{tmdb_id}")

    async def get_tv_show(self, tmdb_id: str) -> Optional[dict]:
        return await self._request(f"/tv/{tmdb_id}")

    async def get_season(self, tmdb_id: str, season: int) -> Optional[dict]:
        return await self._request(f"/tv/{tmdb_id}/season/{season}")

    async def get_episode(self, tmdb_id: str, season: int, episode: int) -> Optional[dict]:
        return await self._request(f"/tv/{tmdb_id}/season/{season}/episode/{episode}")

    async def search_movie(self, query: str, year: Optional[int] = None) -> list[dict]:
        """Search for movies on TMDB.

        Args:
            query: Movie title
            year: Optional release year filter

        Returns:
            List of search results (may be empty)
        """
        params = {"query": query}
        if year:
            params["year"] = str(year)
        data = await self._request("/search/movie", params)
        results = (data or {}).get("results") or []
        logger.debug("Searched TMDB for movie", query=query, year=year, result_count=len(results))
        return results

    async def search_tv(self, query: str, year: Optional[int] = None) -> list[dict]:
        """Search for TV shows on TMDB.

        Args:
            query: Show title
            year: Optional first-air-date year filter

        Returns:
            List of search results (may be empty)
        """
        params = {"query": query}
        if year:
            params["first_air_date_year"] = str(year)
        data = await self._request("/search/tv", params)
        results = (data or {}).get("results") or []
        logger.debug("Searched TMDB for TV show", query=query, year=year, result_count=len(results))
        return results

    async def fetch_by_id(
        self,
        identifier: str,
        media_kind: MediaKind,
        hint: Optional[EpisodeHint] = None,
    ) -> Optional[UpdateCandidate]:
        """Fetch by TMDB id.

        For seasons and episodes the identifier is the parent series id; the
        sub-resource is fetched when a hint is available, degrading to the
        series itself otherwise.
        """
        if media_kind.is_sub_resource and hint is not None:
            if candidate := await self._fetch_sub_resource(identifier, hint):
                return candidate

        for endpoint in _endpoint_types(media_kind):
            logger.debug("Trying TMDB endpoint", endpoint=endpoint, tmdb_id=identifier)
            data = await self._request(f"/{endpoint}/{identifier}")
            if data and data.get("id"):
                candidate = _candidate_from_details(data)
                logger.info(
                    "Fetched from TMDB",
                    endpoint=endpoint,
                    tmdb_id=identifier,
                    title=candidate.title,
                )
                return candidate

        logger.info("No data found on TMDB", tmdb_id=identifier)
        return None

    async def search_by_title(
        self,
        title: str,
        media_kind: MediaKind,
    ) -> Optional[UpdateCandidate]:
        """Search movies and shows; the record's kind decides which goes first."""
        clean_title, year = split_title_year(title)
        searches = [self.search_movie, self.search_tv]
        if media_kind in (MediaKind.SERIES, MediaKind.SEASON, MediaKind.EPISODE):
            searches.reverse()

        for search in searches:
            if results := await search(clean_title, year=year):
                # Search results carry genre ids only
                return _candidate_from_details({**results[0], "genres": []})
        return None

    async def resolve_sub_resource(
        self,
        record: MediaRecord,
        hint: Optional[EpisodeHint],
    ) -> Optional[UpdateCandidate]:
        """Resolve a season or episode record without a usable TMDB id.

        The parent series is found by searching its clean title; results whose
        name does not match are dropped and a trailing year picks among the
        rest.

        Args:
            record: Season or episode record
            hint: Season/episode numbers, None to fall back to the series

        Returns:
            Candidate for the sub-resource, the series, or None
        """
        show_title = record.title or base_title(record.display_name)
        if not show_title:
            return None

        query, year = split_title_year(show_title)
        results = await self.search_tv(query)
        if not results:
            logger.info("Parent series not found on TMDB", query=query)
            return None

        matches = [r for r in results if validate_content_match(r.get("name"), query)]
        if not matches:
            logger.info("No TMDB series matched title", query=query, got=results[0].get("name"))
            return None

        show = matches[0]
        if year:
            for result in matches:
                if (result.get("first_air_date") or "").startswith(str(year)):
                    show = result
                    break

        series_id = str(show["id"])
        logger.debug(
            "Resolved parent series on TMDB",
            query=query,
            year=year,
            series_id=series_id,
            hint=str(hint) if hint else None,
        )

        if hint is not None:
            if candidate := await self._fetch_sub_resource(series_id, hint):
                return candidate

        return await self.fetch_by_id(series_id, MediaKind.SERIES)

    async def _fetch_sub_resource(
        self,
        series_id: str,
        hint: EpisodeHint,
    ) -> Optional[UpdateCandidate]:
        if hint.episode is None:
            data = await self.get_season(series_id, hint.season)
        else:
            data = await self.get_episode(series_id, hint.season, hint.episode)

        if not data:
            logger.info("TMDB sub-resource not found", series_id=series_id, hint=str(hint))
            return None

        candidate = replace(_candidate_from_details(data), numbered_part=True)
        logger.info(
            "Fetched TMDB sub-resource",
            series_id=series_id,
            hint=str(hint),
            title=candidate.title,
        )
        return candidate
