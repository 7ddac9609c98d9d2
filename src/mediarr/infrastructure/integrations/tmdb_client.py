"""TMDB HTTP client implementation (movies and TV)."""

import logging
from typing import Any, cast

import httpx

from mediarr.config.settings import TmdbSettings
from mediarr.domain.ports import (
    EpisodeCandidate,
    IMovieMetadataProvider,
    ITvMetadataProvider,
    MovieCandidate,
    TvShowCandidate,
)
from mediarr.domain.value_objects.naming import release_year

logger = logging.getLogger(__name__)


class TmdbClient(IMovieMetadataProvider, ITvMetadataProvider):
    """HTTP client for TMDB v3 lookups used by the movie and TV scanners."""

    def __init__(
        self, settings: TmdbSettings, client: httpx.AsyncClient | None = None
    ) -> None:
        """
        Initialize TMDB client.

        Args:
            settings: TMDB configuration settings
            client: Optional pre-built client (tests inject one)
        """
        self.settings = settings
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url,
                headers={"Accept": "application/json"},
                timeout=self.settings.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _make_request(self, path: str, params: dict[str, Any]) -> dict[str, Any] | None:
        """
        GET a TMDB endpoint.

        Returns:
            Response data, or None when not found, unconfigured or unreachable
        """
        # No key = no TMDB. Scanners fall back to needs-review entities, which is fine.
        if not self.settings.api_key:
            return None

        client = await self._get_client()
        request_params = {
            "api_key": self.settings.api_key,
            "language": self.settings.language,
            **{key: value for key, value in params.items() if value is not None},
        }

        try:
            response = await client.get(path, params=request_params)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return cast(dict[str, Any], response.json())
        except httpx.HTTPError as e:
            logger.warning("TMDB request %s failed: %s", path, e)
            return None

    # ---- movies ----------------------------------------------------------------

    async def search_movies(self, title: str, year: int | None = None) -> list[MovieCandidate]:
        data = await self._make_request("/search/movie", {"query": title, "year": year})
        if not data:
            return []
        return [_to_movie(item) for item in data.get("results", []) if item.get("id")]

    async def get_movie(self, tmdb_id: int) -> MovieCandidate | None:
        data = await self._make_request(f"/movie/{tmdb_id}", {})
        return _to_movie(data) if data else None

    # ---- tv --------------------------------------------------------------------

    async def search_shows(self, title: str, year: int | None = None) -> list[TvShowCandidate]:
        data = await self._make_request(
            "/search/tv", {"query": title, "first_air_date_year": year}
        )
        if not data:
            return []
        return [_to_show(item) for item in data.get("results", []) if item.get("id")]

    async def get_show(self, tmdb_id: int) -> TvShowCandidate | None:
        data = await self._make_request(f"/tv/{tmdb_id}", {})
        return _to_show(data) if data else None

    async def get_season_episodes(
        self, tmdb_id: int, season_number: int
    ) -> list[EpisodeCandidate]:
        data = await self._make_request(f"/tv/{tmdb_id}/season/{season_number}", {})
        if not data:
            return []
        return [
            EpisodeCandidate(
                season_number=int(item.get("season_number", season_number)),
                episode_number=int(item["episode_number"]),
                title=item.get("name"),
                air_date=item.get("air_date") or None,
            )
            for item in data.get("episodes", [])
            if item.get("episode_number") is not None
        ]


def _to_movie(item: dict[str, Any]) -> MovieCandidate:
    return MovieCandidate(
        tmdb_id=int(item["id"]),
        title=item.get("title") or item.get("original_title") or "",
        year=release_year(item.get("release_date")),
        overview=item.get("overview") or None,
        poster_path=item.get("poster_path"),
    )


def _to_show(item: dict[str, Any]) -> TvShowCandidate:
    return TvShowCandidate(
        tmdb_id=int(item["id"]),
        title=item.get("name") or item.get("original_name") or "",
        year=release_year(item.get("first_air_date")),
        overview=item.get("overview") or None,
        poster_path=item.get("poster_path"),
    )
