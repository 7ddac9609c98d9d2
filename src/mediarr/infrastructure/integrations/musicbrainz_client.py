"""MusicBrainz HTTP client implementation with rate limiting."""

import asyncio
import logging
from typing import Any

import httpx

from mediarr.config.settings import MusicBrainzSettings
from mediarr.domain.ports import AlbumCandidate, IMusicMetadataProvider, TracklistEntry
from mediarr.domain.value_objects.naming import release_year

logger = logging.getLogger(__name__)


class MusicBrainzClient(IMusicMetadataProvider):
    """MusicBrainz lookups for album identification and tracklist backfill.

    Every public method degrades to [] on HTTP/transport errors - the importer treats
    "MusicBrainz is down" exactly like "MusicBrainz doesn't know this album".
    """

    # Hey future me, MusicBrainz is STRICT about 1 req/sec per client - violate it and the
    # IP gets banned for hours. The lock serializes requests from concurrent imports and
    # _last_request_time is updated AFTER the response arrives so slow responses don't
    # speed us up.
    def __init__(
        self, settings: MusicBrainzSettings, client: httpx.AsyncClient | None = None
    ) -> None:
        self.settings = settings
        self._client = client
        self._last_request_time: float = 0.0
        self._rate_limit_lock = asyncio.Lock()

    # User-Agent format is mandated: "AppName/Version ( contact )" - 403 without it
    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            user_agent = (
                f"{self.settings.app_name}/{self.settings.app_version} "
                f"( {self.settings.contact} )"
            )
            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url,
                headers={"User-Agent": user_agent, "Accept": "application/json"},
                timeout=self.settings.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _rate_limited_request(
        self, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        """Make a rate-limited request.

        Raises:
            httpx.HTTPError: If the request fails
        """
        async with self._rate_limit_lock:
            loop = asyncio.get_running_loop()
            time_since_last = loop.time() - self._last_request_time
            if time_since_last < self.settings.rate_limit_delay:
                await asyncio.sleep(self.settings.rate_limit_delay - time_since_last)

            client = await self._get_client()
            response = await client.request(method, url, **kwargs)

            self._last_request_time = loop.time()
            return response

    async def _get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any] | None:
        try:
            response = await self._rate_limited_request(
                "GET", url, params={**params, "fmt": "json"}
            )
            if response.status_code == 404:
                return None
            response.raise_for_status()
            data: dict[str, Any] = response.json()
            return data
        except httpx.HTTPError as e:
            logger.warning("MusicBrainz request %s failed: %s", url, e)
            return None

    # Lucene syntax - the quotes matter, without them "The Beatles" becomes "the OR beatles"
    async def search_albums(
        self, artist_name: str, album_title: str, limit: int = 5
    ) -> list[AlbumCandidate]:
        query_parts = []
        if album_title:
            query_parts.append(f'releasegroup:"{_escape(album_title)}"')
        if artist_name:
            query_parts.append(f'artist:"{_escape(artist_name)}"')
        if not query_parts:
            return []

        data = await self._get_json(
            "/release-group", {"query": " AND ".join(query_parts), "limit": limit}
        )
        if not data:
            return []

        candidates = []
        for group in data.get("release-groups", []):
            credits = group.get("artist-credit") or []
            artist = credits[0].get("artist", {}) if credits else {}
            candidates.append(
                AlbumCandidate(
                    release_group_id=group["id"],
                    title=group.get("title", ""),
                    artist_name=artist.get("name"),
                    artist_id=artist.get("id"),
                    year=release_year(group.get("first-release-date")),
                    score=int(group.get("score", 0)),
                )
            )
        return candidates

    # Hey future me - a release GROUP is the album concept, a RELEASE is one pressing.
    # Tracklists live on releases, so we browse the group's official releases and take the
    # first one. Good enough to backfill track slots; exact edition matching isn't the goal.
    async def get_tracklist(self, release_group_id: str) -> list[TracklistEntry]:
        data = await self._get_json(
            "/release",
            {
                "release-group": release_group_id,
                "status": "official",
                "inc": "recordings+media",
                "limit": 1,
            },
        )
        if not data or not data.get("releases"):
            return []

        release = data["releases"][0]
        tracks: list[TracklistEntry] = []
        for disc_index, medium in enumerate(release.get("media", []), start=1):
            disc_number = int(medium.get("position") or disc_index)
            for track in medium.get("tracks", []):
                recording = track.get("recording") or {}
                number = track.get("position") or track.get("number")
                try:
                    track_number = int(number)
                except (TypeError, ValueError):
                    continue
                tracks.append(
                    TracklistEntry(
                        title=track.get("title") or recording.get("title") or "",
                        track_number=track_number,
                        disc_number=disc_number,
                        duration_ms=track.get("length") or recording.get("length"),
                        recording_id=recording.get("id"),
                    )
                )
        return tracks


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')
