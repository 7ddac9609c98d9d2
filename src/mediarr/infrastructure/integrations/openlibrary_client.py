"""Open Library HTTP client implementation."""

import logging
from typing import Any, cast

import httpx

from mediarr.config.settings import OpenLibrarySettings
from mediarr.domain.ports import AuthorCandidate, BookCandidate, IBookMetadataProvider
from mediarr.domain.value_objects.naming import valid_year

logger = logging.getLogger(__name__)


class OpenLibraryClient(IBookMetadataProvider):
    """Author and work search against the public Open Library API (no key needed)."""

    def __init__(
        self, settings: OpenLibrarySettings, client: httpx.AsyncClient | None = None
    ) -> None:
        self.settings = settings
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url,
                headers={"Accept": "application/json"},
                timeout=self.settings.timeout,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _make_request(self, path: str, params: dict[str, Any]) -> dict[str, Any] | None:
        client = await self._get_client()
        try:
            response = await client.get(path, params=params)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return cast(dict[str, Any], response.json())
        except httpx.HTTPError as e:
            logger.warning("Open Library request %s failed: %s", path, e)
            return None

    async def search_authors(self, name: str, limit: int = 5) -> list[AuthorCandidate]:
        data = await self._make_request("/search/authors.json", {"q": name, "limit": limit})
        if not data:
            return []
        return [
            AuthorCandidate(
                openlibrary_id=doc["key"].rsplit("/", 1)[-1],
                name=doc.get("name", ""),
                birth_date=doc.get("birth_date"),
                work_count=int(doc.get("work_count") or 0),
            )
            for doc in data.get("docs", [])
            if doc.get("key")
        ]

    # Hey future me - search.json returns WORKS (key "/works/OL123W"), and author_key /
    # author_name are parallel lists. We only keep the first author - co-authored books land
    # under whoever Open Library lists first, same as the folder layout would.
    async def search_books(
        self, title: str, author_name: str | None = None, limit: int = 5
    ) -> list[BookCandidate]:
        params: dict[str, Any] = {"title": title, "limit": limit}
        if author_name:
            params["author"] = author_name
        data = await self._make_request("/search.json", params)
        if not data:
            return []

        books = []
        for doc in data.get("docs", []):
            if not doc.get("key"):
                continue
            author_names = doc.get("author_name") or []
            author_keys = doc.get("author_key") or []
            books.append(
                BookCandidate(
                    openlibrary_id=doc["key"].rsplit("/", 1)[-1],
                    title=doc.get("title", ""),
                    author_name=author_names[0] if author_names else None,
                    author_id=author_keys[0] if author_keys else None,
                    year=valid_year(doc.get("first_publish_year")),
                    isbn=list(doc.get("isbn") or [])[:5],
                )
            )
        return books
