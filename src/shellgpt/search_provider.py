"""
Search backends used by the search tools.

Two providers are available:
- SearchAPIProvider: searchapi.io, Google web engine plus Google Maps for
  address and business lookups
- GoogleSearchProvider: Google Custom Search JSON API

Both return an empty list when a query has no results and raise
SearchProviderError for transport, auth or status failures.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, Optional

import httplib2
import httpx

# Suppress the oauth2client file_cache warning
logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)

from googleapiclient.discovery import build
from googleapiclient.errors import Error as GoogleApiError
from googleapiclient.errors import HttpError

from .exceptions import SearchProviderError

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 3


@dataclass
class SearchResult:
    """One search hit. Fields that a backend does not provide stay None."""

    type: str  # organic, knowledge_graph, featured_snippet, local
    title: Optional[str] = None
    url: Optional[str] = None
    address: Optional[str] = None
    snippet: Optional[str] = None
    description: Optional[str] = None
    position: Optional[int] = None
    source: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    rating: Optional[float] = None
    reviews: Optional[int] = None
    hours: Optional[Any] = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


class SearchProvider(ABC):
    """Interface for search backends."""

    name = "search"

    @abstractmethod
    async def search(self, query: str, max_results: int = DEFAULT_MAX_RESULTS) -> list[SearchResult]:
        """General web search."""

    @abstractmethod
    async def search_address(self, query: str, max_results: int = DEFAULT_MAX_RESULTS) -> list[SearchResult]:
        """Location and business search."""

    async def validate(self) -> bool:
        """Return True when a test query succeeds with at least one result."""
        try:
            results = await self.search("test", max_results=1)
        except SearchProviderError as e:
            logger.info(f"Search provider validation failed: {e}")
            return False
        return len(results) > 0

    async def close(self) -> None:
        pass


class SearchAPIProvider(SearchProvider):
    """searchapi.io backend."""

    name = "SearchAPI"
    BASE_URL = "https://www.searchapi.io/api/v1/search"
    TIMEOUT = 15.0

    def __init__(self, api_key: str, client: Optional[httpx.AsyncClient] = None, base_url: Optional[str] = None):
        if not api_key:
            raise ValueError("SearchAPI key is required")
        self.api_key = api_key
        self.base_url = base_url or self.BASE_URL
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.TIMEOUT)
        return self._client

    async def _request(self, params: dict[str, Any]) -> dict[str, Any]:
        client = self._get_client()
        try:
            response = await client.get(self.base_url, params={"api_key": self.api_key, **params})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise SearchProviderError(
                f"SearchAPI returned HTTP {e.response.status_code}", original_error=e
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise SearchProviderError(f"SearchAPI request failed: {e}", original_error=e) from e

        if not isinstance(data, dict):
            raise SearchProviderError("SearchAPI returned an unexpected response body")
        status = (data.get("search_metadata") or {}).get("status")
        if status != "Success":
            raise SearchProviderError(f"SearchAPI returned unsuccessful status: {status}")
        return data

    async def search(self, query: str, max_results: int = DEFAULT_MAX_RESULTS) -> list[SearchResult]:
        logger.debug(f"Searching the web for: {query!r}")
        data = await self._request(
            {"engine": "google", "q": query, "num": max_results, "gl": "us", "hl": "en"}
        )
        return self.format_search_results(data)[:max_results]

    async def search_address(self, query: str, max_results: int = DEFAULT_MAX_RESULTS) -> list[SearchResult]:
        logger.debug(f"Searching for address: {query!r}")
        data = await self._request({"engine": "google_maps", "q": query, "num": max_results})
        return self.format_address_results(data)[:max_results]

    @staticmethod
    def format_search_results(data: dict[str, Any]) -> list[SearchResult]:
        """Organic results first, then knowledge graph and answer box."""
        results = []
        for position, item in enumerate(data.get("organic_results") or [], start=1):
            results.append(
                SearchResult(
                    type="organic",
                    title=item.get("title"),
                    url=item.get("link"),
                    snippet=item.get("snippet"),
                    position=position,
                    source="SearchAPI",
                )
            )

        graph = data.get("knowledge_graph")
        if graph:
            results.append(
                SearchResult(
                    type="knowledge_graph",
                    title=graph.get("title"),
                    description=graph.get("description"),
                    url=(graph.get("source") or {}).get("link"),
                    source="SearchAPI Knowledge Graph",
                )
            )

        answer = data.get("answer_box")
        if answer:
            results.append(
                SearchResult(
                    type="featured_snippet",
                    title=answer.get("title"),
                    snippet=answer.get("answer"),
                    url=answer.get("link"),
                    source="SearchAPI Featured Snippet",
                )
            )
        return results

    @staticmethod
    def format_address_results(data: dict[str, Any]) -> list[SearchResult]:
        """Local business results first, then any organic results."""
        results = []
        for position, item in enumerate(data.get("local_results") or [], start=1):
            results.append(
                SearchResult(
                    type="local",
                    title=item.get("title"),
                    address=item.get("address"),
                    phone=item.get("phone"),
                    website=item.get("website"),
                    rating=item.get("rating"),
                    reviews=item.get("reviews"),
                    hours=item.get("hours"),
                    position=position,
                    source="SearchAPI Google Maps",
                )
            )
        for position, item in enumerate(data.get("organic_results") or [], start=1):
            results.append(
                SearchResult(
                    type="organic",
                    title=item.get("title"),
                    url=item.get("link"),
                    snippet=item.get("snippet"),
                    position=position,
                    source="SearchAPI Google Maps",
                )
            )
        return results

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class GoogleSearchProvider(SearchProvider):
    """Google Custom Search backend.

    Custom Search has no maps engine, so address lookups run a web search
    biased towards address listings.
    """

    name = "Google Custom Search"

    def __init__(self, api_key: str, engine_id: str):
        if not api_key or not engine_id:
            raise ValueError("Google Custom Search needs both an API key and an engine id")
        self.api_key = api_key
        self.engine_id = engine_id
        self._service = None

    def _get_service(self):
        if self._service is None:
            self._service = build("customsearch", "v1", developerKey=self.api_key)
        return self._service

    def _list(self, query: str, max_results: int) -> list[dict[str, Any]]:
        # Custom Search accepts at most 10 results per page
        num = max(1, min(max_results, 10))
        try:
            resp = self._get_service().cse().list(q=query, cx=self.engine_id, num=num).execute()
        except HttpError as e:
            raise SearchProviderError(f"Google Custom Search failed: {e}", original_error=e) from e
        except (OSError, httplib2.HttpLib2Error, GoogleApiError) as e:
            raise SearchProviderError(f"Google Custom Search unreachable: {e}", original_error=e) from e
        return resp.get("items", [])

    def _to_results(self, items: list[dict[str, Any]], result_type: str) -> list[SearchResult]:
        results = []
        for position, item in enumerate(items, start=1):
            if result_type == "local":
                results.append(
                    SearchResult(
                        type="local",
                        title=item.get("title"),
                        address=item.get("snippet"),
                        website=item.get("link"),
                        position=position,
                        source=self.name,
                    )
                )
            else:
                results.append(
                    SearchResult(
                        type="organic",
                        title=item.get("title"),
                        url=item.get("link"),
                        snippet=item.get("snippet"),
                        position=position,
                        source=self.name,
                    )
                )
        return results

    async def search(self, query: str, max_results: int = DEFAULT_MAX_RESULTS) -> list[SearchResult]:
        items = await asyncio.to_thread(self._list, query, max_results)
        return self._to_results(items, "organic")[:max_results]

    async def search_address(self, query: str, max_results: int = DEFAULT_MAX_RESULTS) -> list[SearchResult]:
        items = await asyncio.to_thread(self._list, f"{query} address", max_results)
        return self._to_results(items, "local")[:max_results]


def build_search_provider(settings) -> Optional[SearchProvider]:
    """Pick a search backend from settings, or None when none is configured."""
    if settings.search_api_key:
        return SearchAPIProvider(settings.search_api_key)
    if settings.google_search_api_key and settings.google_search_engine_id:
        return GoogleSearchProvider(settings.google_search_api_key, settings.google_search_engine_id)
    logger.info("No search provider configured, search tools disabled")
    return None
