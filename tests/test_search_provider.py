"""
Unit tests for the search backends.
"""

from unittest.mock import MagicMock, patch

import httplib2
import httpx
import pytest
from googleapiclient.errors import HttpError

from shellgpt.config import Settings
from shellgpt.exceptions import SearchProviderError
from shellgpt.search_provider import (
    GoogleSearchProvider,
    SearchAPIProvider,
    SearchResult,
    build_search_provider,
)

WEB_RESPONSE = {
    "search_metadata": {"status": "Success"},
    "organic_results": [
        {"title": "Paris Weather", "link": "https://weather.example/paris", "snippet": "Sunny"},
        {"title": "Forecast", "link": "https://forecast.example", "snippet": "Clouds later"},
    ],
    "knowledge_graph": {"title": "Paris", "description": "Capital of France", "source": {"link": "https://wiki.example"}},
    "answer_box": {"title": "Weather", "answer": "21C", "link": "https://answer.example"},
}

MAPS_RESPONSE = {
    "search_metadata": {"status": "Success"},
    "local_results": [
        {
            "title": "Louvre Museum",
            "address": "Rue de Rivoli, 75001 Paris",
            "phone": "+33 1 40 20 50 50",
            "rating": 4.7,
            "reviews": 250000,
        }
    ],
}


def provider_with(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SearchAPIProvider("test-key", client=client)


class TestSearchResult:
    """Tests for SearchResult."""

    def test_to_dict_drops_none(self):
        result = SearchResult(type="organic", title="t", url="u")
        assert result.to_dict() == {"type": "organic", "title": "t", "url": "u"}


class TestSearchAPIProvider:
    """Tests for SearchAPIProvider."""

    def test_requires_key(self):
        with pytest.raises(ValueError):
            SearchAPIProvider("")

    @pytest.mark.asyncio
    async def test_web_search(self):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return httpx.Response(200, json=WEB_RESPONSE)

        provider = provider_with(handler)
        results = await provider.search("weather Paris", max_results=5)

        assert seen["engine"] == "google"
        assert seen["q"] == "weather Paris"
        assert seen["api_key"] == "test-key"
        assert [r.type for r in results] == ["organic", "organic", "knowledge_graph", "featured_snippet"]
        assert results[0].url == "https://weather.example/paris"
        assert results[0].position == 1
        assert results[2].description == "Capital of France"
        assert results[3].snippet == "21C"

    @pytest.mark.asyncio
    async def test_results_capped(self):
        provider = provider_with(lambda request: httpx.Response(200, json=WEB_RESPONSE))
        results = await provider.search("weather Paris", max_results=1)
        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_address_search_uses_maps_engine(self):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return httpx.Response(200, json=MAPS_RESPONSE)

        provider = provider_with(handler)
        results = await provider.search_address("Louvre Paris")

        assert seen["engine"] == "google_maps"
        assert results[0].type == "local"
        assert results[0].address == "Rue de Rivoli, 75001 Paris"
        assert results[0].rating == 4.7

    @pytest.mark.asyncio
    async def test_no_results(self):
        provider = provider_with(
            lambda request: httpx.Response(200, json={"search_metadata": {"status": "Success"}})
        )
        assert await provider.search("nothing") == []

    @pytest.mark.asyncio
    async def test_unsuccessful_status(self):
        provider = provider_with(
            lambda request: httpx.Response(200, json={"search_metadata": {"status": "Error"}})
        )
        with pytest.raises(SearchProviderError, match="unsuccessful status"):
            await provider.search("q")

    @pytest.mark.asyncio
    async def test_http_error(self):
        provider = provider_with(lambda request: httpx.Response(401, json={"error": "bad key"}))
        with pytest.raises(SearchProviderError, match="HTTP 401"):
            await provider.search("q")

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = provider_with(handler)
        with pytest.raises(SearchProviderError):
            await provider.search("q")

    @pytest.mark.asyncio
    async def test_non_object_body(self):
        provider = provider_with(lambda request: httpx.Response(200, json=[1, 2]))
        with pytest.raises(SearchProviderError, match="unexpected response body"):
            await provider.search("q")
        assert await provider.validate() is False

    @pytest.mark.asyncio
    async def test_validate(self):
        provider = provider_with(lambda request: httpx.Response(200, json=WEB_RESPONSE))
        assert await provider.validate() is True

        failing = provider_with(lambda request: httpx.Response(500))
        assert await failing.validate() is False

    @pytest.mark.asyncio
    async def test_close_leaves_injected_client_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
        provider = SearchAPIProvider("k", client=client)
        await provider.close()
        assert not client.is_closed
        await client.aclose()


class TestGoogleSearchProvider:
    """Tests for GoogleSearchProvider."""

    @pytest.fixture
    def service(self):
        with patch("shellgpt.search_provider.build") as mock_build:
            yield mock_build.return_value

    @pytest.mark.asyncio
    async def test_web_search(self, service):
        service.cse.return_value.list.return_value.execute.return_value = {
            "items": [{"title": "Paris", "link": "https://paris.example", "snippet": "City"}]
        }
        provider = GoogleSearchProvider("key", "cx-id")

        results = await provider.search("paris", max_results=3)

        service.cse.return_value.list.assert_called_with(q="paris", cx="cx-id", num=3)
        assert results[0].type == "organic"
        assert results[0].url == "https://paris.example"

    @pytest.mark.asyncio
    async def test_address_search(self, service):
        service.cse.return_value.list.return_value.execute.return_value = {
            "items": [{"title": "Louvre", "link": "https://louvre.example", "snippet": "Rue de Rivoli"}]
        }
        provider = GoogleSearchProvider("key", "cx-id")

        results = await provider.search_address("Louvre", max_results=20)

        service.cse.return_value.list.assert_called_with(q="Louvre address", cx="cx-id", num=10)
        assert results[0].type == "local"
        assert results[0].address == "Rue de Rivoli"

    @pytest.mark.asyncio
    async def test_no_items(self, service):
        service.cse.return_value.list.return_value.execute.return_value = {}
        provider = GoogleSearchProvider("key", "cx-id")
        assert await provider.search("q") == []

    @pytest.mark.asyncio
    async def test_http_error(self, service):
        resp = MagicMock(status=403, reason="Forbidden")
        service.cse.return_value.list.return_value.execute.side_effect = HttpError(resp, b"forbidden")
        provider = GoogleSearchProvider("key", "cx-id")

        with pytest.raises(SearchProviderError):
            await provider.search("q")

    @pytest.mark.asyncio
    async def test_unreachable_host(self, service):
        service.cse.return_value.list.return_value.execute.side_effect = httplib2.ServerNotFoundError(
            "Unable to find the server at customsearch.googleapis.com"
        )
        provider = GoogleSearchProvider("key", "cx-id")

        with pytest.raises(SearchProviderError, match="unreachable"):
            await provider.search("q")
        assert await provider.validate() is False

    @pytest.mark.asyncio
    async def test_discovery_failure(self):
        with patch("shellgpt.search_provider.build", side_effect=httplib2.ServerNotFoundError("no dns")):
            provider = GoogleSearchProvider("key", "cx-id")
            with pytest.raises(SearchProviderError):
                await provider.search("q")


class TestBuildSearchProvider:
    """Tests for backend selection."""

    def test_prefers_searchapi(self):
        settings = Settings(search_api_key="s", google_search_api_key="g", google_search_engine_id="cx")
        assert isinstance(build_search_provider(settings), SearchAPIProvider)

    def test_google(self):
        settings = Settings(google_search_api_key="g", google_search_engine_id="cx")
        assert isinstance(build_search_provider(settings), GoogleSearchProvider)

    def test_none(self):
        assert build_search_provider(Settings(google_search_api_key="g")) is None
