import logging
from typing import Any, Dict, List

from ..search_provider import DEFAULT_MAX_RESULTS, SearchProvider

logger = logging.getLogger(__name__)


class SearchPlugin:
    """Plugin exposing web and address search as model tools."""

    def __init__(self, provider: SearchProvider, max_results: int = DEFAULT_MAX_RESULTS):
        self.provider = provider
        self.max_results = max_results

    async def _run(self, capability, query: str, max_results: int) -> List[Dict[str, Any]]:
        try:
            results = await capability(query, max_results)
        except Exception as e:
            # A failing backend degrades to "no results" for this call only
            logger.warning(
                f"Search failed, continuing without results: {e}",
                extra={
                    "structured": {
                        "log_type": "search_error",
                        "provider": self.provider.name,
                        "query": query,
                        "content": str(e),
                    }
                },
            )
            return []
        return [result.to_dict() for result in results[:max_results]]

    async def search_web(self, query: str, max_results: int = DEFAULT_MAX_RESULTS) -> List[Dict[str, Any]]:
        """Search the web for current information, news, facts and anything that may have changed recently.

        Args:
            query: The search query
            max_results: Maximum number of results to return
        """
        logger.debug(f"search_web({query!r}, max_results={max_results})")
        return await self._run(self.provider.search, query, max_results)

    async def search_address(self, query: str, max_results: int = DEFAULT_MAX_RESULTS) -> List[Dict[str, Any]]:
        """Look up addresses, places and local businesses (location, phone, opening hours, ratings).

        Args:
            query: The place or business to look up, including the city when known
            max_results: Maximum number of results to return
        """
        logger.debug(f"search_address({query!r}, max_results={max_results})")
        return await self._run(self.provider.search_address, query, max_results)

    def hook_provide_tools(self):
        """Return tools this plugin provides for auto-registration."""
        return [self.search_web, self.search_address]

    def hook_provide_system_prompt(self):
        """Return system prompt addition for search functionality."""
        return """
## Web Search Tools

Available tools:
- **search_web(query)**: current information from the web (news, weather, prices, events, facts that may have changed)
- **search_address(query)**: addresses, places and businesses, with phone numbers, ratings and opening hours

Usage:
- Search when the question depends on information newer than your training data or on live data
- Do not search for general knowledge, arithmetic or writing tasks
- Use short, specific queries, e.g. "weather Paris today"
- Cite the sources you used with their URLs
- If a search returns no results, say so and answer from what you know
""".strip()
