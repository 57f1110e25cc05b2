"""
Search clients: the narrow interface the search service depends on,
plus the implementation that calls the REST vector-search endpoint.
"""

from typing import Any, Protocol
import httpx
from pydantic import TypeAdapter, ValidationError

from medifly.models.domain import SearchResult, SearchType
from medifly.utils.logger import get_logger

logger = get_logger(__name__)

_RESULTS_ADAPTER = TypeAdapter(list[SearchResult])


class SearchRequestError(Exception):
    """Raised when the search backend does not return a usable response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SearchClient(Protocol):
    """Anything that can run a vector search for hospitals or doctors."""

    async def search(
        self, query: str, search_type: SearchType, filters: dict[str, Any]
    ) -> list[SearchResult]:
        ...


def parse_search_results(rows: Any, search_type: SearchType) -> list[SearchResult]:
    """
    Validates raw result rows into typed results.
    Rows without a `type` tag are assumed to be of the requested type.

    Raises:
        SearchRequestError: If the rows do not match the result schema
    """
    if rows is None:
        return []
    if not isinstance(rows, list):
        raise SearchRequestError("Search response 'results' is not a list")

    tagged = [
        {"type": search_type, **row} if isinstance(row, dict) else row
        for row in rows
    ]
    try:
        return _RESULTS_ADAPTER.validate_python(tagged)
    except ValidationError as e:
        raise SearchRequestError(f"Invalid search results: {e}") from e


class HttpSearchClient:
    """
    Calls the `/api/vector-search` endpoint.
    Any non-2xx status is a SearchRequestError; no retries.
    """

    def __init__(self, endpoint_url: str, http_client: httpx.AsyncClient):
        """
        Args:
            endpoint_url: Absolute URL of the vector-search endpoint
            http_client: Shared async HTTP client (owned by the caller)
        """
        self.endpoint_url = endpoint_url
        self.http_client = http_client

    async def search(
        self, query: str, search_type: SearchType, filters: dict[str, Any]
    ) -> list[SearchResult]:
        body = {"query": query, "type": search_type, "filters": filters}
        logger.info("search_request_started", query=query, search_type=search_type)

        try:
            response = await self.http_client.post(self.endpoint_url, json=body)
        except httpx.HTTPError as e:
            logger.error("search_request_failed", exc_info=True, error=str(e))
            raise SearchRequestError(f"Search request failed: {e}") from e

        if not response.is_success:
            logger.error(
                "search_request_rejected",
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise SearchRequestError(
                f"Search failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise SearchRequestError("Search response is not valid JSON") from e

        if not isinstance(payload, dict):
            raise SearchRequestError("Search response is not a JSON object")

        results = parse_search_results(payload.get("results"), search_type)
        logger.info("search_request_completed", query=query, results=len(results))
        return results
