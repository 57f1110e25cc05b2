"""
Search dispatcher with a session-lifetime result cache.
Owns the state of the results panel: displayed results, search type, busy flag and error.
"""

from medifly.models.domain import (
    SEARCH_TYPES,
    SearchFilters,
    SearchResult,
    SearchType,
    canonical_filters_json,
)
from medifly.services.search_client import SearchClient, SearchRequestError
from medifly.utils.logger import get_logger
from medifly.utils.metrics import record_search

logger = get_logger(__name__)


def sort_results(results: list[SearchResult]) -> tuple[SearchResult, ...]:
    """Most similar first, ties broken by higher rating. Stable for equal keys."""
    return tuple(sorted(results, key=lambda r: (-r.similarity, -r.rating)))


class ResultCache:
    """
    In-memory map from (type, query, filters) to sorted results.
    An entry is written once and never replaced or evicted; the cache lives
    and dies with its conversation.
    """

    def __init__(self):
        self._entries: dict[str, tuple[SearchResult, ...]] = {}

    @staticmethod
    def make_key(
        search_type: SearchType, query: str, filters: SearchFilters | None
    ) -> str:
        return f"{search_type}:{query}:{canonical_filters_json(filters)}"

    def get(self, key: str) -> tuple[SearchResult, ...] | None:
        return self._entries.get(key)

    def put(
        self, key: str, results: tuple[SearchResult, ...]
    ) -> tuple[SearchResult, ...]:
        """
        Stores results unless the key is already present.

        Returns:
            The sequence stored under the key (the first one written wins)
        """
        return self._entries.setdefault(key, results)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class SearchService:
    """
    Runs hospital/doctor searches through a SearchClient, cached per session.

    Overlapping searches are not coalesced: two identical requests issued
    before either resolves both hit the network. Each search gets a sequence
    number and only a search newer than the one on display may replace the
    results panel (results or error), so a slow stale response never
    overwrites a newer one.
    """

    def __init__(
        self,
        client: SearchClient,
        threshold: float = 0.5,
        limit: int = 12,
        cache: ResultCache | None = None,
    ):
        """
        Args:
            client: Search backend (REST endpoint or Supabase)
            threshold: Minimum similarity sent with every request
            limit: Maximum results sent with every request
            cache: Result cache (a fresh one per service by default)
        """
        self.client = client
        self.threshold = threshold
        self.limit = limit
        self.cache = cache if cache is not None else ResultCache()

        self.search_type: SearchType | None = None
        self.query: str | None = None
        self.results: tuple[SearchResult, ...] = ()
        self.error: str | None = None

        self._in_flight = 0
        self._sequence = 0
        self._displayed_sequence = 0

    @property
    def is_searching(self) -> bool:
        return self._in_flight > 0

    async def search(
        self,
        query: str,
        search_type: SearchType,
        filters: SearchFilters | None = None,
    ) -> tuple[SearchResult, ...]:
        """
        Returns results for (type, query, filters), from cache when possible.

        Args:
            query: Non-empty search text
            search_type: "hospital" or "doctor"
            filters: Optional search filters

        Returns:
            Results sorted by similarity then rating

        Raises:
            ValueError: If query is empty or search_type is unknown
            SearchRequestError: If the backend call fails (cache stays empty)
        """
        if not query or not query.strip():
            raise ValueError("Search query must not be empty")
        if search_type not in SEARCH_TYPES:
            raise ValueError(f"Invalid search type: {search_type}")

        key = ResultCache.make_key(search_type, query, filters)
        self._sequence += 1
        sequence = self._sequence

        cached = self.cache.get(key)
        if cached is not None:
            logger.info("search_cache_hit", key=key, results=len(cached))
            record_search(cache_hit=True, results=len(cached))
            self._display(sequence, search_type, query, cached)
            return cached

        wire_filters = {
            **(filters.to_wire() if filters is not None else {}),
            "threshold": self.threshold,
            "limit": self.limit,
        }

        self._in_flight += 1
        try:
            logger.info("search_dispatched", key=key, sequence=sequence)
            results = await self.client.search(query, search_type, wire_filters)
            ordered = self.cache.put(key, sort_results(results))
            record_search(cache_hit=False, results=len(ordered))
            self._display(sequence, search_type, query, ordered)
            return ordered
        except SearchRequestError as e:
            logger.error("search_failed", key=key, error=str(e))
            self._display_error(sequence, str(e))
            raise
        finally:
            self._in_flight -= 1

    def _display(
        self,
        sequence: int,
        search_type: SearchType,
        query: str,
        results: tuple[SearchResult, ...],
    ) -> None:
        if sequence < self._displayed_sequence:
            logger.info(
                "stale_results_ignored",
                sequence=sequence,
                displayed_sequence=self._displayed_sequence,
            )
            return
        self._displayed_sequence = sequence
        self.search_type = search_type
        self.query = query
        self.results = results
        self.error = None

    def _display_error(self, sequence: int, message: str) -> None:
        # a failure owns the panel like a result does; older responses stay hidden
        if sequence < self._displayed_sequence:
            logger.info("stale_error_ignored", sequence=sequence)
            return
        self._displayed_sequence = sequence
        self.error = message
