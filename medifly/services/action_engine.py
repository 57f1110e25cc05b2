"""
Action resolution: maps a clicked action onto exactly one behavior and the reply it produces.
Busy-state handling and error turns live in the conversation controller.
"""

from typing import Protocol

from medifly.models.domain import SEARCH_TYPES, ActionItem, SearchFilters, SearchResult, SearchType
from medifly.models.schemas import NormalizedResponse
from medifly.services.response_normalizer import normalize_response
from medifly.services.search_service import SearchService
from medifly.services.webhook_client import WebhookClient
from medifly.utils.responses import load_responses
from medifly.utils.logger import get_logger

logger = get_logger(__name__)
RESPONSES = load_responses()

SEARCH_BY_COUNTRY = "search_by_country"
TOP_RATED_MIN = 4
EXPERIENCED_MIN_YEARS = 10


class Navigator(Protocol):
    """Client-side router."""

    def navigate(self, path: str) -> None:
        ...


class ScriptedResponder(Protocol):
    """Source of canned conversational branches."""

    async def country_options(self) -> NormalizedResponse:
        ...


class CannedResponder:
    """
    ScriptedResponder backed by config/responses.yaml.
    Replies are ready immediately; there is no simulated thinking delay.
    """

    async def country_options(self) -> NormalizedResponse:
        branch = RESPONSES["country_branch"]
        actions = tuple(
            ActionItem(
                kind="hospital",
                label=branch["action_label"].format(country=country),
                query=branch["action_query"].format(country=country),
                filters=SearchFilters(country=country),
            )
            for country in branch["countries"]
        )
        return NormalizedResponse(message=branch["message"], actions=actions)


def summarize_results(
    results: tuple[SearchResult, ...] | list[SearchResult],
    search_type: SearchType,
    query: str,
    filters: SearchFilters | None = None,
) -> str:
    """
    Deterministic one-sentence summary of a search.

    Qualifiers are appended in a fixed order: specialty, country, city, halal.
    """
    templates = RESPONSES["search_summary"]
    if not results:
        return templates["no_results"].format(search_type=search_type, query=query)

    count = len(results)
    noun = search_type if count == 1 else f"{search_type}s"
    text = templates["found"].format(count=count, noun=noun)

    if filters is not None:
        if filters.specialty:
            text += templates["specialty"].format(specialty=filters.specialty)
        if filters.country:
            text += templates["country"].format(country=filters.country)
        if filters.city:
            text += templates["city"].format(city=filters.city)
        if filters.is_halal:
            text += templates["halal"]

    return text + templates["closing"]


def build_follow_ups(
    search_type: SearchType, query: str, filters: SearchFilters | None = None
) -> tuple[ActionItem, ...]:
    """
    Up to three refinements of a search that returned results:
    top-rated only, halal-only (hospitals) or experienced (doctors), and the
    same search for the other result type.
    """
    labels = RESPONSES["follow_ups"]
    base = filters if filters is not None else SearchFilters()
    follow_ups: list[ActionItem] = []

    if not (base.min_rating and base.min_rating >= TOP_RATED_MIN):
        follow_ups.append(
            ActionItem(
                kind=search_type,
                label=labels["top_rated"],
                query=query,
                filters=base.merged(min_rating=TOP_RATED_MIN),
            )
        )

    if search_type == "hospital":
        if not base.is_halal:
            follow_ups.append(
                ActionItem(
                    kind="hospital",
                    label=labels["halal_only"],
                    query=query,
                    filters=base.merged(is_halal=True),
                )
            )
    elif not (base.min_experience and base.min_experience >= EXPERIENCED_MIN_YEARS):
        follow_ups.append(
            ActionItem(
                kind="doctor",
                label=labels["experienced_doctors"],
                query=query,
                filters=base.merged(min_experience=EXPERIENCED_MIN_YEARS),
            )
        )

    location_only = SearchFilters(
        specialty=base.specialty, country=base.country, city=base.city
    )
    if search_type == "hospital":
        follow_ups.append(
            ActionItem(
                kind="doctor",
                label=labels["doctors_at_hospitals"],
                query=base.specialty or query,
                filters=location_only,
            )
        )
    else:
        follow_ups.append(
            ActionItem(
                kind="hospital",
                label=labels["hospital_affiliations"],
                query=base.specialty or query,
                filters=location_only,
            )
        )

    return tuple(follow_ups)


def generic_fallback(action: ActionItem) -> NormalizedResponse:
    """Reply for actions no specific branch handles."""
    templates = RESPONSES["generic_fallback"]
    subject = action.label or action.query or ""
    return NormalizedResponse(
        message=templates["message"].format(label=subject),
        actions=(
            ActionItem(
                kind="hospital",
                label=templates["search_hospitals"],
                query=action.query or "hospitals",
            ),
            ActionItem(
                kind="doctor",
                label=templates["search_doctors"],
                query=action.query or "doctors",
            ),
        ),
    )


class ActionEngine:
    """
    Resolves one ActionItem:

    - navigate with a target: route change, no reply
    - tool_call: webhook tool call, normalized reply
    - action/search_by_country: scripted country picker
    - hospital/doctor with a query: cached search plus summary and follow-ups
    - anything else: generic fallback reply
    """

    def __init__(
        self,
        search_service: SearchService,
        webhook_client: WebhookClient,
        navigator: Navigator,
        scripted: ScriptedResponder | None = None,
    ):
        self.search_service = search_service
        self.webhook_client = webhook_client
        self.navigator = navigator
        self.scripted = scripted or CannedResponder()

    async def resolve(self, action: ActionItem) -> NormalizedResponse | None:
        """
        Runs the behavior for an action.

        Returns:
            The reply to append, or None for a navigation

        Raises:
            ToolCallError: If the webhook rejects a tool call
            SearchRequestError: If the search backend fails
        """
        logger.info("action_resolving", kind=action.kind, label=action.label)

        if action.kind == "navigate" and action.target:
            path = "/" + action.target.lstrip("/")
            logger.info("action_navigate", path=path)
            self.navigator.navigate(path)
            return None

        if action.kind == "tool_call":
            payload = await self.webhook_client.call_tool(action.target, action.parameters)
            return normalize_response(payload)

        if action.kind == "action" and action.target == SEARCH_BY_COUNTRY:
            return await self.scripted.country_options()

        if action.kind in SEARCH_TYPES and action.query and action.query.strip():
            return await self._search(action)

        logger.info("action_fallback", kind=action.kind, target=action.target)
        return generic_fallback(action)

    async def _search(self, action: ActionItem) -> NormalizedResponse:
        results = await self.search_service.search(
            action.query, action.kind, action.filters
        )
        message = summarize_results(results, action.kind, action.query, action.filters)
        follow_ups = (
            build_follow_ups(action.kind, action.query, action.filters) if results else ()
        )
        return NormalizedResponse(message=message, actions=follow_ups or None)
