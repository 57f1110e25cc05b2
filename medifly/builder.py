"""
Assembles a conversation controller from settings.
Chooses the search backend (REST or Supabase) and the chat backend (webhook or assistant).
"""

import httpx
from supabase import create_client

from medifly import config
from medifly.config import Settings
from medifly.database.supabase import SupabaseSearchClient
from medifly.models.embeddings import get_embeddings_model
from medifly.services.action_engine import Navigator
from medifly.services.assistant_service import AssistantService
from medifly.services.conversation_service import ConversationController
from medifly.services.llm_service import LLMService, create_llm
from medifly.services.search_client import HttpSearchClient, SearchClient
from medifly.services.search_service import SearchService
from medifly.services.webhook_client import WebhookClient
from medifly.utils.logger import get_logger

logger = get_logger(__name__)


def create_http_client(settings: Settings | None = None) -> httpx.AsyncClient:
    """Shared async HTTP client; the caller closes it."""
    settings = settings or config.get_settings()
    return httpx.AsyncClient(timeout=settings.http_timeout)


def build_search_client(settings: Settings, http_client: httpx.AsyncClient) -> SearchClient:
    if settings.search_backend == "supabase":
        provider = settings.embeddings_provider.lower()
        embeddings = get_embeddings_model(
            provider=provider,
            model=settings.embeddings_model,
            api_key=(
                settings.google_api_key if provider == "google" else settings.openai_api_key
            ),
            cache_size=settings.embeddings_cache_size,
        )
        supabase = create_client(settings.supabase_url, settings.supabase_service_key)
        logger.info("search_backend_selected", backend="supabase")
        return SupabaseSearchClient(supabase_client=supabase, embeddings_model=embeddings)

    logger.info("search_backend_selected", backend="http", url=settings.search_endpoint_url)
    return HttpSearchClient(settings.search_endpoint_url, http_client)


def build_assistant(settings: Settings) -> AssistantService | None:
    if settings.chat_backend != "assistant":
        return None

    api_key = (
        settings.openai_api_key if "gpt" in settings.assistant_model else settings.google_api_key
    )
    if not api_key:
        logger.warning("assistant_llm_unavailable", model=settings.assistant_model)
        return AssistantService(llm_service=None)

    llm_service = LLMService(
        model=create_llm(model_name=settings.assistant_model, api_key=api_key),
        max_retries=settings.llm_max_retries,
        timeout=settings.llm_timeout,
        rate_limit=settings.llm_rate_limit,
    )
    return AssistantService(llm_service)


def build_controller(
    http_client: httpx.AsyncClient,
    navigator: Navigator,
    settings: Settings | None = None,
) -> ConversationController:
    """
    Builds a controller for one chat session.

    Args:
        http_client: Shared async HTTP client for webhook and search calls
        navigator: Client-side router
        settings: Settings override (defaults to environment settings)

    Returns:
        ConversationController with a fresh result cache
    """
    settings = settings or config.get_settings()
    logger.info("controller_building", chat_backend=settings.chat_backend)

    search_service = SearchService(
        build_search_client(settings, http_client),
        threshold=settings.search_threshold,
        limit=settings.search_limit,
    )
    return ConversationController(
        search_service=search_service,
        webhook_client=WebhookClient(settings.webhook_url, http_client),
        navigator=navigator,
        assistant=build_assistant(settings),
    )
