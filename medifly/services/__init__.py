"""
Services package exports for the chat-to-search business logic.
"""

from medifly.services.llm_service import LLMService, create_llm, LLMError, LLMTimeoutError
from medifly.services.response_normalizer import normalize_response, decode_payload
from medifly.services.search_client import (
    HttpSearchClient,
    SearchClient,
    SearchRequestError,
)
from medifly.services.search_service import ResultCache, SearchService, sort_results
from medifly.services.webhook_client import (
    WebhookClient,
    WebhookRequestError,
    ToolCallError,
)
from medifly.services.assistant_service import AssistantService
from medifly.services.action_engine import (
    ActionEngine,
    CannedResponder,
    build_follow_ups,
    summarize_results,
)
from medifly.services.conversation_service import Conversation, ConversationController

__all__ = [
    "LLMService",
    "create_llm",
    "LLMError",
    "LLMTimeoutError",
    "normalize_response",
    "decode_payload",
    "HttpSearchClient",
    "SearchClient",
    "SearchRequestError",
    "ResultCache",
    "SearchService",
    "sort_results",
    "WebhookClient",
    "WebhookRequestError",
    "ToolCallError",
    "AssistantService",
    "ActionEngine",
    "CannedResponder",
    "build_follow_ups",
    "summarize_results",
    "Conversation",
    "ConversationController",
]
