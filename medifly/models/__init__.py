"""
Models package exports for domain values, boundary schemas, and embeddings.
"""

from medifly.models.domain import (
    ActionItem,
    ConversationTurn,
    DoctorResult,
    HospitalResult,
    SearchFilters,
    SearchResult,
    result_route,
)
from medifly.models.schemas import (
    NormalizationFallback,
    NormalizedResponse,
    SearchPlan,
    WebhookPayload,
)
from medifly.models.embeddings import get_embeddings_model, GeminiQueryEmbeddings

__all__ = [
    "ActionItem",
    "ConversationTurn",
    "DoctorResult",
    "HospitalResult",
    "SearchFilters",
    "SearchResult",
    "result_route",
    "NormalizationFallback",
    "NormalizedResponse",
    "SearchPlan",
    "WebhookPayload",
    "get_embeddings_model",
    "GeminiQueryEmbeddings",
]
