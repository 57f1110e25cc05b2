"""
Query embeddings for the Supabase search backend.
Hospital and doctor vectors are stored server-side; only search queries are embedded here.
"""

import asyncio
from typing import Literal
from functools import lru_cache
from langchain_core.embeddings import Embeddings
from langchain_openai import OpenAIEmbeddings
from langchain_google_genai import GoogleGenerativeAIEmbeddings

from medifly.utils.logger import get_logger

logger = get_logger(__name__)

# Dimensionality of the stored hospital and doctor vectors
VECTOR_DIMENSIONS = 768


class GeminiQueryEmbeddings(GoogleGenerativeAIEmbeddings):
    """Gemini embeddings that always embed as a retrieval query at the stored dimensionality."""

    def embed_query(self, text: str, **kwargs) -> list[float]:
        kwargs.update(output_dimensionality=VECTOR_DIMENSIONS, task_type="retrieval_query")
        return super().embed_query(text=text, **kwargs)

    async def aembed_query(self, text: str, **kwargs) -> list[float]:
        # the client's native async path would skip the dimensionality pin above
        return await asyncio.to_thread(self.embed_query, text, **kwargs)


class QueryEmbeddingCache(Embeddings):
    """
    Per-process LRU cache of query vectors.
    Follow-up actions re-run the same queries, so repeats within a session are common.
    Queries are keyed after stripping surrounding whitespace.
    """

    def __init__(self, base_embeddings: Embeddings, cache_size: int = 100):
        self.base_embeddings = base_embeddings
        self._lookup = lru_cache(maxsize=cache_size)(self._embed_uncached)

    def _embed_uncached(self, text: str) -> tuple[float, ...]:
        return tuple(self.base_embeddings.embed_query(text))

    def embed_query(self, text: str) -> list[float]:
        return list(self._lookup(text.strip()))

    async def aembed_query(self, text: str) -> list[float]:
        return await asyncio.to_thread(self.embed_query, text)

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return self.base_embeddings.embed_documents(texts)

    def cache_info(self):
        return self._lookup.cache_info()


def get_embeddings_model(
    provider: Literal["openai", "google"],
    model: str,
    api_key: str,
    cache_size: int = 100,
) -> Embeddings:
    """
    Builds the query embeddings model for the Supabase search client.

    Args:
        provider: "google" (Gemini) or "openai"
        model: Embeddings model name, e.g. "models/text-embedding-004"
        api_key: Provider API key
        cache_size: Query cache size; 0 disables caching

    Raises:
        ValueError: For any other provider
    """
    if provider == "google":
        embeddings: Embeddings = GeminiQueryEmbeddings(google_api_key=api_key, model=model)
    elif provider == "openai":
        embeddings = OpenAIEmbeddings(
            api_key=api_key, model=model, dimensions=VECTOR_DIMENSIONS
        )
    else:
        raise ValueError(f"Unknown embeddings provider '{provider}' (use google or openai)")

    logger.info(
        "query_embeddings_ready", provider=provider, model=model, cache_size=cache_size
    )
    if cache_size <= 0:
        return embeddings
    return QueryEmbeddingCache(embeddings, cache_size)
