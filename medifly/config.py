import os
from typing import Literal
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """
    Endpoints, backend choices and search parameters for the assistant.
    Read from environment variables (case-insensitive) and an optional .env file.
    """

    # --- External Endpoints ---
    webhook_url: str = Field(
        default="http://localhost:5678/webhook/medifly-assistant",
        description="Conversational webhook receiving chat messages and tool calls",
    )
    search_endpoint_url: str = Field(
        default="http://localhost:3000/api/vector-search",
        description="REST endpoint performing hospital/doctor vector search",
    )
    http_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for webhook and search requests",
        ge=1,
        le=120,
    )

    # --- Backends ---
    chat_backend: Literal["webhook", "assistant"] = Field(
        default="webhook",
        description="Where free-text messages are answered (webhook or direct LLM)",
    )
    search_backend: Literal["http", "supabase"] = Field(
        default="http",
        description="Search through the REST endpoint or directly against Supabase",
    )

    # --- Search Parameters ---
    search_threshold: float = Field(
        default=0.5,
        description="Minimum similarity for vector search matches",
        ge=0,
        le=1,
    )
    search_limit: int = Field(
        default=12,
        description="Maximum results returned per search",
        ge=1,
        le=100,
    )

    # --- Assistant LLM (chat_backend=assistant) ---
    assistant_model: str = Field(
        default="gemini-2.5-flash",
        description="Model planning searches for free-text messages (gpt-* or gemini-*)",
    )
    llm_timeout: int = Field(
        default=30,
        description="Seconds allowed per planning attempt",
        ge=5,
        le=120,
    )
    llm_max_retries: int = Field(
        default=3,
        description="Planning attempts before falling back to keyword rules",
        ge=1,
        le=5,
    )
    llm_rate_limit: int = Field(
        default=3,
        description="Concurrent planning calls",
        ge=1,
        le=10,
    )

    # --- Query Embeddings (search_backend=supabase) ---
    embeddings_provider: Literal["google", "openai"] = Field(
        default="google",
        description="Provider embedding search queries",
    )
    embeddings_model: str = Field(
        default="models/text-embedding-004",
        description="Query embeddings model; must match the stored vectors",
    )
    embeddings_cache_size: int = Field(
        default=100,
        description="Cached query vectors per process (0 disables the cache)",
        ge=0,
        le=1000,
    )

    # --- Logging ---
    log_level: str = Field(default="INFO", description="Root log level")
    structured_logs: bool = Field(
        default=False, description="Emit JSON logs instead of key=value lines"
    )

    # --- Credentials (only needed by the matching backends) ---
    google_api_key: str | None = Field(default=None, description="Gemini API key")
    openai_api_key: str | None = Field(default=None, description="OpenAI API key")
    supabase_url: str | None = Field(default=None, description="Supabase project URL")
    supabase_service_key: str | None = Field(
        default=None, description="Supabase service role key"
    )

    class Config:
        """Pydantic config."""

        env_file = os.getenv("MEDIFLY_ENV_FILE", ".env")
        case_sensitive = False
        extra = "ignore"


_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Process-wide settings, created on first use.

    Raises:
        ValidationError: If an environment variable has an invalid value
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


# Non-secret values used at import time (logging setup)
settings = get_settings()

LOG_LEVEL = settings.log_level
STRUCTURED_LOGS = settings.structured_logs

# Credentials stay on the Settings object; read them through get_settings().


def check_env_vars() -> None:
    """
    Validates that the credentials required by the selected backends are set.

    Raises:
        ValueError: If a backend is selected without its credentials
    """
    current = get_settings()
    missing = []

    if current.search_backend == "supabase":
        if not current.supabase_url:
            missing.append("SUPABASE_URL")
        if not current.supabase_service_key:
            missing.append("SUPABASE_SERVICE_KEY")
        if current.embeddings_provider == "google" and not current.google_api_key:
            missing.append("GOOGLE_API_KEY")
        if current.embeddings_provider == "openai" and not current.openai_api_key:
            missing.append("OPENAI_API_KEY")

    if current.chat_backend == "assistant":
        if "gpt" in current.assistant_model and not current.openai_api_key:
            missing.append("OPENAI_API_KEY")
        if "gemini" in current.assistant_model and not current.google_api_key:
            missing.append("GOOGLE_API_KEY")

    if missing:
        raise ValueError(
            f"Missing environment variables: {', '.join(sorted(set(missing)))}"
        )
