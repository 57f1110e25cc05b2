"""
LLM access for the direct assistant backend.
One structured-output call per user message, guarded by a timeout, a concurrency cap and retries.
"""

import time
import asyncio
from typing import Type, TypeVar
from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_openai import ChatOpenAI
from langchain_google_genai import ChatGoogleGenerativeAI

from medifly.utils.logger import get_logger

logger = get_logger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class LLMTimeoutError(Exception):
    """Raised when a planning call runs past its timeout."""


class LLMError(Exception):
    """Raised when the model cannot produce a valid plan."""


def create_llm(model_name: str, api_key: str, temperature: float = 0) -> BaseChatModel:
    """
    Builds the chat model for a model name.

    Raises:
        ValueError: If the name is neither a Gemini nor a GPT model
    """
    if "gemini" in model_name:
        return ChatGoogleGenerativeAI(
            google_api_key=api_key, model=model_name, temperature=temperature
        )
    if "gpt" in model_name:
        return ChatOpenAI(api_key=api_key, model=model_name, temperature=temperature)
    raise ValueError(f"Unsupported assistant model '{model_name}' (expected gpt-* or gemini-*)")


def _model_name(model: BaseChatModel) -> str:
    return getattr(model, "model_name", None) or getattr(model, "model", None) or "unknown"


class LLMService:
    """
    Calls a chat model with a pydantic schema bound as its only tool
    and returns the validated tool arguments.
    """

    def __init__(
        self,
        model: BaseChatModel,
        max_retries: int = 3,
        timeout: int = 30,
        rate_limit: int = 3,
    ):
        """
        Args:
            model: Chat model from create_llm
            max_retries: Attempts per message, including the first
            timeout: Seconds allowed per attempt
            rate_limit: Concurrent model calls across sessions
        """
        self.model = model
        self.max_retries = max_retries
        self.timeout = timeout
        self.semaphore = asyncio.Semaphore(rate_limit)

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=2, max=10),
            retry=retry_if_exception_type((LLMError, LLMTimeoutError)),
            reraise=True,
        )

    async def invoke_structured(
        self,
        messages: list[BaseMessage] | str,
        output_schema: Type[SchemaT],
        timeout: int | float | None = None,
    ) -> SchemaT:
        """
        Asks the model for an instance of output_schema.

        Args:
            messages: Prompt messages (or a bare prompt string)
            output_schema: Pydantic model the tool arguments must satisfy
            timeout: Per-attempt timeout override in seconds

        Returns:
            Validated output_schema instance

        Raises:
            LLMTimeoutError: If the final attempt timed out
            LLMError: If every attempt failed or returned invalid arguments
        """
        timeout = timeout or self.timeout
        started = time.time()

        async for attempt in self._retrying():
            with attempt:
                return await self._attempt(
                    messages,
                    output_schema,
                    timeout,
                    attempt.retry_state.attempt_number,
                    started,
                )

    async def _attempt(
        self,
        messages: list[BaseMessage] | str,
        output_schema: Type[SchemaT],
        timeout: int | float,
        attempt_number: int,
        started: float,
    ) -> SchemaT:
        schema_name = output_schema.__name__
        logger.info(
            "planner_llm_call_started",
            schema=schema_name,
            attempt=attempt_number,
            model=_model_name(self.model),
        )

        try:
            async with self.semaphore:
                response = await asyncio.wait_for(
                    self.model.ainvoke(messages, tools=[output_schema]), timeout=timeout
                )
        except asyncio.TimeoutError as e:
            logger.error(
                "planner_llm_timeout",
                attempt=attempt_number,
                timeout=timeout,
                elapsed=time.time() - started,
            )
            raise LLMTimeoutError(f"{schema_name} call exceeded {timeout}s") from e
        except Exception as e:
            logger.error(
                "planner_llm_call_failed", exc_info=True, attempt=attempt_number, error=str(e)
            )
            raise LLMError(f"{schema_name} call failed: {e}") from e

        tool_calls = getattr(response, "tool_calls", None)
        if not tool_calls:
            logger.warning("planner_llm_no_tool_call", attempt=attempt_number)
            raise LLMError(f"Model answered without a {schema_name} tool call")

        try:
            parsed = output_schema.model_validate(tool_calls[0]["args"])
        except ValidationError as e:
            logger.warning(
                "planner_llm_invalid_arguments", attempt=attempt_number, error=str(e)
            )
            raise LLMError(f"{schema_name} arguments failed validation: {e}") from e

        self._log_usage(response, time.time() - started)
        return parsed

    def _log_usage(self, response: BaseMessage, elapsed: float) -> None:
        usage = getattr(response, "usage_metadata", None) or {}
        logger.info(
            "planner_llm_call_completed",
            elapsed=elapsed,
            input_tokens=usage.get("input_tokens"),
            output_tokens=usage.get("output_tokens"),
        )
