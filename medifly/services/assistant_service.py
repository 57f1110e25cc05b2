"""
Direct assistant backend: answers free-text messages with an LLM search plan,
falling back to rule-based analysis when the LLM is unavailable or fails.
"""

from typing import Any
from langchain_core.messages import HumanMessage, SystemMessage

from medifly.models.schemas import SearchPlan
from medifly.services.llm_service import LLMError, LLMService, LLMTimeoutError
from medifly.services.query_analyzer import build_fallback_plan
from medifly.utils.responses import load_responses
from medifly.utils.logger import get_logger

logger = get_logger(__name__)
RESPONSES = load_responses()


class AssistantService:
    """
    Produces webhook-shaped payloads (`{message, actions}`) for chat messages.
    """

    def __init__(self, llm_service: LLMService | None = None):
        """
        Args:
            llm_service: LLM used for planning; None means rule-based only
        """
        self.llm_service = llm_service

    async def plan(self, message: str) -> SearchPlan:
        """
        Builds a search plan for a user message.

        Args:
            message: Free-text user message

        Returns:
            SearchPlan from the LLM, or the rule-based plan on LLM failure
        """
        if self.llm_service is None:
            logger.info("assistant_plan_rule_based", reason="no_llm")
            return build_fallback_plan(message)

        prompts = RESPONSES["assistant"]
        messages = [
            SystemMessage(content=prompts["system_prompt"]),
            HumanMessage(content=prompts["prompt_template"].format(user_message=message)),
        ]

        try:
            plan = await self.llm_service.invoke_structured(messages, SearchPlan)
        except (LLMError, LLMTimeoutError) as e:
            logger.warning("assistant_plan_fallback", error=str(e))
            return build_fallback_plan(message)

        logger.info(
            "assistant_plan_completed",
            search_type=plan.search_type,
            actions=len(plan.actions),
        )
        return plan

    async def respond(self, message: str) -> dict[str, Any]:
        """Plan for the message and render it as a normalizer-ready payload."""
        plan = await self.plan(message)
        return plan.to_payload()
