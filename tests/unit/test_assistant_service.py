"""
Unit tests for the direct assistant backend and the LLM service.
The chat model is mocked; no API keys are needed.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, Mock
from langchain_core.messages import AIMessage

from medifly.models.schemas import SearchPlan
from medifly.services.assistant_service import AssistantService
from medifly.services.llm_service import LLMError, LLMService, LLMTimeoutError
from medifly.services.response_normalizer import normalize_response

PLAN_ARGS = {
    "response_text": "I'll look for cardiology hospitals in Malaysia.",
    "search_type": "hospital",
    "search_query": "cardiology hospital Malaysia",
    "filters": {"specialty": "cardiology", "country": "Malaysia"},
    "actions": [
        {
            "text": "Halal hospitals",
            "type": "hospital",
            "query": "cardiology",
            "filters": {"isHalal": True},
        }
    ],
}


def tool_call_message(args: dict) -> AIMessage:
    return AIMessage(
        content="",
        tool_calls=[{"name": "SearchPlan", "args": args, "id": "call_1"}],
    )


class TestLLMService:
    """Tests for structured-output calls (single attempt, no backoff waits)."""

    @pytest.mark.asyncio
    async def test_tool_call_args_are_validated(self):
        # Arrange
        model = Mock()
        model.ainvoke = AsyncMock(return_value=tool_call_message(PLAN_ARGS))
        service = LLMService(model=model, max_retries=1)

        # Act
        plan = await service.invoke_structured("hi", SearchPlan)

        # Assert
        assert isinstance(plan, SearchPlan)
        assert plan.filters["country"] == "Malaysia"
        assert model.ainvoke.await_args.kwargs["tools"] == [SearchPlan]

    @pytest.mark.asyncio
    async def test_missing_tool_call_raises(self):
        model = Mock()
        model.ainvoke = AsyncMock(return_value=AIMessage(content="plain answer"))
        service = LLMService(model=model, max_retries=1)

        with pytest.raises(LLMError):
            await service.invoke_structured("hi", SearchPlan)

    @pytest.mark.asyncio
    async def test_invalid_args_raise(self):
        model = Mock()
        model.ainvoke = AsyncMock(return_value=tool_call_message({"search_type": "clinic"}))
        service = LLMService(model=model, max_retries=1)

        with pytest.raises(LLMError):
            await service.invoke_structured("hi", SearchPlan)

    @pytest.mark.asyncio
    async def test_timeout(self):
        # Arrange
        async def never_answers(*args, **kwargs):
            await asyncio.sleep(10)

        model = Mock()
        model.ainvoke = never_answers
        service = LLMService(model=model, max_retries=1)

        # Act / Assert
        with pytest.raises(LLMTimeoutError):
            await service.invoke_structured("hi", SearchPlan, timeout=0.01)


class TestAssistantService:
    """Tests for planning with and without an LLM."""

    @pytest.mark.asyncio
    async def test_rule_based_without_llm(self):
        # Act
        plan = await AssistantService().plan("heart doctor in Singapore")

        # Assert
        assert plan.search_type == "doctor"
        assert len(plan.actions) == 3

    @pytest.mark.asyncio
    async def test_llm_plan_is_used(self):
        # Arrange
        llm_service = Mock(spec=LLMService)
        llm_service.invoke_structured.return_value = SearchPlan.model_validate(PLAN_ARGS)
        assistant = AssistantService(llm_service)

        # Act
        plan = await assistant.plan("cardiology in Malaysia")

        # Assert
        assert plan.response_text == PLAN_ARGS["response_text"]
        messages, schema = llm_service.invoke_structured.await_args.args
        assert schema is SearchPlan
        assert 'User query: "cardiology in Malaysia"' in messages[1].content

    @pytest.mark.asyncio
    async def test_llm_failure_falls_back(self):
        # Arrange
        llm_service = Mock(spec=LLMService)
        llm_service.invoke_structured.side_effect = LLMTimeoutError("slow")
        assistant = AssistantService(llm_service)

        # Act
        plan = await assistant.plan("halal hospitals in Malaysia")

        # Assert
        assert plan.response_text.startswith("I'll search for hospitals in Malaysia")

    @pytest.mark.asyncio
    async def test_respond_payload_normalizes_into_actions(self):
        # Arrange
        llm_service = Mock(spec=LLMService)
        llm_service.invoke_structured.return_value = SearchPlan.model_validate(PLAN_ARGS)

        # Act
        payload = await AssistantService(llm_service).respond("cardiology")
        reply = normalize_response(payload)

        # Assert
        assert reply.message == PLAN_ARGS["response_text"]
        action = reply.actions[0]
        assert action.label == "Halal hospitals"
        assert action.query == "cardiology"
        assert action.filters.is_halal is True
