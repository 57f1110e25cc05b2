"""
Integration tests for complete conversation flows.
The controller is built from settings and talks to fake webhook and search endpoints.
"""

import json
import httpx
import pytest
from unittest.mock import Mock

from medifly.builder import build_controller
from medifly.config import Settings
from medifly.models.domain import ActionItem

WEBHOOK_URL = "http://n8n.test/webhook/medifly-assistant"
SEARCH_URL = "http://app.test/api/vector-search"

HOSPITAL_ROWS = [
    {"id": "h1", "name": "Sunway Medical", "rating": 4.1, "similarity": 75, "country": "Malaysia"},
    {"id": "h2", "name": "Gleneagles Penang", "rating": 4.5, "similarity": 91, "country": "Malaysia"},
]


class FakeBackend:
    """Routes requests to the fake webhook and search endpoint and records them."""

    def __init__(self, webhook_reply=None, tool_status=200):
        self.webhook_reply = webhook_reply or {"output": "Hello"}
        self.tool_status = tool_status
        self.requests: list[tuple[str, dict]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append((str(request.url), body))

        if str(request.url) == SEARCH_URL:
            return httpx.Response(200, json={"results": HOSPITAL_ROWS})
        if body.get("action") == "tool_call":
            return httpx.Response(self.tool_status, json={"message": "Consultation booked"})
        return httpx.Response(200, json=self.webhook_reply)

    def calls_to(self, url: str) -> list[dict]:
        return [body for request_url, body in self.requests if request_url == url]


@pytest.fixture
def settings():
    return Settings(
        webhook_url=WEBHOOK_URL,
        search_endpoint_url=SEARCH_URL,
        chat_backend="webhook",
        search_backend="http",
    )


@pytest.mark.integration
class TestChatToSearchFlow:
    """Free text, then clicking the suggested actions."""

    @pytest.mark.asyncio
    async def test_message_then_search_action(self, settings):
        # Arrange
        backend = FakeBackend(
            webhook_reply={
                "output": json.dumps(
                    {
                        "message": "Here are some options",
                        "actions": [
                            {
                                "label": "Cardiology hospitals",
                                "type": "hospital",
                                "parameters": {"query": "cardiology"},
                                "filters": {"country": "Malaysia"},
                            },
                            {"label": "By country", "type": "action", "target": "search_by_country"},
                        ],
                    }
                )
            }
        )
        async with httpx.AsyncClient(transport=httpx.MockTransport(backend)) as http_client:
            controller = build_controller(http_client, Mock(), settings)

            # Act
            reply = await controller.submit_text("Show me hospitals for my heart")
            await controller.wait_for_background()
            search_turn = await controller.handle_action(reply.actions[0])
            again = await controller.handle_action(reply.actions[0])

        # Assert
        assert reply.text == "Here are some options"
        assert search_turn.text == (
            "I found 2 hospitals for you in Malaysia. The results are displayed on the right."
        )
        assert again.text == search_turn.text
        searches = backend.calls_to(SEARCH_URL)
        # one background search plus one action search; the repeat is cached
        assert len(searches) == 2
        assert searches[1] == {
            "query": "cardiology",
            "type": "hospital",
            "filters": {"country": "Malaysia", "threshold": 0.5, "limit": 12},
        }
        assert [r.id for r in controller.search_service.results] == ["h2", "h1"]
        assert [t.role for t in controller.turns] == ["user", "ai", "ai", "ai"]

    @pytest.mark.asyncio
    async def test_country_branch_then_country_search(self, settings):
        # Arrange
        backend = FakeBackend()
        async with httpx.AsyncClient(transport=httpx.MockTransport(backend)) as http_client:
            controller = build_controller(http_client, Mock(), settings)

            # Act
            picker = await controller.handle_action(
                ActionItem(kind="action", label="Search by country", target="search_by_country")
            )
            result = await controller.handle_action(picker.actions[1])

        # Assert
        assert picker.actions[1].label == "Hospitals in Malaysia"
        assert result.text.endswith("in Malaysia. The results are displayed on the right.")
        assert backend.calls_to(WEBHOOK_URL) == []


@pytest.mark.integration
class TestToolCallFlow:
    @pytest.mark.asyncio
    async def test_failed_tool_call_then_retry(self, settings):
        # Arrange
        backend = FakeBackend(tool_status=500)
        async with httpx.AsyncClient(transport=httpx.MockTransport(backend)) as http_client:
            controller = build_controller(http_client, Mock(), settings)

            action = ActionItem(
                kind="tool_call",
                label="Book consultation",
                target="book_consultation",
                parameters={"doctor_id": "d1"},
            )

            # Act
            error_turn = await controller.handle_action(action)
            backend.tool_status = 200
            retried = await controller.handle_action(error_turn.actions[0])

        # Assert
        assert error_turn.is_error is True
        assert len(error_turn.actions) == 1
        assert retried.text == "Consultation booked"
        tool_calls = backend.calls_to(WEBHOOK_URL)
        assert tool_calls == [
            {"action": "tool_call", "target": "book_consultation", "parameters": {"doctor_id": "d1"}},
        ] * 2
