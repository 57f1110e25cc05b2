"""
Unit tests for the response normalizer.
Tests nested JSON decoding, fallbacks, action mapping, and idempotence.
"""

import json
import pytest

from medifly.models.domain import ActionItem, SearchFilters
from medifly.models.schemas import NormalizationFallback, WebhookPayload
from medifly.services.response_normalizer import (
    decode_payload,
    normalize_response,
    to_action_item,
)


class TestNestedOutput:
    """Tests for payloads carrying JSON inside the `output` string."""

    def test_nested_json_output_is_decoded(self):
        """Should read message and actions from the encoded output."""
        # Arrange
        payload = {
            "output": '{"message":"hi","actions":[{"label":"Go","type":"navigate","target":"x"}]}'
        }

        # Act
        result = normalize_response(payload)

        # Assert
        assert result.message == "hi"
        assert len(result.actions) == 1
        action = result.actions[0]
        assert action.kind == "navigate"
        assert action.target == "x"
        assert action.query == "Go"
        assert action.label == "Go"

    def test_malformed_output_falls_back_to_text(self):
        """Should use the raw output string as message without raising."""
        # Act
        result = normalize_response({"output": "not json {"})

        # Assert
        assert result.message == "not json {"
        assert result.actions is None

    def test_fallback_keeps_top_level_actions(self):
        """Plain-text output still picks up top-level actions."""
        # Arrange
        payload = {"output": "Pick one", "actions": [{"label": "Hospitals", "type": "hospital"}]}

        # Act
        result = normalize_response(payload)

        # Assert
        assert result.message == "Pick one"
        assert result.actions[0].kind == "hospital"

    def test_code_fenced_output_is_parsed(self):
        """Should strip markdown code fences around JSON."""
        # Arrange
        payload = {"output": '```json\n{"message": "fenced"}\n```'}

        # Act
        result = normalize_response(payload)

        # Assert
        assert result.message == "fenced"

    def test_output_json_string_literal_is_message(self):
        """A JSON-encoded string is used as the message."""
        assert normalize_response({"output": '"just text"'}).message == "just text"

    def test_output_message_takes_priority_over_top_level(self):
        """Parsed output message wins over the top-level message."""
        # Arrange
        payload = {"output": '{"message": "inner"}', "message": "outer"}

        # Act
        result = normalize_response(payload)

        # Assert
        assert result.message == "inner"

    def test_output_without_message_uses_top_level(self):
        """Top-level message is used when the parsed output has none."""
        # Arrange
        payload = {"output": '{"actions": []}', "message": "outer"}

        # Act
        result = normalize_response(payload)

        # Assert
        assert result.message == "outer"
        assert result.actions is None


class TestPayloadShapes:
    """Tests for the heterogeneous upstream shapes."""

    def test_direct_message_and_actions(self):
        """Should accept a payload that is already message + actions."""
        # Arrange
        payload = {
            "message": "Here you go",
            "actions": [{"text": "Find doctors", "type": "doctor"}],
        }

        # Act
        result = normalize_response(payload)

        # Assert
        assert result.message == "Here you go"
        assert result.actions[0].label == "Find doctors"
        assert result.actions[0].query == "Find doctors"

    def test_empty_payload(self):
        """Should produce an empty message and no actions."""
        result = normalize_response({})

        assert result.message == ""
        assert result.actions is None

    def test_none_payload(self):
        assert normalize_response(None).message == ""

    def test_success_envelope_is_unwrapped(self):
        """Should read `data` from a {success, data} envelope."""
        # Arrange
        payload = {"success": True, "data": {"message": "wrapped"}}

        # Act
        result = normalize_response(payload)

        # Assert
        assert result.message == "wrapped"

    def test_single_item_list_is_unwrapped(self):
        """Webhooks returning `[{"output": ...}]` are handled."""
        # Arrange
        payload = [{"output": json.dumps({"message": "from list"})}]

        # Act
        result = normalize_response(payload)

        # Assert
        assert result.message == "from list"

    def test_plain_text_payload(self):
        """A bare string body becomes the message."""
        result = normalize_response("Hello there")

        assert result.message == "Hello there"
        assert result.actions is None

    def test_empty_action_list_becomes_none(self):
        """Output guarantee: actions are None or non-empty."""
        result = normalize_response({"message": "x", "actions": []})

        assert result.actions is None

    def test_non_object_entries_are_dropped(self):
        """Only object entries produce actions."""
        # Arrange
        payload = {"message": "x", "actions": ["junk", 3, {"label": "Ok", "type": "action"}]}

        # Act
        result = normalize_response(payload)

        # Assert
        assert len(result.actions) == 1
        assert result.actions[0].label == "Ok"

    def test_only_invalid_entries_yield_no_actions(self):
        result = normalize_response({"message": "x", "actions": ["junk"]})

        assert result.actions is None


class TestDecodePayload:
    """Tests for the schema-validation boundary."""

    def test_object_decodes_to_webhook_payload(self):
        decoded = decode_payload({"message": "hi", "extra": 1})

        assert isinstance(decoded, WebhookPayload)
        assert decoded.message == "hi"

    def test_non_string_message_is_ignored(self):
        decoded = decode_payload({"message": {"nested": True}})

        assert isinstance(decoded, WebhookPayload)
        assert decoded.message is None

    def test_number_decodes_to_fallback(self):
        decoded = decode_payload(42)

        assert isinstance(decoded, NormalizationFallback)
        assert decoded.text == "42"


class TestActionMapping:
    """Tests for raw action → ActionItem mapping."""

    def test_query_from_parameters(self):
        """parameters.query is preferred over the label."""
        # Arrange
        raw = {"label": "Cardiology", "type": "hospital", "parameters": {"query": "heart hospitals"}}

        # Act
        action = to_action_item(raw)

        # Assert
        assert action.query == "heart hospitals"
        assert action.parameters == {"query": "heart hospitals"}

    def test_explicit_query_is_kept(self):
        action = to_action_item({"text": "More", "type": "doctor", "query": "cardiologist"})

        assert action.query == "cardiologist"

    def test_missing_label_and_query(self):
        """Should still be fully populated with empty strings."""
        action = to_action_item({"type": "tool_call", "target": "book"})

        assert action.label == ""
        assert action.query == ""
        assert action.target == "book"

    def test_unknown_type_becomes_action(self):
        action = to_action_item({"label": "Open", "type": "link"})

        assert action.kind == "action"

    def test_filters_are_decoded(self):
        """camelCase wire filters map to SearchFilters."""
        # Arrange
        raw = {
            "text": "Halal hospitals",
            "type": "hospital",
            "filters": {"country": "Malaysia", "isHalal": True, "minRating": 4},
        }

        # Act
        action = to_action_item(raw)

        # Assert
        assert action.filters == SearchFilters(country="Malaysia", is_halal=True, min_rating=4)

    def test_invalid_filters_are_dropped(self):
        action = to_action_item({"label": "x", "type": "hospital", "filters": {"minRating": 99}})

        assert action.filters is None

    def test_non_dict_returns_none(self):
        assert to_action_item("nope") is None


class TestIdempotence:
    """Normalizing canonical payloads must not change them."""

    @pytest.fixture
    def canonical_payload(self):
        return {
            "message": "I found 2 hospitals for you.",
            "actions": [
                {"label": "Show doctors", "type": "doctor", "query": "cardiology"},
                {"label": "Go", "type": "navigate", "target": "hospitals", "query": "Go"},
            ],
        }

    def test_normalizing_twice_yields_identical_output(self, canonical_payload):
        # Act
        first = normalize_response(canonical_payload)
        second = normalize_response(canonical_payload)

        # Assert
        assert first == second

    def test_renormalizing_dumped_output_is_stable(self, canonical_payload):
        """normalize(to_payload(normalize(p))) == normalize(p)."""
        # Arrange
        first = normalize_response(canonical_payload)

        # Act
        second = normalize_response(first.to_payload())

        # Assert
        assert second == first

    def test_round_trip_keeps_filters(self):
        # Arrange
        original = normalize_response(
            {
                "message": "m",
                "actions": [
                    {
                        "label": "Halal",
                        "type": "hospital",
                        "query": "hospitals",
                        "filters": {"isHalal": True},
                    }
                ],
            }
        )

        # Act
        again = normalize_response(original.to_payload())

        # Assert
        assert again.actions[0] == ActionItem(
            kind="hospital",
            label="Halal",
            query="hospitals",
            filters=SearchFilters(is_halal=True),
        )
