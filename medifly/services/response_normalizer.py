"""
Response normalizer turning loosely typed webhook/assistant payloads
into a canonical message plus actions.
Never raises on malformed upstream data; it degrades to plain text instead.
"""

import re
import json
from typing import Any
from pydantic import ValidationError

from medifly.models.domain import ActionItem, SearchFilters
from medifly.models.schemas import (
    NormalizationFallback,
    NormalizedResponse,
    WebhookPayload,
)
from medifly.utils.logger import get_logger

logger = get_logger(__name__)

ACTION_KINDS = {"hospital", "doctor", "navigate", "action", "tool_call"}
_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)
_PAYLOAD_KEYS = ("output", "message", "actions")


def decode_payload(raw: Any) -> WebhookPayload | NormalizationFallback:
    """
    Validates an upstream payload into a WebhookPayload.

    Unwraps single-item lists (`[{"output": ...}]`) and `{success, data}`
    envelopes first. Bare strings and other non-object values become a
    NormalizationFallback carrying their text.
    """
    if raw is None:
        return WebhookPayload()

    if isinstance(raw, list) and raw and isinstance(raw[0], dict):
        raw = raw[0]

    if isinstance(raw, dict) and not any(key in raw for key in _PAYLOAD_KEYS):
        data = raw.get("data")
        if isinstance(data, dict):
            raw = data

    if isinstance(raw, str):
        return NormalizationFallback(text=raw, reason="payload_is_text")
    if not isinstance(raw, dict):
        return NormalizationFallback(
            text=json.dumps(raw, ensure_ascii=False, default=str),
            reason="payload_not_object",
        )

    try:
        return WebhookPayload.model_validate(raw)
    except ValidationError as e:
        return NormalizationFallback(text=json.dumps(raw, default=str), reason=str(e))


def parse_output(output: str) -> dict[str, Any] | NormalizationFallback:
    """
    Parses the JSON-encoded `output` field.
    A JSON string literal is treated as a bare message.
    """
    text = output.strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        parsed = json.loads(text)
    except ValueError as e:
        return NormalizationFallback(text=output, reason=f"invalid_json: {e}")

    if isinstance(parsed, dict):
        return parsed
    if isinstance(parsed, str):
        return {"message": parsed}
    return NormalizationFallback(text=output, reason="output_not_object")


def to_action_item(raw: Any) -> ActionItem | None:
    """
    Maps one upstream action entry onto an ActionItem.

    The query falls back from `query` to `parameters.query` to the label, so
    every action has something to search for. Unknown types become `action`.
    Returns None for entries that are not objects.
    """
    if not isinstance(raw, dict):
        logger.warning("action_entry_dropped", entry_type=type(raw).__name__)
        return None

    label = raw.get("label") or raw.get("text") or ""
    if not isinstance(label, str):
        label = str(label)

    kind = raw.get("type") or raw.get("kind")
    if kind not in ACTION_KINDS:
        if kind is not None:
            logger.warning("unknown_action_type", action_type=kind, label=label)
        kind = "action"

    parameters = raw.get("parameters") if isinstance(raw.get("parameters"), dict) else None
    target = raw.get("target") if isinstance(raw.get("target"), str) else None

    query = raw.get("query") or (parameters or {}).get("query") or label or ""
    if not isinstance(query, str):
        query = str(query)

    filters = None
    if isinstance(raw.get("filters"), dict):
        try:
            filters = SearchFilters.model_validate(raw["filters"])
        except ValidationError:
            logger.warning("action_filters_dropped", label=label)

    return ActionItem(
        kind=kind,
        label=label,
        query=query,
        filters=filters,
        target=target,
        parameters=parameters,
    )


def normalize_response(raw: Any) -> NormalizedResponse:
    """
    Converts an upstream payload into `{message, actions}`.

    Message priority: parsed `output.message`, unparseable `output` text,
    top-level `message`, empty string. Actions priority: parsed
    `output.actions`, top-level `actions`. An empty action list becomes None.

    Args:
        raw: Decoded JSON (or text) from the webhook or the assistant

    Returns:
        NormalizedResponse
    """
    decoded = decode_payload(raw)
    if isinstance(decoded, NormalizationFallback):
        logger.warning("normalization_fallback", reason=decoded.reason)
        return NormalizedResponse(message=decoded.text)

    parsed: dict[str, Any] = {}
    fallback_text = ""
    if decoded.output is not None:
        result = parse_output(decoded.output)
        if isinstance(result, NormalizationFallback):
            logger.warning("normalization_fallback", reason=result.reason)
            fallback_text = result.text
        else:
            parsed = result

    parsed_message = parsed.get("message") if isinstance(parsed.get("message"), str) else None
    message = parsed_message or fallback_text or decoded.message or ""

    raw_actions = parsed.get("actions") if isinstance(parsed.get("actions"), list) else None
    if raw_actions is None:
        raw_actions = decoded.actions

    actions = None
    if raw_actions:
        items = tuple(
            item for item in (to_action_item(entry) for entry in raw_actions) if item
        )
        actions = items or None

    return NormalizedResponse(message=message, actions=actions)
