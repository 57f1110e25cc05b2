"""
Boundary schemas for upstream payloads and LLM structured output.
Upstream shapes are decoded here before anything else touches them.
"""

from typing import Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from medifly.models.domain import ActionItem


class WebhookPayload(BaseModel):
    """
    Decoded conversational webhook (or assistant) response.
    Any of the fields may be missing; unknown fields are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    output: Optional[str] = None
    message: Optional[str] = None
    actions: Optional[list[Any]] = None

    @field_validator("message", mode="before")
    @classmethod
    def _message_as_text(cls, value: Any) -> Optional[str]:
        if value is None or isinstance(value, str):
            return value
        return None

    @field_validator("output", mode="before")
    @classmethod
    def _output_as_text(cls, value: Any) -> Optional[str]:
        if value is None or isinstance(value, str):
            return value
        return None

    @field_validator("actions", mode="before")
    @classmethod
    def _actions_as_list(cls, value: Any) -> Optional[list[Any]]:
        return value if isinstance(value, list) else None


class NormalizationFallback(BaseModel):
    """Upstream text that could not be decoded as structured JSON."""

    text: str
    reason: str


class NormalizedResponse(BaseModel):
    """
    Canonical assistant reply: a message and, optionally, clickable actions.
    `actions` is never an empty tuple.
    """

    model_config = ConfigDict(frozen=True)

    message: str = ""
    actions: Optional[tuple[ActionItem, ...]] = None

    def to_payload(self) -> dict[str, Any]:
        """Dump back into the raw upstream shape (type instead of kind)."""
        payload: dict[str, Any] = {"message": self.message}
        if self.actions:
            payload["actions"] = [
                {
                    "type": action.kind,
                    "label": action.label,
                    "query": action.query,
                    "target": action.target,
                    "parameters": action.parameters,
                    "filters": (
                        action.filters.to_wire() if action.filters is not None else None
                    ),
                }
                for action in self.actions
            ]
        return payload


class PlannedAction(BaseModel):
    """Follow-up suggestion produced by the assistant LLM."""

    text: str = Field(description="Button text, e.g. 'Find hospitals in Singapore'")
    type: Literal["hospital", "doctor"] = Field(description="What this action searches for")
    query: str = Field(description="Search query for this action")
    filters: dict[str, Any] = Field(
        default_factory=dict, description="Filters object for this action"
    )


class SearchPlan(BaseModel):
    """
    Structured output of the assistant LLM for a free-text message.
    """

    response_text: str = Field(
        description="A natural, helpful response of 2-3 sentences",
        max_length=1000,
    )
    search_type: Literal["hospital", "doctor"] = Field(
        description="Whether the user is looking for hospitals or doctors"
    )
    search_query: str = Field(
        description="Optimized query for vector similarity search",
        max_length=500,
    )
    filters: dict[str, Any] = Field(
        default_factory=dict,
        description=(
            "Optional filters: specialty, country, city, minExperience, "
            "isHalal, minRating"
        ),
    )
    actions: list[PlannedAction] = Field(
        default_factory=list, description="Up to three follow-up actions"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "response_text": "I'll search for hospitals specializing in cardiology in Malaysia.",
                "search_type": "hospital",
                "search_query": "cardiology hospital Malaysia",
                "filters": {"specialty": "cardiology", "country": "Malaysia"},
                "actions": [],
            }
        }
    )

    def to_payload(self) -> dict[str, Any]:
        """Render as a webhook-shaped payload for the response normalizer."""
        return {
            "message": self.response_text,
            "actions": [
                {
                    "text": action.text,
                    "type": action.type,
                    "query": action.query,
                    "filters": action.filters,
                }
                for action in self.actions
            ],
        }
