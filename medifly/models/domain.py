"""
Domain models for the chat-to-search assistant.
Conversation turns, actions, search filters and search results are immutable values.
"""

import json
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union
from pydantic import BaseModel, ConfigDict, Field

SearchType = Literal["hospital", "doctor"]
ActionKind = Literal["hospital", "doctor", "navigate", "action", "tool_call"]
Role = Literal["ai", "user"]

SEARCH_TYPES: tuple[str, ...] = ("hospital", "doctor")


class SearchFilters(BaseModel):
    """
    Optional narrowing criteria for a hospital or doctor search.
    Serialized with camelCase names on the wire (minExperience, isHalal, minRating).
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    specialty: str | None = None
    location: str | None = None
    country: str | None = None
    city: str | None = None
    min_experience: int | None = Field(default=None, alias="minExperience", ge=0)
    is_halal: bool | None = Field(default=None, alias="isHalal")
    min_rating: float | None = Field(default=None, alias="minRating", ge=0, le=5)

    def to_wire(self) -> dict[str, Any]:
        """Wire representation without unset values."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def canonical_json(self) -> str:
        """Key-sorted compact JSON, equal for structurally equal filters."""
        return canonical_filters_json(self)

    def merged(self, **changes: Any) -> "SearchFilters":
        """Revalidated copy with the given fields replaced (by field name)."""
        return type(self).model_validate({**self.model_dump(), **changes})


def canonical_filters_json(filters: SearchFilters | None) -> str:
    wire = filters.to_wire() if filters is not None else {}
    return json.dumps(wire, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class ActionItem(BaseModel):
    """
    A follow-up the user can click, emitted by the assistant or by the engine itself.
    """

    model_config = ConfigDict(frozen=True)

    kind: ActionKind
    label: str
    query: str | None = None
    filters: SearchFilters | None = None
    target: str | None = None
    parameters: dict[str, Any] | None = None


class ConversationTurn(BaseModel):
    """One chat bubble. Never modified once appended to a conversation."""

    model_config = ConfigDict(frozen=True)

    role: Role
    text: str
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    actions: tuple[ActionItem, ...] | None = None
    is_error: bool = False


class _SearchResultBase(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )

    id: str
    name: str
    rating: float = 0.0
    similarity: float = 0.0


class HospitalResult(_SearchResultBase):
    type: Literal["hospital"] = "hospital"
    location: str = ""
    city: str = ""
    country: str = ""
    specialties: list[str] = Field(default_factory=list)
    more_specialties: int = Field(default=0, alias="moreSpecialties")
    doctors_available: int = Field(default=0, alias="doctorsAvailable")
    price_range: str = Field(default="Contact for pricing", alias="priceRange")
    is_halal: bool | None = Field(default=None, alias="isHalal")
    website: str | None = None
    phone: str | None = None
    description: str | None = None
    address: str | None = None


class DoctorResult(_SearchResultBase):
    type: Literal["doctor"] = "doctor"
    specialty: str = "General Practice"
    hospital: str = "Independent Practice"
    location: str = "Multiple Locations"
    experience_years: int = Field(default=0, alias="experienceYears")
    experience: str = ""
    bio: str | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")
    languages: list[str] = Field(default_factory=list)
    phone: str | None = None
    email: str | None = None


SearchResult = Annotated[
    Union[HospitalResult, DoctorResult], Field(discriminator="type")
]


def result_route(result: HospitalResult | DoctorResult) -> str:
    """Client-side route of a result card's detail page."""
    return f"/{result.type}s/{result.id}"
