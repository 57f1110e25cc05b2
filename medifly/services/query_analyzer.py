"""
Rule-based query analysis used when no LLM is available or the LLM fails.
Detects search type, specialty, location and preference keywords.
"""

import re
from typing import Any

from medifly.models.domain import SearchFilters, SearchType
from medifly.models.schemas import PlannedAction, SearchPlan
from medifly.utils.responses import load_responses

RESPONSES = load_responses()

# Words that route a free-text message's background search to doctors
DOCTOR_KEYWORDS = ("doctor", "specialist", "surgeon")
PROVIDER_KEYWORDS = ("hospital", "doctor")

SPECIALTY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "cardiology": ("heart", "cardiac", "cardiology", "cardiovascular"),
    "oncology": ("cancer", "oncology", "tumor", "chemotherapy"),
    "neurology": ("brain", "neurology", "neurological", "stroke"),
    "orthopedics": ("bone", "joint", "orthopedic", "fracture", "spine"),
    "pediatrics": ("child", "pediatric", "children", "baby", "infant"),
    "obstetrics": ("pregnancy", "obstetric", "gynecology", "birth", "maternal"),
    "dermatology": ("skin", "dermatology", "acne", "rash"),
    "ophthalmology": ("eye", "ophthalmology", "vision", "cataract"),
    "ent": ("ear", "nose", "throat", "ent", "hearing"),
    "gastroenterology": ("stomach", "digestive", "gastro", "intestinal"),
    "urology": ("urinary", "kidney", "bladder", "urology"),
    "psychiatry": ("mental", "psychiatry", "depression", "anxiety"),
    "endocrinology": ("diabetes", "thyroid", "hormone", "endocrine"),
    "pulmonology": ("lung", "respiratory", "breathing", "pulmonary"),
}

COUNTRIES = ("Malaysia", "Singapore", "Thailand", "Indonesia")
CITIES = ("Kuala Lumpur", "Singapore", "Bangkok", "Jakarta", "Penang", "Johor Bahru")

EXPERIENCED_MIN_YEARS = 10


def mentions_provider(text: str) -> bool:
    """True when a message talks about hospitals or doctors."""
    lower = text.lower()
    return any(word in lower for word in PROVIDER_KEYWORDS)


def classify_search_type(text: str) -> SearchType:
    lower = text.lower()
    return "doctor" if any(word in lower for word in DOCTOR_KEYWORDS) else "hospital"


def _keyword_pattern(keyword: str) -> re.Pattern:
    # short keywords must be whole words ("ent" must not match "treatment")
    if len(keyword) <= 3:
        return re.compile(rf"\b{re.escape(keyword)}s?\b")
    return re.compile(rf"\b{re.escape(keyword)}")


_SPECIALTY_PATTERNS = {
    specialty: [_keyword_pattern(keyword) for keyword in keywords]
    for specialty, keywords in SPECIALTY_KEYWORDS.items()
}


def detect_specialty(text: str) -> str | None:
    """First specialty in table order with a matching keyword."""
    lower = text.lower()
    for specialty, patterns in _SPECIALTY_PATTERNS.items():
        if any(pattern.search(lower) for pattern in patterns):
            return specialty
    return None


def extract_filters(text: str) -> SearchFilters:
    """Builds search filters from keywords found in a message."""
    lower = text.lower()
    country = next((c for c in COUNTRIES if c.lower() in lower), None)
    city = next((c for c in CITIES if c.lower() in lower), None)
    is_halal = "halal" in lower or "muslim" in lower
    experienced = any(word in lower for word in ("experienced", "senior", "expert"))

    return SearchFilters(
        specialty=detect_specialty(text),
        country=country,
        city=city,
        is_halal=True if is_halal else None,
        min_experience=EXPERIENCED_MIN_YEARS if experienced else None,
    )


def _wire(**values: Any) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value}


def build_fallback_plan(message: str) -> SearchPlan:
    """
    Produces a search plan without an LLM.

    Args:
        message: Free-text user message

    Returns:
        SearchPlan with a templated response and three follow-up actions
    """
    templates = RESPONSES["assistant"]["fallback"]
    lower = message.lower()

    is_doctor_search = any(
        word in lower for word in ("doctor", "specialist", "physician", "surgeon")
    )
    search_type: SearchType = "doctor" if is_doctor_search else "hospital"
    filters = extract_filters(message)
    specialty = filters.specialty
    country = filters.country

    if search_type == "doctor":
        subject = f"{specialty} specialists" if specialty else "doctors"
        text = templates["doctor_intro"].format(subject=subject)
        if country:
            text += templates["in_country"].format(country=country)
        if filters.min_experience:
            text += templates["experienced"]
        text += templates["doctor_outro"]
    else:
        subject = f"hospitals specializing in {specialty}" if specialty else "hospitals"
        text = templates["hospital_intro"].format(subject=subject)
        if country:
            text += templates["in_country"].format(country=country)
        if filters.is_halal:
            text += templates["halal"]
        text += templates["hospital_outro"]

    actions = [
        PlannedAction(
            text=templates["show_more"].format(
                subject=specialty or search_type,
                location=f" in {country}" if country else "",
            ),
            type=search_type,
            query=f"{specialty or search_type} {country or ''}".strip(),
            filters=filters.to_wire(),
        ),
        PlannedAction(
            text=(
                templates["find_doctors"]
                if search_type == "hospital"
                else templates["view_affiliations"]
            ),
            type="doctor" if search_type == "hospital" else "hospital",
            query=specialty or "general",
            filters=_wire(specialty=specialty, country=country),
        ),
        PlannedAction(
            text=templates["other_specialties"],
            type="hospital",
            query=f"hospitals in {country}" if country else "all hospitals",
            filters=_wire(country=country),
        ),
    ]

    return SearchPlan(
        response_text=text,
        search_type=search_type,
        search_query=message,
        filters=filters.to_wire(),
        actions=actions,
    )
