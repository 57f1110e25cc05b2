"""
Supabase vector search for hospitals and doctors.
Embeds the query, calls the matching RPC and shapes rows into search results.
"""

import asyncio
from typing import Any
from supabase import Client
from langchain_core.embeddings import Embeddings

from medifly.models.domain import DoctorResult, HospitalResult, SearchResult, SearchType
from medifly.services.search_client import SearchRequestError
from medifly.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_THRESHOLD = 0.5
DEFAULT_LIMIT = 12


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _percentage(similarity: Any) -> float:
    return float(round((similarity or 0) * 100))


def transform_hospital_row(row: dict[str, Any]) -> HospitalResult:
    """
    Shapes a `search_hospitals_vector` row for result cards.
    Shows the first two service categories and counts the rest.
    """
    services = _as_list(row.get("services"))

    categories: list[str] = []
    for service in services:
        category = service.get("category")
        if category and category not in categories:
            categories.append(category)

    prices = [
        s["base_price"] for s in services if s.get("base_price") and s["base_price"] > 0
    ]
    price_range = (
        f"Starting from ${min(prices):,.0f}" if prices else "Contact for pricing"
    )

    return HospitalResult(
        id=row["id"],
        name=row.get("hospital_name") or "",
        location=", ".join(p for p in (row.get("city"), row.get("country")) if p),
        city=row.get("city") or "",
        country=row.get("country") or "",
        specialties=categories[:2],
        more_specialties=max(0, len(categories) - 2),
        doctors_available=int(row.get("doctor_count") or 0),
        price_range=price_range,
        rating=float(row.get("rating") or 0),
        is_halal=row.get("is_halal"),
        website=row.get("website"),
        phone=row.get("contact_number"),
        description=row.get("description"),
        address=row.get("address"),
        similarity=_percentage(row.get("similarity")),
    )


def transform_doctor_row(row: dict[str, Any]) -> DoctorResult:
    """
    Shapes a `search_doctors_vector` row, preferring the primary hospital and service.
    """
    hospitals = _as_list(row.get("hospitals"))
    services = _as_list(row.get("services"))

    primary_hospital = next((h for h in hospitals if h.get("is_primary")), None) or (
        hospitals[0] if hospitals else None
    )
    primary_service = next((s for s in services if s.get("is_primary")), None) or (
        services[0] if services else None
    )

    if primary_hospital:
        location = (
            f"{primary_hospital.get('city') or ''}, {primary_hospital.get('country') or ''}"
        ).strip()
    else:
        location = "Multiple Locations"

    experience_years = int(row.get("experience_years") or 0)

    return DoctorResult(
        id=row["id"],
        name=row.get("name") or "",
        specialty=(
            (primary_service or {}).get("name")
            or (primary_service or {}).get("category")
            or "General Practice"
        ),
        hospital=(primary_hospital or {}).get("hospital_name") or "Independent Practice",
        location=location,
        experience_years=experience_years,
        experience=f"{experience_years} Years",
        rating=float(row.get("rating") or 0),
        bio=row.get("bio"),
        image_url=row.get("image_url"),
        languages=[l["name"] for l in _as_list(row.get("languages")) if l.get("name")],
        phone=row.get("phone_number"),
        email=row.get("email_address"),
        similarity=_percentage(row.get("similarity")),
    )


def build_rpc_params(
    search_type: SearchType, embedding: list[float], filters: dict[str, Any]
) -> tuple[str, dict[str, Any]]:
    """
    Maps wire filters onto the RPC name and its parameters.

    Raises:
        ValueError: If search_type is not hospital or doctor
    """
    common = {
        "query_embedding": embedding,
        "match_threshold": filters.get("threshold") or DEFAULT_THRESHOLD,
        "match_count": filters.get("limit") or DEFAULT_LIMIT,
        "filter_country": filters.get("country"),
        "filter_city": filters.get("city"),
        "filter_specialty": filters.get("specialty"),
        "filter_min_rating": filters.get("minRating"),
    }
    if search_type == "hospital":
        return "search_hospitals_vector", {
            **common,
            "filter_is_halal": filters.get("isHalal"),
        }
    if search_type == "doctor":
        return "search_doctors_vector", {
            **common,
            "filter_min_experience": filters.get("minExperience"),
        }
    raise ValueError(
        f"Invalid search type: {search_type}. Must be 'hospital' or 'doctor'"
    )


class SupabaseSearchClient:
    """
    SearchClient running the vector search directly against Supabase.
    Drop-in replacement for the REST endpoint.
    """

    def __init__(self, supabase_client: Client, embeddings_model: Embeddings):
        self.supabase_client = supabase_client
        self.embeddings_model = embeddings_model

    async def search(
        self, query: str, search_type: SearchType, filters: dict[str, Any]
    ) -> list[SearchResult]:
        try:
            logger.info("embedding_started", query=query)
            embedding = await self.embeddings_model.aembed_query(query)
        except Exception as e:
            logger.error("embedding_failed", exc_info=True, error=str(e))
            raise SearchRequestError(
                f"Failed to generate embedding for search query: {e}"
            ) from e

        rpc_name, rpc_params = build_rpc_params(search_type, embedding, filters)

        try:
            logger.info("database_search_started", rpc=rpc_name)
            response = await asyncio.to_thread(
                lambda: self.supabase_client.rpc(rpc_name, rpc_params).execute()
            )
        except Exception as e:
            logger.error("database_search_failed", exc_info=True, rpc=rpc_name, error=str(e))
            raise SearchRequestError(f"{search_type.title()} search failed: {e}") from e

        rows = response.data or []
        transform = transform_hospital_row if search_type == "hospital" else transform_doctor_row
        try:
            results = [transform(row) for row in rows]
        except (KeyError, TypeError, ValueError) as e:
            logger.error("database_rows_invalid", exc_info=True, rpc=rpc_name, error=str(e))
            raise SearchRequestError(f"Invalid {search_type} row from {rpc_name}: {e}") from e

        if results:
            logger.info("database_search_completed", rpc=rpc_name, count=len(results))
        else:
            logger.warning("database_search_empty", rpc=rpc_name)
        return results
