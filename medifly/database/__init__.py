"""
Database package exports for Supabase vector search.
"""

from medifly.database.supabase import (
    SupabaseSearchClient,
    transform_hospital_row,
    transform_doctor_row,
    build_rpc_params,
)

__all__ = [
    "SupabaseSearchClient",
    "transform_hospital_row",
    "transform_doctor_row",
    "build_rpc_params",
]
