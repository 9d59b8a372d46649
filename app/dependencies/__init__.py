"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_app_settings,
    get_gemini_client,
    get_meta_summary_service,
    get_org_detail_service,
    get_trial_listing_service,
    get_warehouse_client,
)

__all__ = [
    "get_app_settings",
    "get_gemini_client",
    "get_meta_summary_service",
    "get_org_detail_service",
    "get_trial_listing_service",
    "get_warehouse_client",
]
