"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from app.clients import GeminiClient, WarehouseClient
from app.core.config import AppSettings, get_settings
from app.services import MetaSummaryService, OrgDetailService, TrialListingService


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings()


@lru_cache()
def get_warehouse_client() -> WarehouseClient:
    """Provide the process-wide Snowflake adapter."""
    settings = _settings()
    return WarehouseClient(settings.snowflake)


@lru_cache()
def get_gemini_client() -> GeminiClient | None:
    """Provide Gemini client when an API key is configured."""
    settings = _settings()
    if not settings.gemini.enabled:
        return None
    return GeminiClient(settings.gemini)


def get_trial_listing_service() -> TrialListingService:
    """Build a listing service over the configured analysis table."""
    settings = _settings()
    return TrialListingService(
        get_warehouse_client(),
        table=settings.snowflake.trial_analysis_table,
    )


def get_org_detail_service() -> OrgDetailService:
    return OrgDetailService(get_warehouse_client())


def get_meta_summary_service() -> MetaSummaryService:
    """Build a meta-summary service; disabled when Gemini is not configured."""
    return MetaSummaryService(
        listing=get_trial_listing_service(),
        gemini=get_gemini_client(),
    )


__all__ = [
    "get_app_settings",
    "get_gemini_client",
    "get_meta_summary_service",
    "get_org_detail_service",
    "get_trial_listing_service",
    "get_warehouse_client",
]
