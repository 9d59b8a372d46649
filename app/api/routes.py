"""
FastAPI routes for the trial conversion dashboard.
"""

from __future__ import annotations

import logging
from datetime import date
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Path, Query
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from app.clients import WarehouseError
from app.dependencies import (
    get_app_settings,
    get_meta_summary_service,
    get_org_detail_service,
    get_trial_listing_service,
    get_warehouse_client,
)
from app.schemas import (
    DoneEvent,
    MetaSummaryRequest,
    MetaSummaryStatus,
    TrialFilters,
    TrialListResponse,
    ValueMomentCatalog,
)
from app.services import NoTrialsFoundError, VALUE_MOMENT_OPTIONS
from app.utils.sse import SSE_HEADERS, event_stream

router = APIRouter()
logger = logging.getLogger(__name__)


def _error_response(
    message: str,
    exc: Exception | None = None,
    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR,
) -> JSONResponse:
    body: dict[str, Any] = {"error": message}
    if exc is not None:
        body["details"] = str(exc)
    return JSONResponse(status_code=status_code, content=body)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok", "environment": settings.environment}


@router.get("/trials", response_model=TrialListResponse)
async def list_trials(
    service: Annotated[Any, Depends(get_trial_listing_service)],
    limit: int = Query(default=20, ge=1, le=500, description="Page size."),
    offset: int = Query(default=0, ge=0, description="Rows to skip."),
    org_id: int | None = Query(default=None, alias="orgId"),
    date_from: date | None = Query(default=None, alias="dateFrom"),
    date_to: date | None = Query(default=None, alias="dateTo"),
    value_moments: list[str] | None = Query(
        default=None,
        alias="valueMoments",
        description="Repeat the parameter to select several value moments.",
    ),
    search: str | None = Query(
        default=None,
        description="Case-insensitive substring matched against the trial summary.",
    ),
) -> Any:
    """Latest analysis per organization, newest first."""
    filters = TrialFilters(
        org_id=org_id,
        date_from=date_from,
        date_to=date_to,
        value_moments=value_moments or [],
        search_text=search,
    )
    try:
        result = await service.list_trials(filters, limit=limit, offset=offset)
        return TrialListResponse(
            data=result.rows,
            total=result.total,
            limit=result.limit,
            offset=result.offset,
        )
    except WarehouseError as exc:
        logger.error("Trial listing failed: %s", exc)
        return _error_response("Failed to query Snowflake", exc)
    except ValidationError as exc:
        logger.error("Trial listing returned malformed rows: %s", exc)
        return _error_response("Failed to query Snowflake", exc)


@router.get("/value-moments", response_model=ValueMomentCatalog)
async def list_value_moments() -> ValueMomentCatalog:
    """Value-moment categories offered by the dashboard filter."""
    return ValueMomentCatalog(data=list(VALUE_MOMENT_OPTIONS))


@router.get("/org-data/{org_id}")
async def stream_org_data(
    warehouse: Annotated[Any, Depends(get_warehouse_client)],
    service: Annotated[Any, Depends(get_org_detail_service)],
    org_id: int = Path(..., description="Organization identifier."),
) -> Any:
    """Stream each org-detail section as soon as its query settles."""
    try:
        await warehouse.get_connection()
    except WarehouseError as exc:
        logger.error("Org data fetch failed for org %s: %s", org_id, exc)
        return _error_response("Failed to fetch org data", exc)

    async def _events():
        async for event in service.stream_sections(org_id):
            yield event
        yield DoneEvent()

    return StreamingResponse(
        event_stream(_events(), failure_message="Failed to load org data"),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/meta-summary/status", response_model=MetaSummaryStatus)
async def meta_summary_status(
    service: Annotated[Any, Depends(get_meta_summary_service)],
) -> MetaSummaryStatus:
    return MetaSummaryStatus(enabled=service.enabled)


@router.post("/meta-summary")
async def create_meta_summary(
    payload: MetaSummaryRequest,
    service: Annotated[Any, Depends(get_meta_summary_service)],
) -> Any:
    """Stream a synthesis across the latest trials matching ``payload.filters``."""
    if not service.enabled:
        return _error_response(
            "Meta-summary generation is not configured",
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
        )

    try:
        plan = await service.prepare(payload.filters)
    except NoTrialsFoundError as exc:
        return _error_response(str(exc), status_code=HTTPStatus.BAD_REQUEST)
    except WarehouseError as exc:
        logger.error("Meta-summary query failed: %s", exc)
        return _error_response("Failed to generate summary", exc)

    return StreamingResponse(
        event_stream(service.stream(plan), failure_message="Failed to generate summary"),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
