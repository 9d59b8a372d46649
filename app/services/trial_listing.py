"""Query the latest conversion analysis per organization."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from app.clients import WarehouseClient
from app.schemas import TrialFilters
from app.services.trial_filters import build_trial_predicate

logger = logging.getLogger(__name__)

TRIAL_COLUMNS: tuple[str, ...] = (
    "ORG_ID",
    "ANALYSIS_DATE",
    "ANALYSIS_TIMESTAMP",
    "TRIAL_SUMMARY",
    "AREAS_OF_FOCUS_ACTIONS",
    "PRIMARY_VALUE_MOMENT_PRODUCT_AREA",
    "PRIMARY_VALUE_MOMENT_DESCRIPTION",
    "PRIMARY_VALUE_MOMENT_SUPPORTING_EVIDENCE",
    "CONFIDENCE_SCORE",
    "MODEL_USED",
    "DAG_RUN_ID",
)

DEFAULT_PAGE_SIZE = 20


@dataclass(slots=True)
class TrialListResult:
    rows: List[Dict[str, Any]]
    total: int
    limit: int
    offset: int


class TrialListingService:
    """Paginated, filterable listing with one record per organization."""

    def __init__(self, warehouse: WarehouseClient, *, table: str) -> None:
        self._warehouse = warehouse
        self._table = table

    async def list_trials(
        self,
        filters: TrialFilters,
        *,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> TrialListResult:
        rows, total = await asyncio.gather(
            self.fetch_latest(filters, limit=limit, offset=offset),
            self.count_latest(filters),
        )
        return TrialListResult(rows=rows, total=total, limit=limit, offset=offset)

    async def fetch_latest(
        self,
        filters: TrialFilters,
        *,
        limit: int,
        offset: int = 0,
        columns: Sequence[str] = TRIAL_COLUMNS,
    ) -> List[Dict[str, Any]]:
        """Return the most recent matching record per org, newest first."""
        predicate = build_trial_predicate(filters)
        column_list = ", ".join(columns)
        sql = f"""
            SELECT {column_list}
            FROM (
                SELECT {column_list},
                       ROW_NUMBER() OVER (
                           PARTITION BY ORG_ID
                           ORDER BY ANALYSIS_DATE DESC, ANALYSIS_TIMESTAMP DESC
                       ) AS RN
                FROM {self._table}
                {predicate.where_sql}
            ) latest
            WHERE RN = 1
            ORDER BY ANALYSIS_DATE DESC, ORG_ID DESC
            LIMIT %(limit)s
            OFFSET %(offset)s
        """
        params = {**predicate.params, "limit": limit, "offset": offset}
        return await self._warehouse.execute(sql, params)

    async def count_latest(self, filters: TrialFilters) -> int:
        """Size of the deduplicated set: one row survives per matching org."""
        predicate = build_trial_predicate(filters)
        sql = f"""
            SELECT COUNT(DISTINCT ORG_ID) AS TOTAL
            FROM {self._table}
            {predicate.where_sql}
        """
        rows = await self._warehouse.execute(sql, predicate.params)
        if not rows:
            return 0
        return int(rows[0].get("TOTAL") or 0)


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "TRIAL_COLUMNS",
    "TrialListResult",
    "TrialListingService",
]
