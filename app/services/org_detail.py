"""Fan-out of per-organization account, revenue and engagement queries."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Tuple

from fastapi.encoders import jsonable_encoder

from app.clients import WarehouseClient
from app.schemas import ErrorEvent, SectionDataEvent

logger = logging.getLogger(__name__)

# Statements are executed with bound parameters, so literal percent signs are
# written as ``%%``.
ORG_DETAIL_QUERIES: Tuple[Tuple[str, str], ...] = (
    (
        "orgInfo",
        """
        SELECT o.id AS org_id, o.name AS org_name, o.public_id AS org_public_id,
               o.datacenter, o.created_timestamp AS org_created_date,
               sa.name AS salesforce_account_name, sa.id AS salesforce_account_id,
               sa.sales_segment, sa.billing_country, sa.type AS account_type, sa.industry,
               csm_user.name AS customer_success_manager, csm_user.email AS csm_email,
               owner_user.name AS account_owner, owner_user.email AS account_owner_email,
               se_user.name AS sales_engineer, se_user.email AS sales_engineer_email
        FROM reporting.general.dim_org o
        LEFT JOIN reporting.general.dim_salesforce_account sa ON sa.org_id = o.id
        LEFT JOIN reporting.general.dim_salesforce_user csm_user
          ON sa.customer_success_rep_salesforce_user_id = csm_user.id_case_sensitive
        LEFT JOIN reporting.general.dim_salesforce_user owner_user
          ON sa.owner_salesforce_user_id = owner_user.id_case_sensitive
        LEFT JOIN reporting.general.dim_salesforce_user se_user
          ON sa.account_sales_engineer = se_user.id_case_sensitive
        WHERE o.id = %(org_id)s
        """,
    ),
    (
        "conversionTime",
        """
        SELECT org_id, start_timestamp
        FROM reporting.general.fact_org_billing_plan_history
        WHERE billing_plan IN ('pro', 'enterprise')
          AND org_id = %(org_id)s
        ORDER BY start_timestamp ASC
        LIMIT 1
        """,
    ),
    (
        "arrData",
        """
        SELECT revenue_month,
               ROUND(total_arr, 0) AS total_arr,
               ROUND(committed_arr, 0) AS committed_arr,
               ROUND(usage_arr, 0) AS usage_arr,
               ROUND(on_demand_arr, 0) AS on_demand_arr,
               ROUND(total_mrr, 0) AS total_mrr,
               is_first_usage_month, is_most_recent_month
        FROM reporting.billing.fact_usage_and_committed_revenue_monthly
        WHERE org_id = %(org_id)s
          AND is_most_recent_month = TRUE
        """,
    ),
    (
        "billableUsage",
        """
        SELECT org_id, billing_dimension,
               TO_DATE(TO_TIMESTAMP_LTZ(first_billable_usage_hour)) AS first_billable_usage_hour,
               TO_DATE(TO_TIMESTAMP_LTZ(last_billable_usage_hour)) AS last_billable_usage_hour,
               ROUND(org_usage, 0) AS org_usage,
               usage_unit, aggregation_function, is_product_billable
        FROM reporting.general.fact_org_billable_usage_monthly
        WHERE is_most_recent_month = TRUE
          AND org_id = %(org_id)s
        ORDER BY billing_dimension ASC
        """,
    ),
    (
        "infraHosts",
        """
        SELECT MAX_BY(agent_host_count, usage_hour) AS agent_host_count
        FROM reporting.general.fact_org_infra_usage_hourly_view
        WHERE agent_host_count > 0
          AND org_id = %(org_id)s
        """,
    ),
    (
        "cloudHosts",
        """
        SELECT MAX_BY(aws_host_count, usage_hour) AS aws_host_count,
               MAX_BY(azure_host_count, usage_hour) AS azure_host_count,
               MAX_BY(gcp_host_count, usage_hour) AS gcp_host_count,
               MAX_BY(oci_host_count, usage_hour) AS oci_host_count
        FROM reporting.general.fact_org_infra_usage_hourly_view
        WHERE org_id = %(org_id)s
        """,
    ),
    (
        "dashboards",
        """
        SELECT id, title, created_at
        FROM reporting.general.dim_dashboard
        WHERE widget_count > 0
          AND title NOT ILIKE '%%(cloned)%%'
          AND org_id = %(org_id)s
        ORDER BY created_at DESC
        """,
    ),
    (
        "monitors",
        """
        SELECT DISTINCT id, name, has_notification_handle, created_timestamp
        FROM reporting.general.dim_monitor,
             LATERAL FLATTEN(input => monitor_tags) AS tag_values
        WHERE monitor_tags::STRING NOT LIKE '%%"tag_key":"monitor_pack"%%'
          AND org_id = %(org_id)s
        ORDER BY created_timestamp DESC
        """,
    ),
    (
        "integrations",
        """
        SELECT DISTINCT integration_name
        FROM reporting.general.dim_org_enabled_datadog_integration e
        JOIN reporting.general.dim_datadog_integration i
          ON i.integration_id = e.integration_id
        WHERE e.org_id = %(org_id)s
        ORDER BY integration_name
        """,
    ),
    (
        "pageviews",
        """
        SELECT page_directory_level1,
               COUNT(DISTINCT pageview_id) AS pageview_count
        FROM reporting.general.fact_app_pageview_history
        WHERE org_id = %(org_id)s
          AND page_directory_level1 IS NOT NULL
        GROUP BY page_directory_level1
        ORDER BY pageview_count DESC
        LIMIT 10
        """,
    ),
    (
        "activeUsers",
        """
        SELECT u.id AS user_id,
               u.name AS user_name,
               u.email AS user_email,
               COUNT(DISTINCT p.pageview_id) AS pageview_count,
               COUNT(DISTINCT p.session_id) AS session_count,
               SUM(p.interactions_count) AS interactions,
               SUM(p.time_spent_on_page_seconds) AS time_spent_seconds
        FROM reporting.general.fact_app_pageview_history p
        LEFT JOIN reporting.general.dim_datadog_user u
          ON p.datadog_user_id = u.id
         AND p.org_id = u.org_id
        WHERE p.org_id = %(org_id)s
        GROUP BY u.id, u.name, u.email
        ORDER BY pageview_count DESC
        LIMIT 10
        """,
    ),
)

SECTION_KEYS: Tuple[str, ...] = tuple(key for key, _ in ORG_DETAIL_QUERIES)

OrgSectionEvent = SectionDataEvent | ErrorEvent


class OrgDetailService:
    """Run the org-detail queries concurrently and report each independently."""

    def __init__(
        self,
        warehouse: WarehouseClient,
        queries: Tuple[Tuple[str, str], ...] = ORG_DETAIL_QUERIES,
    ) -> None:
        self._warehouse = warehouse
        self._queries = queries

    async def stream_sections(self, org_id: int) -> AsyncIterator[OrgSectionEvent]:
        """Yield one event per section in the order the queries finish."""
        tasks = [
            asyncio.create_task(self._run_section(key, sql, org_id), name=f"org-{key}")
            for key, sql in self._queries
        ]
        try:
            for finished in asyncio.as_completed(tasks):
                yield await finished
        finally:
            # Consumer went away mid-stream.
            for task in tasks:
                task.cancel()

    async def _run_section(self, key: str, sql: str, org_id: int) -> OrgSectionEvent:
        try:
            rows = await self._warehouse.execute(sql, {"org_id": org_id})
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Org %s section '%s' failed: %s", org_id, key, exc)
            return ErrorEvent(key=key, error=str(exc) or "Query failed")
        return SectionDataEvent(key=key, data=_json_rows(rows))


def _json_rows(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Convert driver values (dates, decimals) to JSON-native ones."""
    return [
        {str(column).upper(): value for column, value in jsonable_encoder(row).items()}
        for row in rows
    ]


__all__ = ["ORG_DETAIL_QUERIES", "OrgDetailService", "SECTION_KEYS"]
