try:
    from . import _bootstrap  # noqa: F401
    from ._fakes import FakeWarehouse, InMemoryTrialTable, query_error
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401
    from _fakes import FakeWarehouse, InMemoryTrialTable, query_error  # type: ignore

from datetime import date, datetime

import pytest

from app.clients import WarehouseQueryError
from app.schemas import TrialFilters
from app.services.trial_listing import TrialListingService

pytestmark = pytest.mark.anyio("asyncio")

TABLE = "REPORTING.GENERAL.FACT_TRIAL_ANALYSIS"


def _record(org_id: int, analysis_date: date) -> dict:
    return {
        "ORG_ID": org_id,
        "ANALYSIS_DATE": analysis_date,
        "TRIAL_SUMMARY": f"Org {org_id} adopted log pipelines.",
        "PRIMARY_VALUE_MOMENT_PRODUCT_AREA": "Logs",
    }


async def test_list_trials_returns_page_and_total():
    warehouse = FakeWarehouse(
        {
            "ROW_NUMBER()": [_record(12345, date(2025, 3, 1))],
            "COUNT(DISTINCT ORG_ID)": [{"TOTAL": 1}],
        }
    )
    service = TrialListingService(warehouse, table=TABLE)

    result = await service.list_trials(TrialFilters(orgId=12345), limit=5, offset=0)

    assert result.total == 1
    assert result.limit == 5
    assert result.offset == 0
    assert [row["ORG_ID"] for row in result.rows] == [12345]


async def test_page_query_deduplicates_and_orders_deterministically():
    warehouse = FakeWarehouse()
    service = TrialListingService(warehouse, table=TABLE)

    await service.fetch_latest(TrialFilters(valueMoments=["APM"]), limit=20, offset=40)

    sql, params = warehouse.calls[0]
    assert "PARTITION BY ORG_ID" in sql
    assert "WHERE RN = 1" in sql
    assert "ORDER BY ANALYSIS_DATE DESC, ORG_ID DESC" in sql
    assert f"FROM {TABLE}" in sql
    assert "PRIMARY_VALUE_MOMENT_PRODUCT_AREA IN (%(value_moment_0)s)" in sql
    assert params == {"value_moment_0": "APM", "limit": 20, "offset": 40}


async def test_total_ignores_paging_parameters():
    warehouse = FakeWarehouse({"COUNT(DISTINCT ORG_ID)": [{"TOTAL": 42}]})
    service = TrialListingService(warehouse, table=TABLE)

    first_page = await service.list_trials(TrialFilters(), limit=10, offset=0)
    later_page = await service.list_trials(TrialFilters(), limit=3, offset=30)

    assert first_page.total == later_page.total == 42
    count_calls = [params for sql, params in warehouse.calls if "COUNT(DISTINCT" in sql]
    assert all("limit" not in params and "offset" not in params for params in count_calls)


async def test_total_defaults_to_zero_without_count_row():
    warehouse = FakeWarehouse()
    service = TrialListingService(warehouse, table=TABLE)

    result = await service.list_trials(TrialFilters(searchText="O'Brien"))

    assert result.rows == []
    assert result.total == 0
    page_sql, page_params = warehouse.calls[0]
    assert "O'Brien" not in page_sql
    assert page_params["search"] == "%O'Brien%"


async def test_fetch_latest_can_narrow_columns():
    warehouse = FakeWarehouse()
    service = TrialListingService(warehouse, table=TABLE)

    await service.fetch_latest(TrialFilters(), limit=50, columns=("ORG_ID", "ANALYSIS_DATE"))

    sql, params = warehouse.calls[0]
    assert "SELECT ORG_ID, ANALYSIS_DATE\n" in sql
    assert params == {"limit": 50, "offset": 0}


async def test_query_failure_propagates():
    warehouse = FakeWarehouse({"ROW_NUMBER()": query_error("Warehouse suspended")})
    service = TrialListingService(warehouse, table=TABLE)

    with pytest.raises(WarehouseQueryError):
        await service.list_trials(TrialFilters())


def _analysis(org_id, analysis_date, summary, *, moment="Logs", at=None) -> dict:
    return {
        "ORG_ID": org_id,
        "ANALYSIS_DATE": analysis_date,
        "ANALYSIS_TIMESTAMP": at,
        "TRIAL_SUMMARY": summary,
        "PRIMARY_VALUE_MOMENT_PRODUCT_AREA": moment,
    }


SEEDED = [
    _analysis(12345, date(2025, 1, 10), "Early look at log pipelines."),
    _analysis(12345, date(2025, 3, 1), "Rolled log pipelines out to prod.",
              at=datetime(2025, 3, 1, 8)),
    _analysis(12345, date(2025, 3, 1), "Re-run: archives enabled after O'Brien's review.",
              at=datetime(2025, 3, 1, 17)),
    _analysis(20001, date(2025, 2, 14), "Checkout traces across services.", moment="APM"),
    _analysis(20002, date(2025, 2, 14), "Hit 100% agent coverage.", moment="Infrastructure Monitoring"),
    _analysis(20003, date(2025, 1, 20), "Tagged hosts with team_name.", moment="Integrations"),
    _analysis(20004, date(2025, 1, 5), "Monitors wired to on-call.", moment="Monitors"),
    _analysis(20004, date(2024, 12, 30), "Initial monitor import.", moment="Monitors"),
]


async def test_pages_partition_the_deduplicated_set_without_gaps():
    service = TrialListingService(InMemoryTrialTable(SEEDED), table=TABLE)

    seen: list[int] = []
    offset = 0
    while True:
        page = await service.list_trials(TrialFilters(), limit=2, offset=offset)
        if not page.rows:
            break
        assert page.total == 5
        seen.extend(row["ORG_ID"] for row in page.rows)
        offset += 2

    assert seen == [12345, 20002, 20001, 20003, 20004]
    assert len(seen) == len(set(seen))


async def test_latest_analysis_wins_and_timestamp_breaks_same_day_ties():
    service = TrialListingService(InMemoryTrialTable(SEEDED), table=TABLE)

    result = await service.list_trials(TrialFilters(orgId=12345))

    assert result.total == 1
    assert [row["TRIAL_SUMMARY"] for row in result.rows] == [
        "Re-run: archives enabled after O'Brien's review."
    ]


async def test_search_with_quote_matches_summaries_containing_it():
    service = TrialListingService(InMemoryTrialTable(SEEDED), table=TABLE)

    result = await service.list_trials(TrialFilters(searchText="o'brien"))

    assert result.total == 1
    assert [row["ORG_ID"] for row in result.rows] == [12345]


@pytest.mark.parametrize(
    "text, expected",
    [("_", [20003]), ("100%", [20002]), ("team_name", [20003]), ("LOG PIPELINES", [12345])],
)
async def test_search_is_a_literal_case_insensitive_substring(text, expected):
    service = TrialListingService(InMemoryTrialTable(SEEDED), table=TABLE)

    rows = await service.fetch_latest(TrialFilters(searchText=text), limit=50)

    assert [row["ORG_ID"] for row in rows] == expected


async def test_filters_combine_on_rows():
    service = TrialListingService(InMemoryTrialTable(SEEDED), table=TABLE)

    result = await service.list_trials(
        TrialFilters(dateFrom="2025-01-15", dateTo="2025-02-28", valueMoments=["APM", "Integrations"])
    )

    assert result.total == 2
    assert [row["ORG_ID"] for row in result.rows] == [20001, 20003]
