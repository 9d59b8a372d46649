"""Translate dashboard filters into a bound Snowflake predicate."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from app.schemas import TrialFilters


@dataclass(slots=True)
class TrialPredicate:
    """SQL boolean expression plus the ``pyformat`` parameters it references."""

    clause: str = ""
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def where_sql(self) -> str:
        return f"WHERE {self.clause}" if self.clause else ""


def build_trial_predicate(filters: TrialFilters) -> TrialPredicate:
    """Join the present filters with AND.

    Caller values only ever travel as bound parameters; the clause text is
    built from column names and placeholder names alone.
    """
    conditions: List[str] = []
    params: Dict[str, Any] = {}

    if filters.org_id is not None:
        conditions.append("ORG_ID = %(org_id)s")
        params["org_id"] = filters.org_id
    if filters.date_from:
        conditions.append("ANALYSIS_DATE >= %(date_from)s")
        params["date_from"] = filters.date_from
    if filters.date_to:
        conditions.append("ANALYSIS_DATE <= %(date_to)s")
        params["date_to"] = filters.date_to
    if filters.value_moments:
        placeholders = []
        for index, moment in enumerate(dict.fromkeys(filters.value_moments)):
            name = f"value_moment_{index}"
            placeholders.append(f"%({name})s")
            params[name] = moment
        conditions.append(
            f"PRIMARY_VALUE_MOMENT_PRODUCT_AREA IN ({', '.join(placeholders)})"
        )
    if filters.search_text:
        # The connector quotes the bound value, doubling any embedded quotes.
        conditions.append("TRIAL_SUMMARY ILIKE %(search)s ESCAPE '\\\\'")
        params["search"] = f"%{escape_like(filters.search_text)}%"

    return TrialPredicate(clause=" AND ".join(conditions), params=params)


def escape_like(text: str) -> str:
    """Backslash-escape ``%``, ``_`` and ``\\`` so the text matches literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


__all__ = ["TrialPredicate", "build_trial_predicate", "escape_like"]
