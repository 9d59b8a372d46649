"""Stream a Gemini synthesis across a filtered set of trial summaries."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from textwrap import dedent
from typing import Any, AsyncIterator, Dict, List, Optional

from app.clients import GeminiClient
from app.schemas import ContentEvent, DoneEvent, ErrorEvent, MetadataEvent, TrialFilters
from app.services.trial_listing import TrialListingService

logger = logging.getLogger(__name__)

MAX_SUMMARY_TRIALS = 50
SUMMARY_COLUMNS: tuple[str, ...] = (
    "ORG_ID",
    "TRIAL_SUMMARY",
    "PRIMARY_VALUE_MOMENT_PRODUCT_AREA",
    "ANALYSIS_DATE",
)

MetaSummaryEvent = MetadataEvent | ContentEvent | DoneEvent | ErrorEvent


class NoTrialsFoundError(LookupError):
    """Raised when the filters match no analysis records."""


class MetaSummaryUnavailableError(RuntimeError):
    """Raised when no LLM client is configured."""


@dataclass(slots=True)
class MetaSummaryPlan:
    """Everything needed to start streaming, resolved before the first byte."""

    rows: List[Dict[str, Any]]
    prompt: str
    date_range: str

    @property
    def trial_count(self) -> int:
        return len(self.rows)


class MetaSummaryService:
    def __init__(
        self,
        listing: TrialListingService,
        gemini: Optional[GeminiClient],
    ) -> None:
        self._listing = listing
        self._gemini = gemini

    @property
    def enabled(self) -> bool:
        return self._gemini is not None

    async def prepare(self, filters: TrialFilters) -> MetaSummaryPlan:
        rows = await self._listing.fetch_latest(
            filters,
            limit=MAX_SUMMARY_TRIALS,
            columns=SUMMARY_COLUMNS,
        )
        if not rows:
            raise NoTrialsFoundError("No trials found matching filters")

        logger.info("Preparing meta-summary across %d trials", len(rows))
        return MetaSummaryPlan(
            rows=rows,
            prompt=build_summary_prompt(rows, filters),
            date_range=format_date_range(rows),
        )

    async def stream(self, plan: MetaSummaryPlan) -> AsyncIterator[MetaSummaryEvent]:
        """Emit metadata, the model's fragments in arrival order, then one terminal event."""
        if self._gemini is None:
            raise MetaSummaryUnavailableError("Meta-summary generation is not configured")

        yield MetadataEvent(trial_count=plan.trial_count, date_range=plan.date_range)

        produced = False
        try:
            async for fragment in self._gemini.stream_text(plan.prompt):
                produced = True
                yield ContentEvent(text=fragment)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Meta-summary stream failed after metadata was sent")
            yield ErrorEvent(error=str(exc) or "Failed to generate summary")
            return

        if not produced:
            yield ErrorEvent(error="The model returned an empty summary")
            return
        yield DoneEvent()


def format_date_range(rows: List[Dict[str, Any]]) -> str:
    """Human-readable span from the oldest to the newest analysis date."""
    dates = [d for d in (_as_date(row.get("ANALYSIS_DATE")) for row in rows) if d]
    if not dates:
        return "N/A"
    oldest, newest = min(dates), max(dates)
    return f"{_human_date(oldest)} - {_human_date(newest)}"


def build_summary_prompt(rows: List[Dict[str, Any]], filters: TrialFilters) -> str:
    trial_context = "\n\n".join(
        f"Org {row.get('ORG_ID')} ({row.get('PRIMARY_VALUE_MOMENT_PRODUCT_AREA') or 'Unknown'}):\n"
        f"{_truncate(row.get('TRIAL_SUMMARY') or '')}"
        for row in rows
    )
    return dedent(
        """\
        Analyze these {count} trial conversion summaries and provide a concise analysis (1500 words or fewer).
        {filter_summary}
        ## 1. Common Patterns Across Successful Conversions
        Identify recurring themes, behaviors, and value moments.

        ## 2. Most Frequent Value Moments
        What product areas are driving the most conversions?

        ## 3. Notable Outliers or Unique Behavior
        Highlight any trials with interesting or unusual patterns.

        ## 4. Strategic Recommendations for Product/Roadmap
        Based on the patterns above, provide actionable insights:
        - **High Impact Opportunities**: What features or workflows should be prioritized?
        - **Segments to Optimize For**: Which customer segments or use cases show the strongest conversion signals?
        - **Emerging Patterns to Monitor**: What trends are beginning to appear that warrant attention?

        Here are the trial summaries:

        {trial_context}

        Your audience is product managers weighing roadmap decisions. Be concise but insightful, and focus on the most impactful findings and actionable recommendations backed by the data.

        When referencing specific trials, use their org id (e.g., "Org 12345" rather than "Trial 3").
        """
    ).format(
        count=len(rows),
        filter_summary=_filter_summary(filters),
        trial_context=trial_context,
    )


def _filter_summary(filters: TrialFilters) -> str:
    lines: List[str] = []
    if filters.org_id is not None:
        lines.append(f"Org ID: {filters.org_id}")
    if filters.date_from:
        lines.append(f"Date from: {filters.date_from.isoformat()}")
    if filters.date_to:
        lines.append(f"Date to: {filters.date_to.isoformat()}")
    if filters.value_moments:
        lines.append(f"Value moments: {', '.join(filters.value_moments)}")
    if filters.search_text:
        lines.append(f'Search keywords: "{filters.search_text}"')
    if not lines:
        return ""
    bullets = "\n".join(f"- {line}" for line in lines)
    return f"\n**Applied Filters:**\n{bullets}\n"


def _as_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value).date()
        except ValueError:
            return None
    return None


def _human_date(value: date) -> str:
    return f"{value:%b} {value.day}, {value.year}"


def _truncate(value: str, max_len: int = 4000) -> str:
    """Keep a single runaway summary from dominating the prompt."""
    if len(value) > max_len:
        return value[: max_len - 3] + "..."
    return value


__all__ = [
    "MAX_SUMMARY_TRIALS",
    "MetaSummaryPlan",
    "MetaSummaryService",
    "MetaSummaryUnavailableError",
    "NoTrialsFoundError",
    "build_summary_prompt",
    "format_date_range",
]
