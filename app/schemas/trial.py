"""
Pydantic models for trial conversion listings and meta-summary requests.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TrialAnalysis(BaseModel):
    """One conversion analysis record, keyed by the warehouse column names."""

    ORG_ID: int = Field(..., description="Organization identifier.")
    ANALYSIS_DATE: date
    ANALYSIS_TIMESTAMP: Optional[datetime] = None
    TRIAL_SUMMARY: Optional[str] = None
    AREAS_OF_FOCUS_ACTIONS: Optional[str] = Field(
        None,
        description="JSON-encoded mapping of focus area to recommended action.",
    )
    PRIMARY_VALUE_MOMENT_PRODUCT_AREA: Optional[str] = None
    PRIMARY_VALUE_MOMENT_DESCRIPTION: Optional[str] = None
    PRIMARY_VALUE_MOMENT_SUPPORTING_EVIDENCE: Optional[str] = None
    CONFIDENCE_SCORE: Optional[float] = Field(None, description="Model confidence in [0, 1].")
    MODEL_USED: Optional[str] = None
    DAG_RUN_ID: Optional[str] = None


class TrialFilters(BaseModel):
    """Optional predicates applied to the trial analysis table."""

    model_config = ConfigDict(populate_by_name=True)

    org_id: Optional[int] = Field(None, alias="orgId")
    date_from: Optional[date] = Field(None, alias="dateFrom")
    date_to: Optional[date] = Field(None, alias="dateTo")
    value_moments: list[str] = Field(default_factory=list, alias="valueMoments")
    search_text: Optional[str] = Field(None, alias="searchText")

    @field_validator("org_id", "date_from", "date_to", "search_text", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        """The UI submits untouched inputs as empty strings."""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("value_moments", mode="before")
    @classmethod
    def _drop_blank_moments(cls, value):
        if value is None:
            return []
        return [item for item in value if isinstance(item, str) and item.strip()]

    def is_empty(self) -> bool:
        return not (
            self.org_id is not None
            or self.date_from
            or self.date_to
            or self.value_moments
            or self.search_text
        )


class TrialListResponse(BaseModel):
    """Paginated listing of the latest analysis per organization."""

    data: list[TrialAnalysis] = Field(default_factory=list)
    total: int = Field(..., ge=0, description="Size of the full deduplicated set.")
    limit: int
    offset: int


class ValueMomentOption(BaseModel):
    value: str
    label: str


class ValueMomentCatalog(BaseModel):
    data: list[ValueMomentOption]


class MetaSummaryRequest(BaseModel):
    """Body accepted by the meta-summary endpoint."""

    filters: TrialFilters = Field(default_factory=TrialFilters)


class MetaSummaryStatus(BaseModel):
    enabled: bool
