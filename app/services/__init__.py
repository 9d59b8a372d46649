"""Service layer exports."""

from .meta_summary import (
    MetaSummaryPlan,
    MetaSummaryService,
    MetaSummaryUnavailableError,
    NoTrialsFoundError,
)
from .org_detail import OrgDetailService
from .trial_filters import TrialPredicate, build_trial_predicate
from .trial_listing import TrialListResult, TrialListingService
from .value_moments import VALUE_MOMENT_OPTIONS

__all__ = [
    "MetaSummaryPlan",
    "MetaSummaryService",
    "MetaSummaryUnavailableError",
    "NoTrialsFoundError",
    "OrgDetailService",
    "TrialListResult",
    "TrialListingService",
    "TrialPredicate",
    "VALUE_MOMENT_OPTIONS",
    "build_trial_predicate",
]
