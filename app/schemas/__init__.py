"""Public schema exports."""

from .events import (
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    MetadataEvent,
    SectionDataEvent,
    StreamEvent,
)
from .trial import (
    MetaSummaryRequest,
    MetaSummaryStatus,
    TrialAnalysis,
    TrialFilters,
    TrialListResponse,
    ValueMomentCatalog,
    ValueMomentOption,
)

__all__ = [
    "ContentEvent",
    "DoneEvent",
    "ErrorEvent",
    "MetaSummaryRequest",
    "MetaSummaryStatus",
    "MetadataEvent",
    "SectionDataEvent",
    "StreamEvent",
    "TrialAnalysis",
    "TrialFilters",
    "TrialListResponse",
    "ValueMomentCatalog",
    "ValueMomentOption",
]
