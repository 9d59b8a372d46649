"""
Typed events pushed to the browser over ``text/event-stream`` responses.

Every event carries a ``type`` discriminant. The org-data stream emits
``data``/``error`` per section followed by ``done``; the meta-summary stream
emits one ``metadata``, any number of ``content`` fragments, and a final
``done`` or ``error``.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class MetadataEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["metadata"] = "metadata"
    trial_count: int = Field(..., alias="trialCount")
    date_range: str = Field(..., alias="dateRange")


class ContentEvent(BaseModel):
    type: Literal["content"] = "content"
    text: str


class SectionDataEvent(BaseModel):
    type: Literal["data"] = "data"
    key: str
    data: list[dict[str, Any]] = Field(default_factory=list)


class ErrorEvent(BaseModel):
    """Failure of one org-data section (``key`` set) or of the whole stream."""

    type: Literal["error"] = "error"
    error: str
    key: Optional[str] = None


class DoneEvent(BaseModel):
    type: Literal["done"] = "done"


StreamEvent = Annotated[
    Union[MetadataEvent, ContentEvent, SectionDataEvent, ErrorEvent, DoneEvent],
    Field(discriminator="type"),
]

EVENT_TYPES = frozenset({"metadata", "content", "data", "error", "done"})
