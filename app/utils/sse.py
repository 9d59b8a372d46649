"""Server-sent event framing helpers."""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator, Optional

from pydantic import BaseModel, TypeAdapter, ValidationError

from app.schemas.events import EVENT_TYPES, ErrorEvent, StreamEvent

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

_EVENT_ADAPTER: TypeAdapter = TypeAdapter(StreamEvent)


def encode_event(event: BaseModel) -> str:
    """Serialize one event as a ``data:`` frame."""
    payload = event.model_dump_json(by_alias=True, exclude_none=True)
    return f"data: {payload}\n\n"


async def event_stream(
    events: AsyncIterator[BaseModel],
    *,
    failure_message: str,
) -> AsyncIterator[str]:
    """Frame ``events`` and turn an unexpected failure into a final error event."""
    try:
        async for event in events:
            yield encode_event(event)
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Event stream aborted: %s", failure_message)
        yield encode_event(ErrorEvent(error=str(exc) or failure_message))


def parse_event(frame: str) -> Optional[BaseModel]:
    """Decode one ``data:`` line; unknown or malformed payloads yield ``None``."""
    line = frame.strip()
    if not line.startswith("data:"):
        return None
    raw = line[len("data:"):].strip()
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Ignoring malformed event frame: %s", raw[:200])
        return None
    if not isinstance(payload, dict) or payload.get("type") not in EVENT_TYPES:
        return None
    try:
        return _EVENT_ADAPTER.validate_python(payload)
    except ValidationError:
        logger.debug("Ignoring event frame with unexpected shape: %s", raw[:200])
        return None


__all__ = ["SSE_HEADERS", "encode_event", "event_stream", "parse_event"]
