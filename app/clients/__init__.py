"""Expose constructed client wrappers."""

from .gemini import GeminiClient, GeminiModelError
from .warehouse import (
    WarehouseClient,
    WarehouseConnectionError,
    WarehouseError,
    WarehouseQueryError,
)

__all__ = [
    "GeminiClient",
    "GeminiModelError",
    "WarehouseClient",
    "WarehouseConnectionError",
    "WarehouseError",
    "WarehouseQueryError",
]
