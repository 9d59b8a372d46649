"""Client wrapper for interacting with Google Gemini models."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Iterable

import google.generativeai as genai
from google.api_core.exceptions import GoogleAPICallError, NotFound

from app.core.config import GeminiSettings


_TEXT_FALLBACKS: tuple[str, ...] = (
    "gemini-1.5-pro",
    "gemini-1.5-flash",
)

logger = logging.getLogger(__name__)


class GeminiModelError(RuntimeError):
    """Raised when Gemini cannot fulfill a request due to configuration issues."""


class GeminiClient:
    """Stream long-form analytical text from the configured Gemini model."""

    def __init__(self, settings: GeminiSettings) -> None:
        self._settings = settings
        # Configure the global client once per process.
        genai.configure(api_key=settings.api_key)

    @property
    def model_name(self) -> str:
        return self._settings.model_name

    async def stream_text(
        self,
        prompt: str,
        *,
        max_output_tokens: int | None = None,
    ) -> AsyncIterator[str]:
        """Yield text fragments in the order Gemini produces them."""
        generation_config = {
            "max_output_tokens": max_output_tokens or self._settings.max_output_tokens,
        }
        response = await asyncio.to_thread(
            self._invoke_with_models,
            models=self._text_model_candidates(),
            env_var="GEMINI_MODEL_NAME",
            error_prefix="Gemini streaming generate_content failed",
            call=lambda model: model.generate_content(
                prompt,
                stream=True,
                generation_config=generation_config,
                safety_settings=[],
            ),
        )

        chunks = iter(response)
        while True:
            chunk = await asyncio.to_thread(next, chunks, None)
            if chunk is None:
                break
            text = _chunk_text(chunk)
            if text:
                yield text

    def _invoke_with_models(
        self,
        *,
        models: Iterable[str],
        env_var: str,
        error_prefix: str,
        call: Callable[[genai.GenerativeModel], Any],
    ) -> Any:
        """Try the configured model followed by fallbacks when available."""

        model_sequence = list(models)
        last_not_found: NotFound | None = None
        for index, model_name in enumerate(model_sequence):
            generative_model = genai.GenerativeModel(model_name)
            try:
                return call(generative_model)
            except NotFound as exc:  # pragma: no cover - network call
                last_not_found = exc
                logger.warning(
                    "Gemini model '%s' not found (attempt %d/%d); trying fallback.",
                    model_name,
                    index + 1,
                    len(model_sequence),
                )
                continue
            except GoogleAPICallError as exc:  # pragma: no cover - network call
                raise GeminiModelError(f"{error_prefix}: {exc.message}") from exc

        if last_not_found is not None:
            primary = model_sequence[0] if model_sequence else "unknown"
            raise GeminiModelError(
                "Gemini model '"
                f"{primary}"
                "' is not available. Update "
                f"{env_var} to a supported value."
            ) from last_not_found

        raise GeminiModelError(f"{error_prefix}: Unknown error invoking Gemini.")

    def _text_model_candidates(self) -> list[str]:
        return self._collect_candidates(self._settings.model_name, _TEXT_FALLBACKS)

    @staticmethod
    def _collect_candidates(
        configured: str | None,
        fallbacks: tuple[str, ...],
    ) -> list[str]:
        """Return distinct model names prioritizing the configured value."""
        seen: set[str] = set()
        candidates: list[str] = []
        for name in (configured, *fallbacks):
            if not name:
                continue
            cleaned = name.strip()
            if not cleaned or cleaned in seen:
                continue
            seen.add(cleaned)
            candidates.append(cleaned)
        return candidates


def _chunk_text(chunk: Any) -> str:
    """Return the text carried by a streamed chunk, or ``""`` when it has none."""
    try:
        return chunk.text or ""
    except ValueError:
        # Raised by the SDK for chunks that carry only a finish reason.
        logger.debug("Skipping Gemini chunk without text parts.")
        return ""


__all__ = ["GeminiClient", "GeminiModelError"]
