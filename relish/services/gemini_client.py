from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Sequence

from google import genai
from google.genai import types
from google.genai.errors import APIError

from relish.services.errors import (
    ModelResponseError,
    ModelTimeoutError,
    RateLimitedError,
    ServiceError,
)

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent / "prompts"
DEFAULT_MODEL_TIMEOUT_SECONDS = 180.0


class GeminiConfigurationError(ServiceError):
    pass


class GeminiPromptError(ServiceError):
    pass


@lru_cache
def load_prompt(name: str) -> str:
    file_path = PROMPTS_DIR / f"{name}.txt"
    try:
        return file_path.read_text(encoding="utf-8").strip()
    except FileNotFoundError as not_found_error:
        raise GeminiPromptError(f"Prompt file not found: {file_path}") from not_found_error
    except OSError as io_error:
        raise GeminiPromptError(f"Unable to read prompt file: {io_error}") from io_error


def _is_rate_limited_error(exc: Exception) -> bool:
    if getattr(exc, "code", None) == 429:
        return True
    return "RESOURCE_EXHAUSTED" in str(exc)


def text_part(text: str) -> types.Part:
    return types.Part.from_text(text=text)


def image_part(data: bytes, mime_type: str = "image/jpeg") -> types.Part:
    return types.Part.from_bytes(data=data, mime_type=mime_type)


class GeminiClient:
    """Async facade over google-genai for text, structured output and embeddings."""

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-2.5-flash",
        embedding_model: str = "gemini-embedding-001",
        embedding_dimensions: int = 1536,
        timeout_seconds: float = DEFAULT_MODEL_TIMEOUT_SECONDS,
        client: genai.Client | None = None,
    ) -> None:
        if not api_key and client is None:
            raise GeminiConfigurationError("Missing Gemini API key.")
        self.model_name = model_name
        self.embedding_model = embedding_model
        self.embedding_dimensions = embedding_dimensions
        self.timeout_seconds = timeout_seconds
        self._client = client or genai.Client(api_key=api_key)

    async def _generate(
        self,
        task: str,
        contents: str | Sequence[types.Part],
        config: types.GenerateContentConfig,
        model: str | None,
    ) -> str:
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=model or self.model_name,
                    contents=contents,
                    config=config,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as err:
            raise ModelTimeoutError(task, self.timeout_seconds) from err
        except APIError as err:
            if _is_rate_limited_error(err):
                raise RateLimitedError(
                    "Gemini API rate limit reached. Try again in a few moments."
                ) from err
            raise

        text = response.text
        if not text:
            raise ModelResponseError(task, "response did not include text content")
        return text

    async def generate_text(
        self,
        task: str,
        system_instruction: str,
        contents: str | Sequence[types.Part],
        model: str | None = None,
    ) -> str:
        config = types.GenerateContentConfig(system_instruction=system_instruction)
        return await self._generate(task, contents, config, model)

    async def generate_json(
        self,
        task: str,
        system_instruction: str,
        contents: str | Sequence[types.Part],
        schema: Any,
        model: str | None = None,
    ) -> str:
        """Generate a reply constrained to ``schema``; returns the raw JSON text."""
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            response_mime_type="application/json",
            response_schema=schema,
        )
        return await self._generate(task, contents, config, model)

    async def embed(self, text: str) -> list[float]:
        try:
            result = await asyncio.wait_for(
                self._client.aio.models.embed_content(
                    model=self.embedding_model,
                    contents=text,
                    config=types.EmbedContentConfig(
                        task_type="SEMANTIC_SIMILARITY",
                        output_dimensionality=self.embedding_dimensions,
                    ),
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as err:
            raise ModelTimeoutError("embedding", self.timeout_seconds) from err
        except APIError as err:
            if _is_rate_limited_error(err):
                raise RateLimitedError(
                    "Gemini API rate limit reached. Try again in a few moments."
                ) from err
            raise

        if not result.embeddings or not result.embeddings[0].values:
            raise ModelResponseError("embedding", "no embedding returned")
        values = list(result.embeddings[0].values)
        if len(values) != self.embedding_dimensions:
            raise ModelResponseError(
                "embedding",
                f"expected {self.embedding_dimensions} dimensions, got {len(values)}",
            )
        return values
