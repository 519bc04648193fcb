from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from relish.services.errors import ModelResponseError
from relish.services.gemini_client import GeminiClient, load_prompt
from relish.services.types import ExtractionResult

logger = logging.getLogger(__name__)

EXTRACTION_TASK = "recipe-extraction"


class RecipeExtractor:
    """Pull structured recipes out of free text with a schema-constrained reply."""

    def __init__(self, gemini: GeminiClient, model: Optional[str] = None) -> None:
        self.gemini = gemini
        self.model = model

    async def extract(self, text: str, log: Optional[logging.Logger] = None) -> ExtractionResult:
        raw = await self.gemini.generate_json(
            EXTRACTION_TASK,
            load_prompt("recipe_extraction"),
            text,
            schema=ExtractionResult,
            model=self.model,
        )
        try:
            result = ExtractionResult.model_validate_json(raw)
        except ValidationError as err:
            raise ModelResponseError(EXTRACTION_TASK, str(err), raw=raw) from err

        (log or logger).info(
            "Extracted %d recipe(s), confidence=%.2f",
            len(result.result),
            result.confidence,
        )
        return result
