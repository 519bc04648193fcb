from __future__ import annotations

import re
from typing import Optional

from relish.services.errors import ModelResponseError
from relish.services.gemini_client import GeminiClient, load_prompt

LIKELIHOOD_TASK = "recipe-likelihood"
MIN_SCORE = 1
MAX_SCORE = 5

_FENCE_PATTERN = re.compile(r"^`+|`+$")


def parse_score(reply: str) -> int:
    """Parse a bare 1..5 rating; anything else is a malformed reply."""
    cleaned = _FENCE_PATTERN.sub("", reply.strip()).strip()
    try:
        score = int(cleaned)
    except ValueError as err:
        raise ModelResponseError(LIKELIHOOD_TASK, f"not an integer: {cleaned!r}", raw=reply) from err
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise ModelResponseError(LIKELIHOOD_TASK, f"score {score} out of range", raw=reply)
    return score


class RecipeLikelihoodScorer:
    def __init__(self, gemini: GeminiClient, model: Optional[str] = None) -> None:
        self.gemini = gemini
        self.model = model

    async def score(self, metadata: str) -> int:
        reply = await self.gemini.generate_text(
            LIKELIHOOD_TASK,
            load_prompt("recipe_likelihood"),
            metadata,
            model=self.model,
        )
        return parse_score(reply)
