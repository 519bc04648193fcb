from __future__ import annotations

import asyncio

import pytest

from relish.services.errors import ModelResponseError
from relish.services.likelihood import RecipeLikelihoodScorer, parse_score


class GeminiStub:
    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.calls: list[tuple[str, str, str, object]] = []

    async def generate_text(self, task, system_instruction, contents, model=None) -> str:
        self.calls.append((task, system_instruction, contents, model))
        return self.reply


class TestParseScore:
    @pytest.mark.parametrize("reply, expected", [("1", 1), ("5", 5), (" 3\n", 3), ("`4`", 4), ("```2```", 2)])
    def test_valid_scores(self, reply: str, expected: int) -> None:
        assert parse_score(reply) == expected

    @pytest.mark.parametrize("reply", ["0", "6", "-1"])
    def test_out_of_range(self, reply: str) -> None:
        with pytest.raises(ModelResponseError) as exc_info:
            parse_score(reply)
        assert exc_info.value.raw == reply

    @pytest.mark.parametrize("reply", ["", "four", "3.5", "Score: 3"])
    def test_not_an_integer(self, reply: str) -> None:
        with pytest.raises(ModelResponseError):
            parse_score(reply)


class TestRecipeLikelihoodScorer:
    def test_scores_metadata(self) -> None:
        gemini = GeminiStub("4")
        scorer = RecipeLikelihoodScorer(gemini, model="scoring-model")

        score = asyncio.run(scorer.score('{"title": "Easy focaccia"}'))

        assert score == 4
        task, system_instruction, contents, model = gemini.calls[0]
        assert task == "recipe-likelihood"
        assert "5-point" in system_instruction
        assert contents == '{"title": "Easy focaccia"}'
        assert model == "scoring-model"

    def test_malformed_reply_raises(self) -> None:
        scorer = RecipeLikelihoodScorer(GeminiStub("probably a recipe"))

        with pytest.raises(ModelResponseError):
            asyncio.run(scorer.score("{}"))
