from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from relish.services.describe import (
    CAPTIONS_UNAVAILABLE,
    FrameDescriber,
    NarrativeFuser,
    normalize_frame_segments,
)
from relish.services.errors import ModelResponseError
from relish.services.types import TimestampedSegment


def segment(text: str, start: int, end: int) -> TimestampedSegment:
    return TimestampedSegment(text=text, startSecond=start, endSecond=end)


class GeminiStub:
    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.calls: list[dict] = []

    async def generate_json(self, task, system_instruction, contents, schema, model=None) -> str:
        self.calls.append({"task": task, "contents": contents, "schema": schema})
        return self.reply

    async def generate_text(self, task, system_instruction, contents, model=None) -> str:
        self.calls.append({"task": task, "system_instruction": system_instruction, "contents": contents})
        return self.reply


class TestNormalizeFrameSegments:
    def test_overlapping_end_is_clipped(self) -> None:
        segments = normalize_frame_segments([segment("a", 0, 5), segment("b", 3, 8)])

        assert [(s.startSecond, s.endSecond) for s in segments] == [(0, 3), (3, 8)]

    def test_adjacent_segments_are_kept(self) -> None:
        segments = normalize_frame_segments([segment("a", 0, 3), segment("b", 3, 8)])
        assert [(s.startSecond, s.endSecond) for s in segments] == [(0, 3), (3, 8)]

    def test_out_of_order_start_is_rejected(self) -> None:
        with pytest.raises(ModelResponseError):
            normalize_frame_segments([segment("a", 5, 8), segment("b", 2, 4)])

    def test_empty(self) -> None:
        assert normalize_frame_segments([]) == []


class TestFrameDescriber:
    def test_labels_precede_each_frame(self, tmp_path: Path) -> None:
        frames = []
        for index in (1, 2):
            frame = tmp_path / f"frame-{index:04d}.jpeg"
            frame.write_bytes(f"jpeg-{index}".encode())
            frames.append(frame)
        reply = json.dumps([{"text": "A pan on the stove", "startSecond": 0, "endSecond": 2}])
        gemini = GeminiStub(reply)

        segments = asyncio.run(FrameDescriber(gemini).describe(frames))

        assert segments == [segment("A pan on the stove", 0, 2)]
        parts = gemini.calls[0]["contents"]
        assert parts[0].text == "frame-0001.jpeg"
        assert parts[1].inline_data.data == b"jpeg-1"
        assert parts[1].inline_data.mime_type == "image/jpeg"
        assert parts[2].text == "frame-0002.jpeg"
        assert parts[3].inline_data.data == b"jpeg-2"

    def test_no_frames_skips_model(self) -> None:
        gemini = GeminiStub("[]")
        assert asyncio.run(FrameDescriber(gemini).describe([])) == []
        assert gemini.calls == []

    def test_malformed_reply_raises(self, tmp_path: Path) -> None:
        frame = tmp_path / "frame-0001.jpeg"
        frame.write_bytes(b"x")

        with pytest.raises(ModelResponseError):
            asyncio.run(FrameDescriber(GeminiStub('{"text": "oops"}')).describe([frame]))


class TestNarrativeFuser:
    def test_missing_captions_are_stated(self) -> None:
        gemini = GeminiStub("A cook slices onions.")
        fuser = NarrativeFuser(gemini)

        narrative = asyncio.run(fuser.fuse(None, [segment("slice the onions", 0, 2)], []))

        assert narrative == "A cook slices onions."
        texts = [part.text for part in gemini.calls[0]["contents"]]
        assert texts[0] == "CAPTIONS"
        assert texts[1] == CAPTIONS_UNAVAILABLE
        assert texts[2] == "TRANSCRIPTION"
        assert json.loads(texts[3]) == [{"text": "slice the onions", "startSecond": 0, "endSecond": 2}]
        assert texts[4] == "DESCRIPTION"
        assert json.loads(texts[5]) == []

    def test_empty_captions_differ_from_missing(self) -> None:
        gemini = GeminiStub("narrative")

        asyncio.run(NarrativeFuser(gemini).fuse([], [], []))

        assert gemini.calls[0]["contents"][1].text == "[]"

    def test_appendix_extends_system_instruction(self) -> None:
        fuser = NarrativeFuser(GeminiStub(""), prompt_appendix="Focus on ingredients.")

        instruction = fuser.system_instruction()

        assert instruction.endswith("Additional instructions below.\n\nFocus on ingredients.")
        assert NarrativeFuser(GeminiStub("")).system_instruction() in instruction
