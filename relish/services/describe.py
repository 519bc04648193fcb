# relish/services/describe.py
"""
Vision and fusion stages of the video pipeline.

FrameDescriber turns an ordered list of frame images into timestamped
segments; NarrativeFuser merges captions, transcription and frame
description into a single narrative text.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Sequence

from google.genai import types
from pydantic import TypeAdapter, ValidationError

from relish.services.errors import ModelResponseError
from relish.services.gemini_client import GeminiClient, image_part, load_prompt, text_part
from relish.services.types import TimestampedSegment

logger = logging.getLogger(__name__)

FRAMES_TASK = "frames-description"
FUSION_TASK = "video-description"
CAPTIONS_UNAVAILABLE = "Captions not available"

_SEGMENTS_ADAPTER = TypeAdapter(list[TimestampedSegment])


def normalize_frame_segments(segments: Sequence[TimestampedSegment]) -> list[TimestampedSegment]:
    """
    Enforce chronological, non-overlapping segments.

    A segment that starts before its predecessor is rejected; an end that
    runs past the next start is clipped to that start.
    """
    normalized: list[TimestampedSegment] = []
    for segment in segments:
        if normalized:
            previous = normalized[-1]
            if segment.startSecond < previous.startSecond:
                raise ModelResponseError(
                    FRAMES_TASK,
                    f"segment starting at {segment.startSecond}s follows one starting at "
                    f"{previous.startSecond}s",
                )
            if previous.endSecond > segment.startSecond:
                normalized[-1] = previous.model_copy(update={"endSecond": segment.startSecond})
        normalized.append(segment)
    return normalized


def segments_to_json(segments: Sequence[TimestampedSegment]) -> str:
    return json.dumps([s.model_dump() for s in segments], indent=2, ensure_ascii=False)


class FrameDescriber:
    def __init__(self, gemini: GeminiClient, model: Optional[str] = None) -> None:
        self.gemini = gemini
        self.model = model

    def _build_contents(self, frames: Sequence[Path]) -> list[types.Part]:
        parts: list[types.Part] = []
        for frame in frames:
            parts.append(text_part(frame.name))
            parts.append(image_part(frame.read_bytes(), "image/jpeg"))
        return parts

    async def describe(
        self,
        frames: Sequence[Path],
        log: Optional[logging.Logger] = None,
    ) -> list[TimestampedSegment]:
        """Describe ``frames`` (already in chronological order)."""
        if not frames:
            return []

        raw = await self.gemini.generate_json(
            FRAMES_TASK,
            load_prompt("frames_description"),
            self._build_contents(frames),
            schema=list[TimestampedSegment],
            model=self.model,
        )
        try:
            segments = _SEGMENTS_ADAPTER.validate_json(raw)
        except ValidationError as err:
            raise ModelResponseError(FRAMES_TASK, str(err), raw=raw) from err

        (log or logger).debug("Described %d frames in %d segments", len(frames), len(segments))
        return normalize_frame_segments(segments)


class NarrativeFuser:
    def __init__(
        self,
        gemini: GeminiClient,
        prompt_appendix: Optional[str] = None,
        model: Optional[str] = None,
    ) -> None:
        self.gemini = gemini
        self.prompt_appendix = prompt_appendix
        self.model = model

    def system_instruction(self) -> str:
        prompt = load_prompt("video_description")
        if self.prompt_appendix:
            return f"{prompt}\n\nAdditional instructions below.\n\n{self.prompt_appendix}"
        return prompt

    async def fuse(
        self,
        captions: Optional[Sequence[TimestampedSegment]],
        transcription: Sequence[TimestampedSegment],
        frames_description: Sequence[TimestampedSegment],
    ) -> str:
        """
        Merge the three sources into one narrative.

        ``captions=None`` means the video has no caption track; the model is
        told so explicitly instead of receiving an empty section.
        """
        captions_text = segments_to_json(captions) if captions is not None else CAPTIONS_UNAVAILABLE
        contents = [
            text_part("CAPTIONS"),
            text_part(captions_text),
            text_part("TRANSCRIPTION"),
            text_part(segments_to_json(transcription)),
            text_part("DESCRIPTION"),
            text_part(segments_to_json(frames_description)),
        ]
        return await self.gemini.generate_text(
            FUSION_TASK,
            self.system_instruction(),
            contents,
            model=self.model,
        )
