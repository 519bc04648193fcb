from __future__ import annotations

import html
import re

from relish.services.types import TimestampedSegment

VTT_TAG_PATTERN = re.compile(r"<[^>]+>")
WHITESPACE_PATTERN = re.compile(r"\s+")
BLOCK_SEPARATOR_PATTERN = re.compile(r"\r?\n\s*\r?\n")
LINE_SEPARATOR_PATTERN = re.compile(r"\r?\n")
TIMING_PATTERN = re.compile(
    r"((?:\d{2,}:)?\d{2}:\d{2}\.\d{3})\s*-->\s*((?:\d{2,}:)?\d{2}:\d{2}\.\d{3})"
)


def timestamp_to_seconds(timestamp: str) -> float:
    """Convert ``HH:MM:SS.mmm`` (or ``MM:SS.mmm``) to seconds."""
    parts = timestamp.strip().split(":")
    total = 0.0
    for part in parts:
        total = total * 60 + float(part)
    return total


def _clean_cue_text(lines: list[str]) -> str:
    joined = " ".join(lines)
    without_tags = VTT_TAG_PATTERN.sub("", joined)
    return WHITESPACE_PATTERN.sub(" ", html.unescape(without_tags)).strip()


def strip_overlap(previous: str, text: str) -> str | None:
    """Remove from ``text`` whatever ``previous`` already said.

    Returns ``None`` when ``text`` is fully contained in ``previous``.
    Otherwise drops the longest run of leading words of ``text`` that is also
    the trailing run of words of ``previous``.
    """
    if not text:
        return None
    if previous and f" {text} " in f" {previous} ":
        return None

    previous_words = previous.split()
    words = text.split()
    longest = min(len(previous_words), len(words) - 1)
    for size in range(longest, 0, -1):
        if previous_words[-size:] == words[:size]:
            return " ".join(words[size:])
    return text


def vtt_to_segments(vtt: str) -> list[TimestampedSegment]:
    """Parse a WebVTT track into deduplicated, timestamped segments.

    Rolling captions repeat the tail of the previous cue; every word of the
    stream is emitted exactly once.
    """
    segments: list[TimestampedSegment] = []
    previous_text = ""

    for block in BLOCK_SEPARATOR_PATTERN.split(vtt):
        lines = LINE_SEPARATOR_PATTERN.split(block.strip())
        timing_index = next(
            (i for i, line in enumerate(lines) if TIMING_PATTERN.search(line)),
            None,
        )
        if timing_index is None:
            continue

        match = TIMING_PATTERN.search(lines[timing_index])
        start, end = match.group(1), match.group(2)

        text = _clean_cue_text(lines[timing_index + 1:])
        if not text:
            continue

        remainder = strip_overlap(previous_text, text)
        if remainder is None:
            continue
        previous_text = text

        segments.append(
            TimestampedSegment(
                text=remainder,
                startSecond=round(timestamp_to_seconds(start)),
                endSecond=round(timestamp_to_seconds(end)),
            )
        )

    return segments
