from __future__ import annotations

import json
import logging
from pathlib import Path

from PIL import Image
from pydantic import BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool

from relish.services.command import DEFAULT_COMMAND_TIMEOUT_SECONDS, run_command
from relish.services.errors import (
    AudioExtractionError,
    CommandError,
    FrameExtractionError,
)

logger = logging.getLogger(__name__)

FRAME_PREFIX = "frame-"
FRAME_PATTERN = f"{FRAME_PREFIX}%04d.jpeg"
DEFAULT_MAX_FRAME_EDGE = 1080
DEFAULT_FPS = 1


class _FfprobeFormat(BaseModel):
    duration: float


class _FfprobeOutput(BaseModel):
    format: _FfprobeFormat


def list_frames(frames_dir: Path) -> list[Path]:
    """Frame files in chronological (lexicographic) order."""
    if not frames_dir.is_dir():
        return []
    return sorted(
        (p for p in frames_dir.iterdir() if p.is_file() and p.name.startswith(FRAME_PREFIX)),
        key=lambda p: p.name,
    )


def downscale_frame(path: Path, max_edge: int = DEFAULT_MAX_FRAME_EDGE) -> tuple[int, int]:
    """Shrink an image in place so its longer edge is at most ``max_edge``."""
    with Image.open(path) as image:
        if max(image.size) <= max_edge:
            return image.size
        image_format = image.format
        resized = image.copy()
    resized.thumbnail((max_edge, max_edge))
    resized.save(path, format=image_format)
    return resized.size


def _wrap(error_cls: type[CommandError], error: CommandError) -> CommandError:
    return error_cls(
        error.command,
        error.returncode,
        error.stdout,
        error.stderr,
        message=str(error),
    )


class MediaToolchain:
    """ffprobe/ffmpeg wrapper for duration, audio track and frame extraction."""

    def __init__(
        self,
        fps: int = DEFAULT_FPS,
        max_frame_edge: int = DEFAULT_MAX_FRAME_EDGE,
        timeout_seconds: float = DEFAULT_COMMAND_TIMEOUT_SECONDS,
    ) -> None:
        self.fps = fps
        self.max_frame_edge = max_frame_edge
        self.timeout_seconds = timeout_seconds

    async def get_duration(self, video_path: Path, log: logging.Logger | None = None) -> float | None:
        try:
            result = await run_command(
                "ffprobe",
                "-show_entries",
                "format=duration",
                "-of",
                "json",
                "-v",
                "error",
                str(video_path),
                timeout=self.timeout_seconds,
            )
        except CommandError as error:
            (log or logger).warning("ffprobe failed for %s: %s", video_path, error)
            return None

        try:
            return _FfprobeOutput.model_validate(json.loads(result.stdout)).format.duration
        except (ValueError, ValidationError):
            (log or logger).warning("Unexpected ffprobe output for %s", video_path)
            return None

    async def extract_audio(self, video_path: Path, audio_path: Path) -> Path:
        audio_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            await run_command(
                "ffmpeg",
                "-y",
                "-i",
                str(video_path),
                "-q:a",
                "0",
                "-map",
                "a",
                str(audio_path),
                timeout=self.timeout_seconds,
            )
        except CommandError as error:
            raise _wrap(AudioExtractionError, error) from error
        return audio_path

    async def extract_frames(
        self,
        video_path: Path,
        out_dir: Path,
        log: logging.Logger | None = None,
    ) -> list[Path]:
        out_dir.mkdir(parents=True, exist_ok=True)
        try:
            await run_command(
                "ffmpeg",
                "-y",
                "-i",
                str(video_path),
                "-vf",
                f"fps={self.fps}",
                str(out_dir / FRAME_PATTERN),
                timeout=self.timeout_seconds,
            )
        except CommandError as error:
            raise _wrap(FrameExtractionError, error) from error

        frames = list_frames(out_dir)
        for frame in frames:
            await run_in_threadpool(downscale_frame, frame, self.max_frame_edge)
        (log or logger).debug("Extracted %d frames into %s", len(frames), out_dir)
        return frames
