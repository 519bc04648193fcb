# relish/services/transcribe.py
"""
Speech-to-text over an extracted audio track.
Produces whole-second timestamped segments plus the full text.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from starlette.concurrency import run_in_threadpool

from relish.services.errors import TranscriptionServiceError
from relish.services.types import TimestampedSegment, TranscriptionResult

if TYPE_CHECKING:
    from faster_whisper import WhisperModel
else:
    WhisperModel = "WhisperModel"  # type: ignore

logger = logging.getLogger(__name__)

DEFAULT_TRANSCRIPTION_TIMEOUT_SECONDS = 1800.0


def _detect_device(requested: str) -> tuple[str, str]:
    """
    Pick the device and compute_type for faster-whisper.

    Returns:
        Tuple of (device, compute_type)
    """
    if requested == "cuda":
        return "cuda", "float16"
    if requested == "cpu":
        return "cpu", "int8"

    try:
        import ctranslate2
        if "float16" in ctranslate2.get_supported_compute_types("cuda"):
            logger.info("CUDA detected via ctranslate2, using GPU with float16")
            return "cuda", "float16"
    except Exception as exc:
        logger.debug("Error detecting CUDA via ctranslate2: %s", exc)

    logger.info("GPU not available, using CPU with int8 (quantized)")
    return "cpu", "int8"


class TranscriptionService:
    """
    Wraps a lazily loaded faster-whisper model.

    The blocking decode runs in the threadpool so the event loop stays free
    while a track is transcribed.
    """

    def __init__(
        self,
        model_name: str = "medium",
        device: str = "auto",
        beam_size: int = 5,
        language: Optional[str] = None,
        timeout_seconds: float = DEFAULT_TRANSCRIPTION_TIMEOUT_SECONDS,
    ):
        self.model_name = model_name
        self.device = device
        self.beam_size = beam_size
        self.language = language
        self.timeout_seconds = timeout_seconds
        self._model: Optional["WhisperModel"] = None

    def _get_model(self) -> "WhisperModel":
        if self._model is not None:
            return self._model

        try:
            from faster_whisper import WhisperModel as _WhisperModel
        except ImportError as exc:
            raise TranscriptionServiceError("faster-whisper is not installed") from exc

        device, compute_type = _detect_device(self.device)
        logger.info(
            "Initializing faster-whisper: model=%s, device=%s, compute_type=%s",
            self.model_name,
            device,
            compute_type,
        )
        try:
            self._model = _WhisperModel(
                self.model_name,
                device=device,
                compute_type=compute_type,
                num_workers=2,
            )
        except Exception as exc:
            raise TranscriptionServiceError(f"Failed to initialize faster-whisper: {exc}") from exc
        return self._model

    def _transcribe_sync(self, audio_path: Path) -> TranscriptionResult:
        model = self._get_model()
        try:
            segments_iter, info = model.transcribe(
                str(audio_path),
                language=self.language,
                vad_filter=True,
                vad_parameters=dict(
                    min_silence_duration_ms=500,
                    speech_pad_ms=200,
                ),
                beam_size=self.beam_size,
                condition_on_previous_text=False,
                word_timestamps=False,
            )

            segments: list[TimestampedSegment] = []
            text_parts: list[str] = []
            for seg in segments_iter:
                text = seg.text.strip()
                if not text:
                    continue
                segments.append(
                    TimestampedSegment(
                        text=text,
                        startSecond=round(seg.start),
                        endSecond=round(seg.end),
                    )
                )
                text_parts.append(text)
        except Exception as exc:
            raise TranscriptionServiceError(f"Transcription failed: {exc}") from exc

        return TranscriptionResult(
            text=" ".join(text_parts).strip(),
            segments=segments,
            language=getattr(info, "language", None) or self.language,
            duration_sec=float(getattr(info, "duration", 0) or 0),
            model_version=self.model_name,
        )

    async def transcribe(
        self,
        audio_path: Path,
        log: Optional[logging.Logger] = None,
    ) -> TranscriptionResult:
        """
        Transcribe an audio file.

        Raises:
            TranscriptionServiceError: missing file, model failure or timeout.
        """
        if not audio_path.exists():
            raise TranscriptionServiceError(f"Audio file not found: {audio_path}")

        log = log or logger
        log.info("Starting transcription: path=%s, language=%s", audio_path, self.language or "auto")
        try:
            result = await asyncio.wait_for(
                run_in_threadpool(self._transcribe_sync, audio_path),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise TranscriptionServiceError(
                f"Transcription timed out after {self.timeout_seconds}s"
            ) from exc

        log.info(
            "Transcription complete: duration=%.1fs, segments=%d, chars=%d, language=%s",
            result.duration_sec,
            len(result.segments),
            len(result.text),
            result.language,
        )
        return result
