from __future__ import annotations

from types import SimpleNamespace

import pytest

from relish.app import deps
from relish.services.transcribe import TranscriptionService


@pytest.fixture
def whisper_settings(monkeypatch: pytest.MonkeyPatch):
    settings = SimpleNamespace(
        WHISPER_MODEL="tiny",
        WHISPER_DEVICE="cpu",
        WHISPER_BEAM_SIZE=1,
        TRANSCRIPTION_LANGUAGE="en",
        TRANSCRIPTION_TIMEOUT_SECONDS=60.0,
    )
    monkeypatch.setattr(deps, "get_settings", lambda: settings)
    deps.get_transcriber.cache_clear()
    yield settings
    deps.get_transcriber.cache_clear()


class TestGetTranscriber:
    def test_one_service_per_process(self, whisper_settings) -> None:
        first = deps.get_transcriber()

        assert deps.get_transcriber() is first
        assert isinstance(first, TranscriptionService)
        assert first.model_name == "tiny"
        assert first.language == "en"

    def test_model_is_shared_between_pipelines(self, whisper_settings) -> None:
        transcriber = deps.get_transcriber()
        transcriber._model = object()

        assert deps.get_transcriber()._model is transcriber._model
