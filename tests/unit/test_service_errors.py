from __future__ import annotations

from relish.services.errors import (
    AudioExtractionError,
    CommandError,
    CommandTimeoutError,
    FrameExtractionError,
    ModelResponseError,
    ModelTimeoutError,
    NetworkTimeoutError,
    RateLimitedError,
    SearchApiError,
    ServiceError,
    TranscriptionServiceError,
    VideoDownloadError,
)


class TestServiceError:
    def test_base_exception(self) -> None:
        error = ServiceError("Base service error")
        assert str(error) == "Base service error"
        assert isinstance(error, Exception)


class TestCommandError:
    def test_carries_process_output(self) -> None:
        error = CommandError("ffmpeg", 1, stdout="out", stderr="No such file")

        assert error.command == "ffmpeg"
        assert error.returncode == 1
        assert error.stdout == "out"
        assert error.stderr == "No such file"
        assert "ffmpeg" in str(error)
        assert "1" in str(error)
        assert isinstance(error, ServiceError)

    def test_custom_message(self) -> None:
        error = CommandError("yt-dlp", None, message="Command not found: yt-dlp")
        assert str(error) == "Command not found: yt-dlp"
        assert error.stdout == ""
        assert error.stderr == ""

    def test_timeout_is_command_error(self) -> None:
        error = CommandTimeoutError("ffprobe", 10.0, stderr="partial")

        assert isinstance(error, CommandError)
        assert error.returncode is None
        assert error.timeout_seconds == 10.0
        assert error.stderr == "partial"
        assert "timed out" in str(error)


class TestMediaErrors:
    def test_extraction_errors_are_command_errors(self) -> None:
        assert issubclass(AudioExtractionError, CommandError)
        assert issubclass(FrameExtractionError, CommandError)

    def test_download_error(self) -> None:
        error = VideoDownloadError("Unable to download abc")
        assert isinstance(error, ServiceError)
        assert not isinstance(error, CommandError)


class TestModelErrors:
    def test_response_error_keeps_raw_reply(self) -> None:
        error = ModelResponseError("recipe-extraction", "confidence out of range", raw='{"x": 1}')

        assert error.task == "recipe-extraction"
        assert error.reason == "confidence out of range"
        assert error.raw == '{"x": 1}'
        assert "recipe-extraction" in str(error)

    def test_timeout(self) -> None:
        error = ModelTimeoutError("frames-description", 180.0)
        assert error.task == "frames-description"
        assert error.timeout_seconds == 180.0
        assert "180" in str(error)

    def test_rate_limited(self) -> None:
        error = RateLimitedError("Too many requests")
        assert "Too many requests" in str(error)
        assert isinstance(error, ServiceError)


class TestTranscriptionServiceError:
    def test_transcription_error(self) -> None:
        error = TranscriptionServiceError("Transcription failed")
        assert isinstance(error, ServiceError)


class TestSearchApiError:
    def test_status_and_reason(self) -> None:
        error = SearchApiError(403, "quotaExceeded")
        assert error.status_code == 403
        assert error.reason == "quotaExceeded"
        assert "403" in str(error)


class TestNetworkTimeoutError:
    def test_timeout_with_url_and_seconds(self) -> None:
        error = NetworkTimeoutError("https://example.com/search", 15.0)
        assert "https://example.com/search" in str(error)
        assert "15" in str(error)
        assert error.url == "https://example.com/search"
        assert error.timeout_seconds == 15.0
