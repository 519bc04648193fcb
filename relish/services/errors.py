from __future__ import annotations


class ServiceError(Exception):
    pass


class CommandError(ServiceError):
    """An external process exited with a non-zero status.

    Carries the captured output so callers can log actionable diagnostics.
    """

    def __init__(
        self,
        command: str,
        returncode: int | None,
        stdout: str = "",
        stderr: str = "",
        message: str | None = None,
    ):
        super().__init__(message or f"Command '{command}' exited with code {returncode}")
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class CommandTimeoutError(CommandError):
    def __init__(self, command: str, timeout_seconds: float, stdout: str = "", stderr: str = ""):
        super().__init__(
            command,
            None,
            stdout,
            stderr,
            message=f"Command '{command}' timed out after {timeout_seconds}s",
        )
        self.timeout_seconds = timeout_seconds


class VideoDownloadError(ServiceError):
    pass


class AudioExtractionError(CommandError):
    pass


class FrameExtractionError(CommandError):
    pass


class TranscriptionServiceError(ServiceError):
    pass


class ModelResponseError(ServiceError):
    """The model answered, but not in the shape the caller contracted for."""

    def __init__(self, task: str, reason: str, raw: str | None = None):
        super().__init__(f"Invalid model response for {task}: {reason}")
        self.task = task
        self.reason = reason
        self.raw = raw


class ModelTimeoutError(ServiceError):
    def __init__(self, task: str, timeout_seconds: float):
        super().__init__(f"Model call '{task}' timed out after {timeout_seconds}s")
        self.task = task
        self.timeout_seconds = timeout_seconds


class RateLimitedError(ServiceError):
    pass


class SearchApiError(ServiceError):
    def __init__(self, status_code: int | None, reason: str):
        super().__init__(f"Video search failed (status={status_code}): {reason}")
        self.status_code = status_code
        self.reason = reason


class NetworkTimeoutError(ServiceError):
    def __init__(self, url: str, timeout_seconds: float):
        super().__init__(f"Network timeout after {timeout_seconds}s: {url}")
        self.url = url
        self.timeout_seconds = timeout_seconds
