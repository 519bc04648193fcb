from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from PIL import Image

from relish.services import media
from relish.services.command import CommandResult, run_command
from relish.services.errors import AudioExtractionError, CommandError, FrameExtractionError
from relish.services.media import MediaToolchain, downscale_frame, list_frames


def write_image(path: Path, size: tuple[int, int]) -> Path:
    Image.new("RGB", size, color=(200, 80, 40)).save(path, format="JPEG")
    return path


class TestDownscaleFrame:
    def test_longer_edge_is_capped(self, tmp_path: Path) -> None:
        frame = write_image(tmp_path / "frame-0001.jpeg", (1920, 1080))

        size = downscale_frame(frame, max_edge=960)

        assert size == (960, 540)
        with Image.open(frame) as image:
            assert image.size == (960, 540)
            assert image.format == "JPEG"

    def test_portrait_frame(self, tmp_path: Path) -> None:
        frame = write_image(tmp_path / "frame-0001.jpeg", (1080, 1920))

        width, height = downscale_frame(frame, max_edge=960)

        assert (width, height) == (540, 960)

    def test_small_frame_is_untouched(self, tmp_path: Path) -> None:
        frame = write_image(tmp_path / "frame-0001.jpeg", (640, 360))
        before = frame.read_bytes()

        assert downscale_frame(frame, max_edge=1080) == (640, 360)
        assert frame.read_bytes() == before


class TestListFrames:
    def test_sorted_and_filtered(self, tmp_path: Path) -> None:
        for name in ("frame-0002.jpeg", "frame-0010.jpeg", "frame-0001.jpeg", "notes.txt"):
            (tmp_path / name).write_bytes(b"")

        assert [p.name for p in list_frames(tmp_path)] == [
            "frame-0001.jpeg",
            "frame-0002.jpeg",
            "frame-0010.jpeg",
        ]

    def test_missing_directory(self, tmp_path: Path) -> None:
        assert list_frames(tmp_path / "missing") == []


class TestMediaToolchain:
    def test_audio_failure_keeps_process_output(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        async def failing_run_command(command: str, *args: str, timeout: float = 0) -> CommandResult:
            raise CommandError(command, 1, stdout="ffmpeg version 6", stderr="Output file #0 does not contain any stream")

        monkeypatch.setattr(media, "run_command", failing_run_command)

        with pytest.raises(AudioExtractionError) as exc_info:
            asyncio.run(MediaToolchain().extract_audio(tmp_path / "video.mp4", tmp_path / "audio.mp3"))

        assert exc_info.value.stdout == "ffmpeg version 6"
        assert "does not contain any stream" in exc_info.value.stderr
        assert exc_info.value.returncode == 1

    def test_frame_failure_is_frame_error(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        async def failing_run_command(command: str, *args: str, timeout: float = 0) -> CommandResult:
            raise CommandError(command, 1, stderr="Invalid data found")

        monkeypatch.setattr(media, "run_command", failing_run_command)

        with pytest.raises(FrameExtractionError):
            asyncio.run(MediaToolchain().extract_frames(tmp_path / "video.mp4", tmp_path / "frames"))

    def test_frames_are_downscaled_after_extraction(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        frames_dir = tmp_path / "frames"
        calls: list[tuple[str, ...]] = []

        async def fake_run_command(command: str, *args: str, timeout: float = 0) -> CommandResult:
            calls.append((command, *args))
            write_image(frames_dir / "frame-0001.jpeg", (1920, 1080))
            write_image(frames_dir / "frame-0002.jpeg", (1920, 1080))
            return CommandResult(stdout="", stderr="")

        monkeypatch.setattr(media, "run_command", fake_run_command)

        frames = asyncio.run(MediaToolchain(fps=1, max_frame_edge=540).extract_frames(tmp_path / "v.mp4", frames_dir))

        assert [f.name for f in frames] == ["frame-0001.jpeg", "frame-0002.jpeg"]
        assert "fps=1" in calls[0]
        with Image.open(frames[0]) as image:
            assert max(image.size) == 540

    def test_duration_parses_ffprobe_json(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        async def fake_run_command(command: str, *args: str, timeout: float = 0) -> CommandResult:
            return CommandResult(stdout='{"format": {"duration": "42.5"}}', stderr="")

        monkeypatch.setattr(media, "run_command", fake_run_command)

        assert asyncio.run(MediaToolchain().get_duration(tmp_path / "v.mp4")) == 42.5

    def test_duration_is_none_when_probe_fails(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        async def failing_run_command(command: str, *args: str, timeout: float = 0) -> CommandResult:
            raise CommandError(command, 1, stderr="moov atom not found")

        monkeypatch.setattr(media, "run_command", failing_run_command)

        assert asyncio.run(MediaToolchain().get_duration(tmp_path / "v.mp4")) is None


class TestRunCommand:
    def test_missing_binary(self) -> None:
        with pytest.raises(CommandError) as exc_info:
            asyncio.run(run_command("relish-no-such-binary", "--version"))

        assert exc_info.value.returncode is None
        assert "relish-no-such-binary" in str(exc_info.value)
