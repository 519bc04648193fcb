from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from relish.services.types import SearchResults
from relish.services.youtube import SearchParameters
from workers.ingestor import main as worker_main
from workers.ingestor.config import WorkerConfig
from workers.ingestor.main import build_parser, run

SEARCH_PAYLOAD = {
    "pageInfo": {"totalResults": 1, "resultsPerPage": 1},
    "items": [{"id": {"kind": "youtube#video", "videoId": "dQw4w9WgXcQ"}, "snippet": {"title": "Focaccia"}}],
}


class YoutubeClientStub:
    def __init__(self) -> None:
        self.params: list[SearchParameters] = []
        self.caption_requests: list[tuple[str, Path]] = []

    async def find_videos(self, params: SearchParameters) -> SearchResults:
        self.params.append(params)
        return SearchResults.model_validate(SEARCH_PAYLOAD)

    async def download_captions(self, video: str, out_dir: Path):
        self.caption_requests.append((video, out_dir))
        return None


class PipelineStub:
    def __init__(self) -> None:
        self.full_calls: list[dict] = []
        self.video_calls: list[str] = []

    async def execute_full_pipeline(self, params=None, search_results=None, run_log=None):
        self.full_calls.append({"params": params, "search_results": search_results})
        return []

    async def execute_video_pipeline(self, video_url_or_id: str, run_log=None):
        self.video_calls.append(video_url_or_id)
        return None


def create_test_config(tmp_path: Path, **overrides) -> WorkerConfig:
    values = dict(
        youtube_api_key="yt-key",
        gemini_api_key="gemini-key",
        supabase_url="https://test.supabase.co",
        supabase_key="test-key",
        work_dir=str(tmp_path),
        persist_recipes=True,
        search_timeout_seconds=5,
        download_timeout_seconds=60,
    )
    values.update(overrides)
    return WorkerConfig(**values)


class TestWorkerConfig:
    def test_complete_config_is_valid(self, tmp_path: Path) -> None:
        assert create_test_config(tmp_path).validate() == []

    def test_missing_keys_are_reported(self, tmp_path: Path) -> None:
        config = create_test_config(tmp_path, youtube_api_key="", gemini_api_key="", supabase_key="")

        errors = config.validate()

        assert "YOUTUBE_API_KEY is required" in errors
        assert "GEMINI_API_KEY is required" in errors
        assert "SUPABASE_SERVICE_ROLE_KEY is required" in errors

    def test_download_commands_need_no_keys(self, tmp_path: Path) -> None:
        config = create_test_config(tmp_path, youtube_api_key="", gemini_api_key="", supabase_url="", supabase_key="")
        assert config.validate(needs_search=False, needs_models=False) == []

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("YOUTUBE_API_KEY", "from-env")
        monkeypatch.setenv("INGESTOR_PERSIST_RECIPES", "false")
        monkeypatch.setenv("SEARCH_TIMEOUT_SECONDS", "7.5")

        config = WorkerConfig()

        assert config.youtube_api_key == "from-env"
        assert config.persist_recipes is False
        assert config.search_timeout_seconds == 7.5


class TestParser:
    def test_search_arguments(self) -> None:
        args = build_parser().parse_args(
            ["find", "-q", "pasta", "--max-results", "10", "--order", "date", "--language", "it"]
        )

        params = worker_main._search_parameters(args)

        assert params.q == "pasta"
        assert params.maxResults == 10
        assert params.order == "date"
        assert params.relevanceLanguage == "it"
        assert params.publishedAfter is None

    def test_invalid_order_is_rejected(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["find", "--order", "random"])


class TestRun:
    def test_find_writes_results(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        client = YoutubeClientStub()
        monkeypatch.setattr(worker_main, "_youtube_client", lambda config: client)
        out = tmp_path / "results" / "search.json"
        args = build_parser().parse_args(["find", "-q", "bread", "-o", str(out)])

        asyncio.run(run(args, create_test_config(tmp_path)))

        assert client.params[0].q == "bread"
        assert json.loads(out.read_text(encoding="utf-8"))["items"][0]["id"]["videoId"] == "dQw4w9WgXcQ"

    def test_download_captions_uses_video_directory(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        client = YoutubeClientStub()
        monkeypatch.setattr(worker_main, "_youtube_client", lambda config: client)
        args = build_parser().parse_args(["download-captions", "https://youtu.be/dQw4w9WgXcQ"])

        assert asyncio.run(run(args, create_test_config(tmp_path))) is None
        assert client.caption_requests == [("https://youtu.be/dQw4w9WgXcQ", tmp_path / "dQw4w9WgXcQ")]

    def test_full_pipeline_from_file_skips_search(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        pipeline = PipelineStub()
        monkeypatch.setattr(worker_main, "_pipeline", lambda config: pipeline)
        saved = tmp_path / "youtube-search-results.json"
        saved.write_text(json.dumps(SEARCH_PAYLOAD), encoding="utf-8")
        args = build_parser().parse_args(["full-pipeline", "--from-file", str(saved)])

        asyncio.run(run(args, create_test_config(tmp_path)))

        call = pipeline.full_calls[0]
        assert call["params"] is None
        assert call["search_results"].items[0].video_id == "dQw4w9WgXcQ"

    def test_video_pipeline(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        pipeline = PipelineStub()
        monkeypatch.setattr(worker_main, "_pipeline", lambda config: pipeline)
        args = build_parser().parse_args(["video-pipeline", "dQw4w9WgXcQ"])

        asyncio.run(run(args, create_test_config(tmp_path)))

        assert pipeline.video_calls == ["dQw4w9WgXcQ"]


class TestMain:
    def test_invalid_configuration_exits_with_code_2(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(worker_main, "load_dotenv", lambda: None)
        monkeypatch.setattr(worker_main, "get_config", lambda: create_test_config(tmp_path, youtube_api_key=""))

        assert worker_main.main(["find", "-q", "soup"]) == 2
