from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from relish.app.config import get_settings
from relish.app.deps import build_pipeline, get_gemini, get_supabase, get_transcriber
from relish.services.pipeline import YoutubePipeline
from relish.services.types import SearchResults
from relish.services.youtube import SearchParameters, YoutubeClient, parse_video_url_or_id
from workers.ingestor.config import WorkerConfig, get_config

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("ingestor-worker")


def _add_search_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-q", "--query", default="food", help="Search query")
    parser.add_argument("--max-results", type=int, default=3, help="Results to fetch (50 max)")
    parser.add_argument(
        "--order",
        default="relevance",
        choices=["date", "rating", "relevance", "title", "viewCount"],
    )
    parser.add_argument("--published-after", help="e.g. 2025-01-01T00:00:00Z (default: last 7 days)")
    parser.add_argument("--published-before", help="e.g. 2025-01-31T00:00:00Z")
    parser.add_argument("--location", help='Latitude/longitude, e.g. "37.42307,-122.08427"')
    parser.add_argument("--location-radius", help="e.g. 100km (1000km max)")
    parser.add_argument("--language", help="ISO 639-1 relevance language")


def _search_parameters(args: argparse.Namespace) -> SearchParameters:
    return SearchParameters(
        q=args.query,
        maxResults=args.max_results,
        order=args.order,
        publishedAfter=args.published_after,
        publishedBefore=args.published_before,
        location=args.location,
        locationRadius=args.location_radius,
        relevanceLanguage=args.language,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="relish-ingestor", description="YouTube recipe ingestion")
    subcommands = parser.add_subparsers(dest="command", required=True)

    find = subcommands.add_parser("find", help="Search videos and print the raw results")
    _add_search_arguments(find)
    find.add_argument("-o", "--out", type=Path, help="Write results to this JSON file")

    for name, help_text in (
        ("download", "Download a video"),
        ("download-captions", "Download and normalize a video's captions"),
        ("video-pipeline", "Run the per-video pipeline"),
    ):
        sub = subcommands.add_parser(name, help=help_text)
        sub.add_argument("video", help="Video URL or id")

    full = subcommands.add_parser("full-pipeline", help="Search, score, filter and process videos")
    _add_search_arguments(full)
    full.add_argument("--from-file", type=Path, help="Saved search results; skips the search")

    return parser


def _youtube_client(config: WorkerConfig) -> YoutubeClient:
    return YoutubeClient(
        config.youtube_api_key,
        search_timeout_seconds=config.search_timeout_seconds,
        download_timeout_seconds=config.download_timeout_seconds,
    )


def _pipeline(config: WorkerConfig) -> YoutubePipeline:
    settings = get_settings().model_copy(update={"WORK_DIR": Path(config.work_dir)})
    pipeline = build_pipeline(settings, get_supabase(), get_gemini(), get_transcriber())
    if not config.persist_recipes:
        pipeline.ingestor = None
    return pipeline


def _load_search_results(path: Path) -> SearchResults:
    return SearchResults.model_validate_json(path.read_text(encoding="utf-8"))


async def run(args: argparse.Namespace, config: WorkerConfig) -> Optional[object]:
    work_dir = Path(config.work_dir)

    if args.command == "find":
        results = await _youtube_client(config).find_videos(_search_parameters(args))
        payload = json.dumps(results.model_dump(mode="json"), indent=2, ensure_ascii=False)
        if args.out:
            args.out.parent.mkdir(parents=True, exist_ok=True)
            args.out.write_text(payload, encoding="utf-8")
            logger.info("Search results saved to %s", args.out)
        else:
            print(payload)
        return results

    if args.command == "download":
        _, video_id = parse_video_url_or_id(args.video)
        path = await _youtube_client(config).download_video(args.video, work_dir / video_id)
        logger.info("Video saved to %s", path)
        return path

    if args.command == "download-captions":
        _, video_id = parse_video_url_or_id(args.video)
        segments = await _youtube_client(config).download_captions(args.video, work_dir / video_id)
        if segments is None:
            logger.warning("[%s] Captions not available", video_id)
        return segments

    if args.command == "video-pipeline":
        return await _pipeline(config).execute_video_pipeline(args.video)

    if args.command == "full-pipeline":
        pipeline = _pipeline(config)
        if args.from_file:
            return await pipeline.execute_full_pipeline(search_results=_load_search_results(args.from_file))
        return await pipeline.execute_full_pipeline(params=_search_parameters(args))

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    config = get_config()

    needs_search = args.command == "find" or (args.command == "full-pipeline" and not args.from_file)
    errors = config.validate(
        needs_search=needs_search,
        needs_models=args.command in ("video-pipeline", "full-pipeline"),
    )
    if errors:
        logger.error("Invalid configuration: %s", ", ".join(errors))
        return 2

    asyncio.run(run(args, config))
    return 0


if __name__ == "__main__":
    sys.exit(main())
