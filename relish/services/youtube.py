from __future__ import annotations

import asyncio
import json
import logging
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Literal, Optional
from urllib.parse import parse_qs, urlparse

import httpx
import yt_dlp
from pydantic import BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool

from relish.services.captions import vtt_to_segments
from relish.services.errors import NetworkTimeoutError, SearchApiError, VideoDownloadError
from relish.services.run_log import video_extra
from relish.services.types import SearchResults, TimestampedSegment

logger = logging.getLogger(__name__)

SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
WATCH_URL = "https://youtube.com/watch?v={video_id}"
VIDEO_FORMAT = "bestvideo[height<=480]+bestaudio/best[height<=480]"
VIDEO_OUTTMPL = "video.%(ext)s"
CAPTIONS_JSON = "captions.json"
CAPTION_LANGUAGES = ["en", "en-orig", ".*-orig"]
DEFAULT_LOOKBACK = timedelta(weeks=1)
DEFAULT_SEARCH_TIMEOUT_SECONDS = 15.0
DEFAULT_DOWNLOAD_TIMEOUT_SECONDS = 900.0

VIDEO_FILE_PATTERN = re.compile(r"\.(mp4|mkv|webm|mov|avi)$", re.IGNORECASE)
VIDEO_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{11}")

SearchOrder = Literal["date", "rating", "relevance", "title", "viewCount"]


def parse_video_url_or_id(value: str) -> tuple[str, str]:
    """
    Accept a watch URL, a youtu.be or shorts URL, or a bare id.

    Returns:
        Tuple of (url, video_id)
    """
    value = value.strip()
    if not value.startswith("http"):
        if not VIDEO_ID_PATTERN.fullmatch(value):
            raise ValueError(f"Not a video id: {value!r}")
        return WATCH_URL.format(video_id=value), value

    parsed = urlparse(value)
    video_id = parse_qs(parsed.query).get("v", [None])[0]
    if video_id is None:
        segments = [segment for segment in parsed.path.split("/") if segment]
        short_link = parsed.netloc.endswith("youtu.be")
        if segments and (short_link or segments[0] in ("shorts", "embed", "live")):
            video_id = segments[-1]
    if not video_id or not VIDEO_ID_PATTERN.fullmatch(video_id):
        raise ValueError(f"Unable to find a video id in {value!r}")
    return value, video_id


def default_published_after(now: Optional[datetime] = None) -> str:
    """Start of today (UTC) minus one week, in RFC 3339."""
    now = now or datetime.now(timezone.utc)
    start_of_day = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return (start_of_day - DEFAULT_LOOKBACK).strftime("%Y-%m-%dT%H:%M:%SZ")


class SearchParameters(BaseModel):
    q: str = "food"
    maxResults: int = 3
    order: SearchOrder = "relevance"
    publishedBefore: Optional[str] = None
    publishedAfter: Optional[str] = None
    location: Optional[str] = None
    locationRadius: Optional[str] = None
    relevanceLanguage: Optional[str] = None

    def to_query(self, api_key: str, now: Optional[datetime] = None) -> dict[str, str]:
        query: dict[str, str] = {
            "key": api_key,
            "part": "snippet",
            "type": "video",
        }
        for key, value in self.model_dump(exclude_none=True).items():
            query[key] = str(value)
        if self.publishedAfter is None and self.publishedBefore is None:
            query["publishedAfter"] = default_published_after(now)
        return query


def _create_ydl_options(**overrides: Any) -> dict[str, Any]:
    options: dict[str, Any] = {
        "quiet": True,
        "noprogress": True,
        "no_warnings": True,
    }
    options.update(overrides)
    return options


def _extract_info(url: str, options: dict[str, Any], download: bool) -> dict[str, Any]:
    with yt_dlp.YoutubeDL(options) as ydl:
        return ydl.extract_info(url, download=download)


def _find_file(directory: Path, predicate) -> Optional[Path]:
    if not directory.is_dir():
        return None
    return next((p for p in sorted(directory.iterdir()) if p.is_file() and predicate(p)), None)


class YoutubeClient:
    def __init__(
        self,
        api_key: str,
        search_timeout_seconds: float = DEFAULT_SEARCH_TIMEOUT_SECONDS,
        download_timeout_seconds: float = DEFAULT_DOWNLOAD_TIMEOUT_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key
        self.search_timeout_seconds = search_timeout_seconds
        self.download_timeout_seconds = download_timeout_seconds
        self._http_client = http_client

    async def _get(self, client: httpx.AsyncClient, query: dict[str, str]) -> httpx.Response:
        try:
            return await client.get(SEARCH_URL, params=query, timeout=self.search_timeout_seconds)
        except httpx.TimeoutException as error:
            raise NetworkTimeoutError(SEARCH_URL, self.search_timeout_seconds) from error
        except httpx.HTTPError as error:
            raise SearchApiError(None, str(error)) from error

    async def find_videos(
        self,
        params: Optional[SearchParameters] = None,
        log: Optional[logging.Logger] = None,
    ) -> SearchResults:
        log = log or logger
        params = params or SearchParameters()
        query = params.to_query(self.api_key)
        log.info(
            "Fetching videos from YouTube: %s",
            {k: v for k, v in query.items() if k != "key"},
        )

        if self._http_client is not None:
            response = await self._get(self._http_client, query)
        else:
            async with httpx.AsyncClient() as client:
                response = await self._get(client, query)

        if response.status_code != 200:
            raise SearchApiError(response.status_code, response.text[:500])
        try:
            results = SearchResults.model_validate(response.json())
        except (ValueError, ValidationError) as error:
            raise SearchApiError(response.status_code, f"unexpected payload: {error}") from error

        log.info(
            "Search returned %d records (%d total)",
            len(results.items),
            results.pageInfo.totalResults,
        )
        return results

    async def _run_ydl(self, url: str, options: dict[str, Any], download: bool) -> dict[str, Any]:
        return await asyncio.wait_for(
            run_in_threadpool(_extract_info, url, options, download),
            timeout=self.download_timeout_seconds,
        )

    async def download_video(self, video_url_or_id: str, out_dir: Path) -> Path:
        url, video_id = parse_video_url_or_id(video_url_or_id)
        out_dir.mkdir(parents=True, exist_ok=True)
        options = _create_ydl_options(
            format=VIDEO_FORMAT,
            outtmpl=str(out_dir / VIDEO_OUTTMPL),
        )
        try:
            await self._run_ydl(url, options, download=True)
        except asyncio.TimeoutError as error:
            raise VideoDownloadError(
                f"Download of {video_id} timed out after {self.download_timeout_seconds}s"
            ) from error
        except yt_dlp.utils.DownloadError as error:
            raise VideoDownloadError(f"Unable to download {video_id}: {error}") from error

        video_path = _find_file(out_dir, lambda p: bool(VIDEO_FILE_PATTERN.search(p.name)))
        if video_path is None:
            raise VideoDownloadError("Unable to retrieve the path of the downloaded video")
        return video_path

    async def download_captions(
        self,
        video_url_or_id: str,
        out_dir: Path,
        log: Optional[logging.Logger] = None,
    ) -> Optional[list[TimestampedSegment]]:
        """
        Best-effort caption download.

        Writes the normalized segments to ``captions.json`` and returns them,
        or returns None when no caption track could be fetched or parsed.
        """
        log = log or logger
        url, video_id = parse_video_url_or_id(video_url_or_id)
        extra = video_extra(video_id)
        out_dir.mkdir(parents=True, exist_ok=True)
        options = _create_ydl_options(
            skip_download=True,
            writesubtitles=True,
            writeautomaticsub=True,
            subtitleslangs=CAPTION_LANGUAGES,
            subtitlesformat="vtt",
            outtmpl=str(out_dir / VIDEO_OUTTMPL),
        )
        try:
            await self._run_ydl(url, options, download=True)
        except (asyncio.TimeoutError, yt_dlp.utils.DownloadError) as error:
            log.warning("[%s] Caption download failed: %s", video_id, str(error) or "timeout", extra=extra)
            return None

        vtt_path = _find_file(out_dir, lambda p: p.suffix.lower() == ".vtt")
        if vtt_path is None:
            log.warning("[%s] No caption track found", video_id, extra=extra)
            return None

        try:
            segments = vtt_to_segments(vtt_path.read_text(encoding="utf-8"))
        except (UnicodeDecodeError, ValidationError) as error:
            log.warning("[%s] Unreadable captions in %s: %s", video_id, vtt_path.name, error, extra=extra)
            return None

        (out_dir / CAPTIONS_JSON).write_text(
            json.dumps([s.model_dump() for s in segments], indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        log.info(
            "[%s] Captions saved from %s (%d segments)",
            video_id,
            vtt_path.name,
            len(segments),
            extra=extra,
        )
        return segments

    async def fetch_detailed_metadata(
        self,
        video_url_or_id: str,
        log: Optional[logging.Logger] = None,
    ) -> Optional[dict[str, Any]]:
        """Full platform metadata; None when it cannot be fetched."""
        log = log or logger
        url, video_id = parse_video_url_or_id(video_url_or_id)
        try:
            return await self._run_ydl(url, _create_ydl_options(skip_download=True), download=False)
        except (asyncio.TimeoutError, yt_dlp.utils.DownloadError) as error:
            log.warning(
                "[%s] Detailed metadata fetch failed: %s",
                video_id,
                str(error) or "timeout",
                extra=video_extra(video_id),
            )
            return None
