# relish/services/pipeline.py
"""
YouTube ingestion pipeline.

Full run: DISCOVER -> SCORE -> FILTER -> per video (DOWNLOAD -> EXTRACT_MEDIA
-> DESCRIBE -> FUSE -> EXTRACT_RECIPE -> RESOLVE) -> DONE.

Scoring runs concurrently; videos are processed one at a time. A failing
video is logged and skipped; an index/store divergence stops the run.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

from relish.app.domain.errors import EntityConsistencyError
from relish.app.domain.models import PipelineStage
from relish.services.describe import FrameDescriber, NarrativeFuser
from relish.services.errors import CommandError
from relish.services.extract_recipe import RecipeExtractor
from relish.services.entity_resolver import RecipeIngestor
from relish.services.likelihood import RecipeLikelihoodScorer
from relish.services.media import MediaToolchain
from relish.services.persist_models import FinalRecipeRecord, RecipeProvenance
from relish.services.run_log import RunLog, video_extra
from relish.services.transcribe import TranscriptionService
from relish.services.types import (
    RecipeWithMetadata,
    ScoredItem,
    SearchResultItem,
    SearchResults,
    TimestampedSegment,
)
from relish.services.youtube import SearchParameters, YoutubeClient, parse_video_url_or_id

DEFAULT_LIKELIHOOD_THRESHOLD = 3

SEARCH_RESULTS_FILE = "youtube-search-results.json"
SCORED_RESULTS_FILE = "youtube-scored-results.json"
RUN_LOG_FILE = "run-log.json"
FRAMES_DIR = "frames"
AUDIO_FILE = "audio.mp3"
FRAMES_DESCRIPTION_FILE = "frames-description.json"
TRANSCRIPTION_FILE = "transcription.json"
DESCRIPTION_FILE = "description.txt"
RECIPE_FILE = "recipe.json"


@dataclass
class VideoPipelineResult:
    video_id: str
    recipes: list[RecipeWithMetadata] = field(default_factory=list)
    records: list[FinalRecipeRecord] = field(default_factory=list)
    captions_available: bool = False


def filter_scored(items: Sequence[ScoredItem], threshold: int) -> list[ScoredItem]:
    """Keep items with a score at or above ``threshold``; unscored items are dropped."""
    return [item for item in items if item.score is not None and item.score >= threshold]


def _write_json(path: Path, payload: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def _dump_segments(segments: Sequence[TimestampedSegment]) -> list[dict[str, Any]]:
    return [segment.model_dump() for segment in segments]


def _metadata_str(metadata: Optional[dict[str, Any]], key: str) -> Optional[str]:
    if not metadata:
        return None
    value = metadata.get(key)
    return str(value) if value else None


class YoutubePipeline:
    def __init__(
        self,
        youtube: YoutubeClient,
        media: MediaToolchain,
        transcriber: TranscriptionService,
        frame_describer: FrameDescriber,
        fuser: NarrativeFuser,
        extractor: RecipeExtractor,
        scorer: RecipeLikelihoodScorer,
        work_dir: Path,
        ingestor: Optional[RecipeIngestor] = None,
        threshold: int = DEFAULT_LIKELIHOOD_THRESHOLD,
    ) -> None:
        self.youtube = youtube
        self.media = media
        self.transcriber = transcriber
        self.frame_describer = frame_describer
        self.fuser = fuser
        self.extractor = extractor
        self.scorer = scorer
        self.work_dir = work_dir
        self.ingestor = ingestor
        self.threshold = threshold

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    async def _score_item(self, item: SearchResultItem, log: logging.Logger) -> ScoredItem:
        extra = video_extra(item.video_id)
        try:
            score: Optional[int] = await self.scorer.score(
                json.dumps(item.model_dump(mode="json"), indent=2, ensure_ascii=False)
            )
            log.info("[%s] Recipe likelihood: %s", item.video_id, score, extra=extra)
        except Exception as error:
            score = None
            log.error("[%s] Failed to compute recipe likelihood: %s", item.video_id, error, extra=extra)
        return ScoredItem(score=score, metadata=item)

    async def score_items(
        self,
        items: Sequence[SearchResultItem],
        log: Optional[logging.Logger] = None,
    ) -> list[ScoredItem]:
        """Score every item concurrently; a failed score is recorded as None."""
        log = log or logging.getLogger(__name__)
        return list(await asyncio.gather(*(self._score_item(item, log) for item in items)))

    # ------------------------------------------------------------------
    # Full pipeline
    # ------------------------------------------------------------------

    async def execute_full_pipeline(
        self,
        params: Optional[SearchParameters] = None,
        search_results: Optional[SearchResults] = None,
        run_log: Optional[RunLog] = None,
    ) -> list[VideoPipelineResult]:
        """
        Discover, score and filter videos, then process the survivors in order.

        Pass ``search_results`` (a saved search payload) to skip discovery.
        """
        run_log = run_log or RunLog()
        with run_log:
            try:
                return await self._run_full(params, search_results, run_log.logger)
            finally:
                run_log.flush_to(self.work_dir / RUN_LOG_FILE)

    async def _run_full(
        self,
        params: Optional[SearchParameters],
        search_results: Optional[SearchResults],
        log: logging.Logger,
    ) -> list[VideoPipelineResult]:
        if search_results is None:
            log.info("%s: searching for videos", PipelineStage.DISCOVER.value)
            search_results = await self.youtube.find_videos(params, log=log)
            _write_json(self.work_dir / SEARCH_RESULTS_FILE, search_results.model_dump(mode="json"))
        log.info(
            "Food data fetched, %d records returned (%d total)",
            len(search_results.items),
            search_results.pageInfo.totalResults,
        )

        log.info("%s: evaluating recipe likelihood for each video", PipelineStage.SCORE.value)
        scored = await self.score_items(search_results.items, log)
        scored_path = _write_json(
            self.work_dir / SCORED_RESULTS_FILE,
            [item.model_dump(mode="json") for item in scored],
        )
        log.info("Scored results saved to %s", scored_path)

        log.info(
            "%s: discarding videos with likelihood less than %d/5",
            PipelineStage.FILTER.value,
            self.threshold,
        )
        selected = filter_scored(scored, self.threshold)
        log.info("%d of %d videos selected for processing", len(selected), len(scored))

        results: list[VideoPipelineResult] = []
        for index, item in enumerate(selected):
            video_id = item.metadata.video_id
            try:
                results.append(await self._run_video(video_id, log, index=index))
            except EntityConsistencyError:
                raise
            except CommandError as error:
                extra = video_extra(video_id)
                log.error("[%s] %s", video_id, error, extra=extra)
                log.error("[%s] stdout: %s", video_id, error.stdout, extra=extra)
                log.error("[%s] stderr: %s", video_id, error.stderr, extra=extra)
            except Exception as error:
                log.error("[%s] Video pipeline failed: %s", video_id, error, extra=video_extra(video_id))

        log.info("%s: %d video(s) processed", PipelineStage.DONE.value, len(results))
        return results

    # ------------------------------------------------------------------
    # Per-video pipeline
    # ------------------------------------------------------------------

    async def execute_video_pipeline(
        self,
        video_url_or_id: str,
        run_log: Optional[RunLog] = None,
    ) -> VideoPipelineResult:
        _, video_id = parse_video_url_or_id(video_url_or_id)
        run_log = run_log or RunLog()
        with run_log:
            try:
                return await self._run_video(video_url_or_id, run_log.logger)
            finally:
                run_log.flush_to(self.work_dir / video_id / RUN_LOG_FILE)

    async def _run_video(
        self,
        video_url_or_id: str,
        log: logging.Logger,
        index: Optional[int] = None,
    ) -> VideoPipelineResult:
        _, video_id = parse_video_url_or_id(video_url_or_id)
        extra = video_extra(video_id)
        video_dir = self.work_dir / video_id

        def step(stage: PipelineStage, message: str, *args: object) -> None:
            log.info(f"[%s] %s: {message}", video_id, stage.value, *args, extra=extra)

        step(PipelineStage.DOWNLOAD, "downloading video")
        video_path = await self.youtube.download_video(video_url_or_id, video_dir)
        captions = await self.youtube.download_captions(video_url_or_id, video_dir, log=log)

        duration = await self.media.get_duration(video_path, log=log)
        step(PipelineStage.EXTRACT_MEDIA, "extracting %d frames", int(duration or 0))
        frames = await self.media.extract_frames(video_path, video_dir / FRAMES_DIR, log=log)

        step(PipelineStage.DESCRIBE, "describing %d frames", len(frames))
        frames_description = await self.frame_describer.describe(frames, log=log)
        _write_json(video_dir / FRAMES_DESCRIPTION_FILE, _dump_segments(frames_description))

        step(PipelineStage.EXTRACT_MEDIA, "extracting audio track")
        audio_path = await self.media.extract_audio(video_path, video_dir / AUDIO_FILE)

        step(PipelineStage.EXTRACT_MEDIA, "transcribing audio track")
        transcription = await self.transcriber.transcribe(audio_path, log=log)
        _write_json(video_dir / TRANSCRIPTION_FILE, _dump_segments(transcription.segments))

        step(PipelineStage.FUSE, "putting it all together")
        if captions is None:
            log.warning("[%s] Captions not available", video_id, extra=extra)
        description = await self.fuser.fuse(captions, transcription.segments, frames_description)
        (video_dir / DESCRIPTION_FILE).write_text(description, encoding="utf-8")

        step(PipelineStage.EXTRACT_RECIPE, "extracting formatted recipe")
        extraction = await self.extractor.extract(description, log=log)

        step(PipelineStage.EXTRACT_RECIPE, "fetching detailed metadata")
        metadata = await self.youtube.fetch_detailed_metadata(video_url_or_id, log=log)
        language = _metadata_str(metadata, "language")
        location = _metadata_str(metadata, "location")

        recipes = [
            RecipeWithMetadata(
                **recipe.model_dump(),
                modelConfidence=extraction.confidence,
                language=language,
                location=location,
                source=video_id if index is not None else None,
                index=index,
            )
            for recipe in extraction.result
        ]
        recipe_path = _write_json(
            video_dir / RECIPE_FILE,
            [recipe.model_dump(mode="json", exclude_none=True) for recipe in recipes],
        )
        step(PipelineStage.EXTRACT_RECIPE, "result saved to %s", recipe_path)

        records: list[FinalRecipeRecord] = []
        if self.ingestor is not None and extraction.result:
            step(PipelineStage.RESOLVE, "linking %d recipe(s) to database entities", len(recipes))
            provenance = RecipeProvenance(
                source_video_id=video_id,
                batch_index=index,
                model_confidence=extraction.confidence,
                language=language,
                location=location,
            )
            records = await self.ingestor.ingest(
                extraction.result,
                [provenance] * len(extraction.result),
                log=log,
            )

        step(PipelineStage.DONE, "%d recipe(s) extracted", len(recipes))
        return VideoPipelineResult(
            video_id=video_id,
            recipes=recipes,
            records=records,
            captions_available=captions is not None,
        )
