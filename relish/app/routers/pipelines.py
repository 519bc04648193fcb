# relish/app/routers/pipelines.py
from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from relish.app.deps import get_pipeline
from relish.app.schemas.pipelines import FullPipelineRequest, PipelineAccepted, VideoPipelineRequest
from relish.services.pipeline import YoutubePipeline
from relish.services.run_log import RunLog
from relish.services.youtube import parse_video_url_or_id

log = logging.getLogger("pipelines")
router = APIRouter(prefix="/pipelines/youtube", tags=["pipelines"])


async def _run_video_pipeline(pipeline: YoutubePipeline, video: str, run_log: RunLog) -> None:
    try:
        result = await pipeline.execute_video_pipeline(video, run_log=run_log)
        log.info(
            "pipeline.video.ok run=%s video=%s recipes=%d",
            run_log.run_id,
            result.video_id,
            len(result.recipes),
        )
    except Exception:
        log.exception("pipeline.video.fail run=%s video=%s", run_log.run_id, video)


async def _run_full_pipeline(pipeline: YoutubePipeline, body: FullPipelineRequest, run_log: RunLog) -> None:
    try:
        results = await pipeline.execute_full_pipeline(
            params=body.search,
            search_results=body.searchResults,
            run_log=run_log,
        )
        log.info("pipeline.full.ok run=%s videos=%d", run_log.run_id, len(results))
    except Exception:
        log.exception("pipeline.full.fail run=%s", run_log.run_id)


@router.post("/videos", response_model=PipelineAccepted, status_code=status.HTTP_202_ACCEPTED)
async def run_video_pipeline(
    body: VideoPipelineRequest,
    background_tasks: BackgroundTasks,
    pipeline: YoutubePipeline = Depends(get_pipeline),
) -> PipelineAccepted:
    try:
        _, video_id = parse_video_url_or_id(body.video)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    run_log = RunLog()
    background_tasks.add_task(_run_video_pipeline, pipeline, body.video, run_log)
    log.info("pipeline.video.accepted run=%s video=%s", run_log.run_id, video_id)
    return PipelineAccepted(runId=run_log.run_id, videoId=video_id)


@router.post("/search", response_model=PipelineAccepted, status_code=status.HTTP_202_ACCEPTED)
async def run_full_pipeline(
    body: FullPipelineRequest,
    background_tasks: BackgroundTasks,
    pipeline: YoutubePipeline = Depends(get_pipeline),
) -> PipelineAccepted:
    run_log = RunLog()
    background_tasks.add_task(_run_full_pipeline, pipeline, body, run_log)
    log.info("pipeline.full.accepted run=%s", run_log.run_id)
    return PipelineAccepted(runId=run_log.run_id)
