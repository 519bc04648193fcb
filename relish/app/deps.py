# relish/app/deps.py
from __future__ import annotations

from functools import lru_cache

from fastapi import Depends
from supabase import Client

from relish.app.config import Settings, get_settings
from relish.app.infra.db.supabase_entities_repo import (
    SupabaseEntityRepository,
    SupabaseRecipeRepository,
    create_supabase_client,
)
from relish.services.describe import FrameDescriber, NarrativeFuser
from relish.services.entity_resolver import EntityResolver, RecipeIngestor, SameEntityJudge
from relish.services.extract_recipe import RecipeExtractor
from relish.services.gemini_client import GeminiClient, load_prompt
from relish.services.likelihood import RecipeLikelihoodScorer
from relish.services.media import MediaToolchain
from relish.services.pipeline import YoutubePipeline
from relish.services.transcribe import TranscriptionService
from relish.services.youtube import YoutubeClient


@lru_cache
def get_supabase() -> Client:
    settings = get_settings()
    return create_supabase_client(str(settings.SUPABASE_URL), settings.SUPABASE_SERVICE_ROLE_KEY)


@lru_cache
def get_gemini() -> GeminiClient:
    settings = get_settings()
    return GeminiClient(
        api_key=settings.GEMINI_API_KEY.get_secret_value(),
        model_name=settings.GEMINI_MODEL,
        embedding_model=settings.EMBEDDING_MODEL,
        embedding_dimensions=settings.EMBEDDING_DIMENSIONS,
        timeout_seconds=settings.MODEL_TIMEOUT_SECONDS,
    )


@lru_cache
def get_transcriber() -> TranscriptionService:
    settings = get_settings()
    return TranscriptionService(
        model_name=settings.WHISPER_MODEL,
        device=settings.WHISPER_DEVICE,
        beam_size=settings.WHISPER_BEAM_SIZE,
        language=settings.TRANSCRIPTION_LANGUAGE,
        timeout_seconds=settings.TRANSCRIPTION_TIMEOUT_SECONDS,
    )


def build_entity_resolver(settings: Settings, supabase: Client, gemini: GeminiClient) -> EntityResolver:
    return EntityResolver(
        repository=SupabaseEntityRepository(supabase),
        embedder=gemini,
        judge=SameEntityJudge(gemini, model=settings.GEMINI_DECISION_MODEL),
    )


def build_pipeline(
    settings: Settings,
    supabase: Client,
    gemini: GeminiClient,
    transcriber: TranscriptionService,
) -> YoutubePipeline:
    ingestor = RecipeIngestor(
        build_entity_resolver(settings, supabase, gemini),
        recipe_repository=SupabaseRecipeRepository(supabase),
    )
    return YoutubePipeline(
        youtube=YoutubeClient(
            settings.YOUTUBE_API_KEY.get_secret_value(),
            search_timeout_seconds=settings.SEARCH_TIMEOUT_SECONDS,
            download_timeout_seconds=settings.DOWNLOAD_TIMEOUT_SECONDS,
        ),
        media=MediaToolchain(
            fps=settings.FRAMES_PER_SECOND,
            max_frame_edge=settings.MAX_FRAME_EDGE,
            timeout_seconds=settings.COMMAND_TIMEOUT_SECONDS,
        ),
        transcriber=transcriber,
        frame_describer=FrameDescriber(gemini),
        fuser=NarrativeFuser(gemini, prompt_appendix=load_prompt("cooking_appendix")),
        extractor=RecipeExtractor(gemini),
        scorer=RecipeLikelihoodScorer(gemini),
        work_dir=settings.WORK_DIR,
        ingestor=ingestor,
        threshold=settings.RECIPE_LIKELIHOOD_THRESHOLD,
    )


def get_entity_resolver(
    supabase: Client = Depends(get_supabase),
    gemini: GeminiClient = Depends(get_gemini),
) -> EntityResolver:
    return build_entity_resolver(get_settings(), supabase, gemini)


def get_pipeline(
    supabase: Client = Depends(get_supabase),
    gemini: GeminiClient = Depends(get_gemini),
    transcriber: TranscriptionService = Depends(get_transcriber),
) -> YoutubePipeline:
    return build_pipeline(get_settings(), supabase, gemini, transcriber)
