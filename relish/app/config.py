from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AnyUrl, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=False,
        extra="ignore",
    )

    SUPABASE_URL: AnyUrl
    SUPABASE_SERVICE_ROLE_KEY: str
    GEMINI_API_KEY: SecretStr
    YOUTUBE_API_KEY: SecretStr = SecretStr("")
    APP_ENV: str = "local"

    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_DECISION_MODEL: str = "gemini-2.5-flash-lite"
    EMBEDDING_MODEL: str = "gemini-embedding-001"
    EMBEDDING_DIMENSIONS: int = 1536

    WHISPER_MODEL: str = "medium"
    WHISPER_DEVICE: str = "auto"  # auto, cuda, cpu
    WHISPER_BEAM_SIZE: int = 5
    TRANSCRIPTION_LANGUAGE: Optional[str] = None

    WORK_DIR: Path = Path("data/tmp")
    RECIPE_LIKELIHOOD_THRESHOLD: int = 3
    FRAMES_PER_SECOND: int = 1
    MAX_FRAME_EDGE: int = 1080

    COMMAND_TIMEOUT_SECONDS: float = 600
    DOWNLOAD_TIMEOUT_SECONDS: float = 900
    MODEL_TIMEOUT_SECONDS: float = 180
    TRANSCRIPTION_TIMEOUT_SECONDS: float = 1800
    SEARCH_TIMEOUT_SECONDS: float = 15


@lru_cache
def get_settings() -> Settings:
    return Settings()
