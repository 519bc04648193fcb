# workers/ingestor/config.py
"""
Configuration for the ingestion CLI worker.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class WorkerConfig:
    """Configuration for the ingestion worker."""

    # API keys
    youtube_api_key: str = field(default_factory=lambda: os.getenv("YOUTUBE_API_KEY", ""))
    gemini_api_key: str = field(default_factory=lambda: os.getenv("GEMINI_API_KEY", ""))

    # Supabase
    supabase_url: str = field(default_factory=lambda: os.getenv("SUPABASE_URL", ""))
    supabase_key: str = field(default_factory=lambda: os.getenv("SUPABASE_SERVICE_ROLE_KEY", ""))

    # Per-run artifacts
    work_dir: str = field(default_factory=lambda: os.getenv("WORK_DIR", "data/tmp"))

    # Link and save extracted recipes; false only writes the artifacts
    persist_recipes: bool = field(default_factory=lambda: os.getenv("INGESTOR_PERSIST_RECIPES", "true").lower() == "true")

    search_timeout_seconds: float = field(default_factory=lambda: float(os.getenv("SEARCH_TIMEOUT_SECONDS", "15")))
    download_timeout_seconds: float = field(default_factory=lambda: float(os.getenv("DOWNLOAD_TIMEOUT_SECONDS", "900")))

    def validate(self, needs_search: bool = True, needs_models: bool = True) -> list[str]:
        """Validate configuration and return list of errors."""
        errors: list[str] = []

        if needs_search and not self.youtube_api_key:
            errors.append("YOUTUBE_API_KEY is required")
        if needs_models and not self.gemini_api_key:
            errors.append("GEMINI_API_KEY is required")
        if needs_models and not self.supabase_url:
            errors.append("SUPABASE_URL is required")
        if needs_models and not self.supabase_key:
            errors.append("SUPABASE_SERVICE_ROLE_KEY is required")

        return errors


def get_config() -> WorkerConfig:
    """Get worker configuration from environment."""
    return WorkerConfig()
