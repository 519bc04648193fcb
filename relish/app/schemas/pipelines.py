from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from relish.services.types import SearchResults
from relish.services.youtube import SearchParameters


class VideoPipelineRequest(BaseModel):
    video: str = Field(description="YouTube watch URL, short URL or bare video id")


class FullPipelineRequest(BaseModel):
    search: Optional[SearchParameters] = None
    searchResults: Optional[SearchResults] = Field(
        default=None,
        description="Previously saved search payload; skips discovery when set",
    )


class PipelineAccepted(BaseModel):
    accepted: bool = True
    runId: str
    videoId: Optional[str] = None
