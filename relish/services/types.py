"""Wire and model-output contracts shared by the pipeline stages.

Field names follow the JSON the models and the video platform exchange
(camelCase), so the same classes serve as response schemas, validators and
artifact serializers.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class TimestampedSegment(BaseModel):
    text: str
    startSecond: int
    endSecond: int

    @field_validator("startSecond", "endSecond", mode="before")
    @classmethod
    def _round_seconds(cls, value: Any) -> Any:
        if isinstance(value, float):
            return round(value)
        return value

    @model_validator(mode="after")
    def _check_range(self) -> "TimestampedSegment":
        if self.startSecond < 0 or self.endSecond < self.startSecond:
            raise ValueError(
                f"invalid segment range {self.startSecond}-{self.endSecond}"
            )
        return self


class IngredientMention(BaseModel):
    ingredientName: str
    quantity: Optional[float]
    unit: Optional[str] = Field(
        description='Set to "units" if the ingredient has a quantity but not a specific unit (e.g. 4 eggs)',
    )


class ToolMention(BaseModel):
    toolName: str
    alternativeTools: list[str]


class RecipeStep(BaseModel):
    description: str
    ingredients: list[IngredientMention]
    tools: list[ToolMention]
    prepSeconds: Optional[float]


class InitialRecipe(BaseModel):
    dish: str
    steps: list[RecipeStep]


class ExtractionResult(BaseModel):
    result: list[InitialRecipe]
    confidence: float = Field(
        ge=0,
        le=1,
        description="How certain you are about the end result",
    )


class TranscriptionResult(BaseModel):
    text: str
    segments: list[TimestampedSegment]
    language: Optional[str] = None
    duration_sec: float = 0.0
    model_version: Optional[str] = None


# ---------------------------------------------------------------------------
# Video platform search
# ---------------------------------------------------------------------------

class VideoRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    kind: str = "youtube#video"
    videoId: str


class Snippet(BaseModel):
    model_config = ConfigDict(extra="allow")

    publishedAt: Optional[str] = None
    channelId: Optional[str] = None
    title: str = ""
    description: str = ""
    thumbnails: dict[str, Any] = Field(default_factory=dict)
    channelTitle: Optional[str] = None


class SearchResultItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    kind: Optional[str] = None
    etag: Optional[str] = None
    id: VideoRef
    snippet: Snippet = Field(default_factory=Snippet)

    @property
    def video_id(self) -> str:
        return self.id.videoId


class PageInfo(BaseModel):
    totalResults: int = 0
    resultsPerPage: int = 0


class SearchResults(BaseModel):
    model_config = ConfigDict(extra="allow")

    kind: Optional[str] = None
    etag: Optional[str] = None
    nextPageToken: Optional[str] = None
    regionCode: Optional[str] = None
    pageInfo: PageInfo = Field(default_factory=PageInfo)
    items: list[SearchResultItem] = Field(default_factory=list)


class ScoredItem(BaseModel):
    score: Optional[int]
    metadata: SearchResultItem


class RecipeWithMetadata(InitialRecipe):
    """An extracted recipe with the provenance attached by the video pipeline."""

    modelConfidence: float
    language: Optional[str] = None
    location: Optional[str] = None
    source: Optional[str] = None
    index: Optional[int] = None
