# relish/services/persist_models.py
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from relish.app.domain.models import ReferenceTarget


class IngredientReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    target: ReferenceTarget
    quantity: Optional[float] = None
    unit: Optional[str] = None


class StepIngredient(BaseModel):
    model_config = ConfigDict(frozen=True)

    target: ReferenceTarget
    name: str
    quantity: Optional[float] = None
    unit: Optional[str] = None


class ToolReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool_id: str
    alternative_ids: tuple[str, ...] = ()


class FinalStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    ingredients: tuple[StepIngredient, ...] = ()
    tools: tuple[ToolReference, ...] = ()
    prep_seconds: Optional[float] = None


class FinalRecipeRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    dish: str
    dish_id: Optional[str] = None
    ingredients: tuple[IngredientReference, ...] = ()
    tools: tuple[ToolReference, ...] = ()
    steps: tuple[FinalStep, ...] = ()
    total_prep_seconds: float = 0


class RecipeProvenance(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_video_id: Optional[str] = None
    batch_index: Optional[int] = None
    model_confidence: Optional[float] = None
    language: Optional[str] = None
    location: Optional[str] = None


class RecipeRow(BaseModel):
    """Row written to the ``recipes`` table."""

    dish: str
    dish_id: Optional[str] = None
    ingredients: list[dict]
    tools: list[dict]
    steps: list[dict]
    total_prep_seconds: float
    provenance: dict = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: FinalRecipeRecord, provenance: RecipeProvenance) -> "RecipeRow":
        data = record.model_dump(mode="json", exclude_none=True)
        return cls(
            dish=data["dish"],
            dish_id=data.get("dish_id"),
            ingredients=data["ingredients"],
            tools=data["tools"],
            steps=data["steps"],
            total_prep_seconds=data["total_prep_seconds"],
            provenance=provenance.model_dump(mode="json", exclude_none=True),
        )
