# relish/app/domain/models.py
"""
Domain models for entity resolution and pipeline bookkeeping.
These are pure data structures with no infrastructure dependencies.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Optional


class EntityKind(str, Enum):
    """Collections that hold canonical, embedding-indexed entities."""
    INGREDIENT = "ingredient"
    TOOL = "tool"
    DISH = "dish"

    @property
    def collection(self) -> str:
        return _COLLECTIONS[self]


_COLLECTIONS = {
    EntityKind.INGREDIENT: "ingredients",
    EntityKind.TOOL: "tools",
    EntityKind.DISH: "dishes",
}


class ResolutionCode(str, Enum):
    """Outcome of a semantic lookup."""
    SUCCESS = "SUCCESS"
    NOT_FOUND = "NOT_FOUND"
    DECISION_NOT_PASSED = "DECISION_NOT_PASSED"


class PipelineStage(str, Enum):
    """States of a pipeline run, in execution order."""
    DISCOVER = "DISCOVER"
    SCORE = "SCORE"
    FILTER = "FILTER"
    DOWNLOAD = "DOWNLOAD"
    EXTRACT_MEDIA = "EXTRACT_MEDIA"
    DESCRIBE = "DESCRIBE"
    FUSE = "FUSE"
    EXTRACT_RECIPE = "EXTRACT_RECIPE"
    RESOLVE = "RESOLVE"
    DONE = "DONE"


@dataclass
class CanonicalEntity:
    """A store-resident ingredient, tool or dish."""
    id: str
    kind: EntityKind
    name: str
    name_embedding: list[float] = field(default_factory=list, repr=False)


@dataclass(frozen=True)
class VectorSearchHit:
    """One row of an approximate nearest-neighbour search, closest first."""
    id: str
    name: str
    similarity_score: float


@dataclass(frozen=True)
class SemanticMatch:
    code: ResolutionCode
    candidate: Optional[VectorSearchHit] = None

    @property
    def matched(self) -> bool:
        return self.code is ResolutionCode.SUCCESS


@dataclass(frozen=True)
class ResolvedReference:
    """Binding of a free-text name to the canonical entity chosen for it."""
    name: str
    entity: CanonicalEntity
    code: ResolutionCode
    created: bool = False


@dataclass(frozen=True)
class ReferenceTarget:
    """Target of a recipe ingredient reference: an ingredient or a sub-dish."""
    kind: Literal["ingredient", "dish"]
    id: str

    @classmethod
    def ingredient(cls, entity_id: str) -> "ReferenceTarget":
        return cls(kind="ingredient", id=entity_id)

    @classmethod
    def dish(cls, entity_id: str) -> "ReferenceTarget":
        return cls(kind="dish", id=entity_id)
