# relish/app/infra/db/base.py
"""
Abstract repositories for canonical entities and final recipes.
The store is treated as a document store with CRUD plus vector search.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from relish.app.domain.models import CanonicalEntity, EntityKind, VectorSearchHit
from relish.services.persist_models import FinalRecipeRecord, RecipeProvenance

DEFAULT_MATCH_COUNT = 5
DEFAULT_CANDIDATE_POOL = 200


class EntityRepository(ABC):
    """
    Canonical ingredients, tools and dishes with name embeddings.

    Implementations:
    - SupabaseEntityRepository: pgvector tables plus the match_entities RPC
    """

    @abstractmethod
    async def vector_search(
        self,
        kind: EntityKind,
        embedding: list[float],
        limit: int = DEFAULT_MATCH_COUNT,
        candidate_pool: int = DEFAULT_CANDIDATE_POOL,
    ) -> list[VectorSearchHit]:
        """
        Approximate nearest-neighbour search by cosine similarity.

        Args:
            kind: Collection to search
            embedding: Query vector
            limit: Max hits returned
            candidate_pool: Candidates considered before ranking

        Returns:
            Hits ordered by descending similarity (possibly empty)
        """

    @abstractmethod
    async def get(self, kind: EntityKind, entity_id: str) -> Optional[CanonicalEntity]:
        """Fetch one entity by id, or None if it does not exist."""

    @abstractmethod
    async def create(self, kind: EntityKind, name: str, embedding: list[float]) -> CanonicalEntity:
        """Insert a new canonical entity and return it."""


class RecipeRepository(ABC):
    @abstractmethod
    async def save_recipe(
        self,
        record: FinalRecipeRecord,
        provenance: RecipeProvenance,
    ) -> str:
        """
        Persist a final recipe record.

        Returns:
            The id of the stored recipe
        """
