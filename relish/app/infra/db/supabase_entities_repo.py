from __future__ import annotations

import json
import logging
from typing import Any, Optional

from starlette.concurrency import run_in_threadpool
from supabase import Client, create_client

from relish.app.domain.errors import EntityRepositoryError
from relish.app.domain.models import CanonicalEntity, EntityKind, VectorSearchHit
from relish.app.infra.db.base import (
    DEFAULT_CANDIDATE_POOL,
    DEFAULT_MATCH_COUNT,
    EntityRepository,
    RecipeRepository,
)
from relish.services.persist_models import FinalRecipeRecord, RecipeProvenance, RecipeRow

logger = logging.getLogger(__name__)

MATCH_ENTITIES_RPC = "match_entities"
RECIPES_TABLE = "recipes"


def _require_str(row: dict[str, Any], key: str, operation: str) -> str:
    value = row.get(key)
    if value is None or value == "":
        raise EntityRepositoryError(operation, f"row is missing '{key}': {row!r}")
    return str(value)


def _parse_embedding(value: object) -> list[float]:
    # PostgREST returns pgvector columns as their text form
    if isinstance(value, str):
        value = json.loads(value)
    if isinstance(value, list):
        return [float(v) for v in value]
    return []


def _row_to_hit(row: dict[str, Any]) -> VectorSearchHit:
    score = row.get("similarity")
    if not isinstance(score, (int, float)):
        raise EntityRepositoryError("vector_search", f"row has no numeric similarity: {row!r}")
    return VectorSearchHit(
        id=_require_str(row, "id", "vector_search"),
        name=_require_str(row, "name", "vector_search"),
        similarity_score=float(score),
    )


def _row_to_entity(kind: EntityKind, row: dict[str, Any], operation: str) -> CanonicalEntity:
    return CanonicalEntity(
        id=_require_str(row, "id", operation),
        kind=kind,
        name=_require_str(row, "name", operation),
        name_embedding=_parse_embedding(row.get("name_embedding")),
    )


def create_supabase_client(url: str, key: str) -> Client:
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY required")
    return create_client(url, key)


class SupabaseEntityRepository(EntityRepository):
    def __init__(self, client: Client):
        self._client = client

    def _vector_search_sync(
        self,
        kind: EntityKind,
        embedding: list[float],
        limit: int,
        candidate_pool: int,
    ) -> list[VectorSearchHit]:
        try:
            result = self._client.rpc(
                MATCH_ENTITIES_RPC,
                {
                    "p_kind": kind.value,
                    "query_embedding": embedding,
                    "match_count": limit,
                    "candidate_pool": candidate_pool,
                },
            ).execute()
        except (ConnectionError, TimeoutError) as error:
            logger.error("Network error during %s vector search: %s", kind.value, error)
            raise EntityRepositoryError("vector_search", str(error)) from error

        hits = [_row_to_hit(row) for row in result.data or []]
        hits.sort(key=lambda hit: hit.similarity_score, reverse=True)
        return hits[:limit]

    async def vector_search(
        self,
        kind: EntityKind,
        embedding: list[float],
        limit: int = DEFAULT_MATCH_COUNT,
        candidate_pool: int = DEFAULT_CANDIDATE_POOL,
    ) -> list[VectorSearchHit]:
        return await run_in_threadpool(
            self._vector_search_sync, kind, embedding, limit, candidate_pool
        )

    def _get_sync(self, kind: EntityKind, entity_id: str) -> Optional[CanonicalEntity]:
        try:
            result = (
                self._client.table(kind.collection)
                .select("id, name")
                .eq("id", entity_id)
                .limit(1)
                .execute()
            )
        except (ConnectionError, TimeoutError) as error:
            logger.error("Network error fetching %s %s: %s", kind.value, entity_id, error)
            raise EntityRepositoryError("get", str(error)) from error

        if not result.data:
            return None
        return _row_to_entity(kind, result.data[0], "get")

    async def get(self, kind: EntityKind, entity_id: str) -> Optional[CanonicalEntity]:
        return await run_in_threadpool(self._get_sync, kind, entity_id)

    def _create_sync(self, kind: EntityKind, name: str, embedding: list[float]) -> CanonicalEntity:
        try:
            result = (
                self._client.table(kind.collection)
                .insert({"name": name, "name_embedding": embedding})
                .execute()
            )
        except (ConnectionError, TimeoutError) as error:
            logger.error("Network error creating %s %r: %s", kind.value, name, error)
            raise EntityRepositoryError("create", str(error)) from error

        if not result.data:
            raise EntityRepositoryError("create", f"insert of {kind.value} {name!r} returned no row")

        entity = _row_to_entity(kind, result.data[0], "create")
        logger.info("Created %s: id=%s, name=%r", kind.value, entity.id, name)
        return entity

    async def create(self, kind: EntityKind, name: str, embedding: list[float]) -> CanonicalEntity:
        return await run_in_threadpool(self._create_sync, kind, name, embedding)


class SupabaseRecipeRepository(RecipeRepository):
    def __init__(self, client: Client):
        self._client = client

    def _save_sync(self, row: RecipeRow) -> str:
        try:
            result = self._client.table(RECIPES_TABLE).insert(row.model_dump(mode="json")).execute()
        except (ConnectionError, TimeoutError) as error:
            logger.error("Network error saving recipe %r: %s", row.dish, error)
            raise EntityRepositoryError("save_recipe", str(error)) from error

        if not result.data:
            raise EntityRepositoryError("save_recipe", f"insert of recipe {row.dish!r} returned no row")
        return _require_str(result.data[0], "id", "save_recipe")

    async def save_recipe(self, record: FinalRecipeRecord, provenance: RecipeProvenance) -> str:
        row = RecipeRow.from_record(record, provenance)
        recipe_id = await run_in_threadpool(self._save_sync, row)
        logger.info("Saved recipe: id=%s, dish=%r", recipe_id, record.dish)
        return recipe_id
