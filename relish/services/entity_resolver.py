# relish/services/entity_resolver.py
"""
Semantic entity resolution.

A free-text ingredient, tool or dish name is mapped to exactly one canonical
entity: embed the name, search the collection's vector index, let a language
model confirm the closest hit, and create a new entity when nothing matches.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Iterable, Optional, Protocol, Sequence, TypeVar

from pydantic import BaseModel, ValidationError

from relish.app.domain.errors import EntityConsistencyError
from relish.app.domain.models import (
    EntityKind,
    ReferenceTarget,
    ResolutionCode,
    ResolvedReference,
    SemanticMatch,
)
from relish.app.infra.db.base import (
    DEFAULT_CANDIDATE_POOL,
    DEFAULT_MATCH_COUNT,
    EntityRepository,
    RecipeRepository,
)
from relish.services.errors import ModelResponseError
from relish.services.gemini_client import GeminiClient, load_prompt
from relish.services.persist_models import FinalRecipeRecord, RecipeProvenance
from relish.services.recipe_assembly import (
    build_final_recipe,
    collect_ingredient_names,
    collect_tool_names,
)
from relish.services.types import InitialRecipe

DECISION_TASK = "same-entity-decision"

_DECISION_PROMPTS = {
    EntityKind.INGREDIENT: "ingredient_decision",
    EntityKind.TOOL: "tool_decision",
    EntityKind.DISH: "dish_decision",
}

_QUERY_LABELS = {
    EntityKind.INGREDIENT: "Ingredient name",
    EntityKind.TOOL: "Tool name",
    EntityKind.DISH: "Dish name",
}

T = TypeVar("T")


async def gather_or_cancel(*aws: Awaitable[T]) -> list[T]:
    """
    Run ``aws`` concurrently and return their results in order.

    On the first failure the remaining tasks are cancelled and awaited before
    the error is re-raised.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


class SameEntityDecision(BaseModel):
    match: bool


class SameEntityJudge:
    """Asks a language model whether two names denote the same real-world item."""

    def __init__(self, gemini: GeminiClient, model: Optional[str] = None) -> None:
        self.gemini = gemini
        self.model = model

    async def is_same(self, kind: EntityKind, query: str, candidate_name: str) -> bool:
        raw = await self.gemini.generate_json(
            DECISION_TASK,
            load_prompt(_DECISION_PROMPTS[kind]),
            f'{_QUERY_LABELS[kind]}: "{query}"\nClosest match: "{candidate_name}"',
            schema=SameEntityDecision,
            model=self.model,
        )
        try:
            return SameEntityDecision.model_validate_json(raw).match
        except ValidationError as err:
            raise ModelResponseError(DECISION_TASK, str(err), raw=raw) from err


class EntityResolver:
    def __init__(
        self,
        repository: EntityRepository,
        embedder: Embedder,
        judge: SameEntityJudge,
        match_count: int = DEFAULT_MATCH_COUNT,
        candidate_pool: int = DEFAULT_CANDIDATE_POOL,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.repository = repository
        self.embedder = embedder
        self.judge = judge
        self.match_count = match_count
        self.candidate_pool = candidate_pool
        self.logger = logger or logging.getLogger(__name__)

    async def find_semantically(
        self,
        kind: EntityKind,
        query: str,
        embedding: Optional[list[float]] = None,
    ) -> SemanticMatch:
        query_embedding = embedding if embedding is not None else await self.embedder.embed(query)
        hits = await self.repository.vector_search(
            kind,
            query_embedding,
            limit=self.match_count,
            candidate_pool=self.candidate_pool,
        )
        if not hits:
            return SemanticMatch(ResolutionCode.NOT_FOUND)

        closest = max(hits, key=lambda hit: hit.similarity_score)
        if await self.judge.is_same(kind, query, closest.name):
            return SemanticMatch(ResolutionCode.SUCCESS, closest)
        return SemanticMatch(ResolutionCode.DECISION_NOT_PASSED, closest)

    async def find_or_create(
        self,
        kind: EntityKind,
        name: str,
        log: Optional[logging.Logger] = None,
    ) -> ResolvedReference:
        log = log or self.logger
        log.info('Searching for "%s" %s references', name, kind.value)
        embedding = await self.embedder.embed(name)
        match = await self.find_semantically(kind, name, embedding=embedding)

        if match.matched:
            entity = await self.repository.get(kind, match.candidate.id)
            if entity is None:
                raise EntityConsistencyError(kind.collection, match.candidate.id)
            log.info('Reference found for "%s": %s', name, entity.id)
            return ResolvedReference(name=name, entity=entity, code=match.code)

        log.info(
            'No reference found for "%s" (%s): creating new %s',
            name,
            match.code.value,
            kind.value,
        )
        entity = await self.repository.create(kind, name, embedding)
        return ResolvedReference(name=name, entity=entity, code=match.code, created=True)

    async def resolve_names(
        self,
        kind: EntityKind,
        names: Iterable[str],
        log: Optional[logging.Logger] = None,
    ) -> dict[str, ResolvedReference]:
        """
        Resolve each distinct name once, all names concurrently.

        The first failure cancels the lookups still in flight.
        """
        log = log or self.logger
        unique_names = list(dict.fromkeys(names))
        if not unique_names:
            return {}
        log.info("Finding %d %s name(s) in the database", len(unique_names), kind.value)
        resolved = await gather_or_cancel(
            *(self.find_or_create(kind, name, log=log) for name in unique_names)
        )
        return {reference.name: reference for reference in resolved}


def _ids(references: dict[str, ResolvedReference]) -> dict[str, str]:
    return {name: reference.entity.id for name, reference in references.items()}


class RecipeIngestor:
    """
    Links a batch of extracted recipes to canonical entities and persists them.

    An ingredient whose name is also the dish of another recipe in the same
    batch references that dish instead of an ingredient.
    """

    def __init__(
        self,
        resolver: EntityResolver,
        recipe_repository: Optional[RecipeRepository] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.resolver = resolver
        self.recipe_repository = recipe_repository
        self.logger = logger or logging.getLogger(__name__)

    async def link_entities(
        self,
        recipes: Sequence[InitialRecipe],
        log: Optional[logging.Logger] = None,
    ) -> list[FinalRecipeRecord]:
        dish_names = list(dict.fromkeys(recipe.dish for recipe in recipes))
        dish_keys = {name.casefold(): name for name in dish_names}

        ingredient_names = collect_ingredient_names(recipes)
        sub_dishes = {
            name: dish_keys[name.casefold()]
            for name in ingredient_names
            if name.casefold() in dish_keys
        }
        plain_ingredients = [name for name in ingredient_names if name not in sub_dishes]

        dishes, ingredients, tools = await gather_or_cancel(
            self.resolver.resolve_names(EntityKind.DISH, dish_names, log=log),
            self.resolver.resolve_names(EntityKind.INGREDIENT, plain_ingredients, log=log),
            self.resolver.resolve_names(EntityKind.TOOL, collect_tool_names(recipes), log=log),
        )

        targets: dict[str, ReferenceTarget] = {
            name: ReferenceTarget.ingredient(reference.entity.id)
            for name, reference in ingredients.items()
        }
        for name, dish_name in sub_dishes.items():
            targets[name] = ReferenceTarget.dish(dishes[dish_name].entity.id)

        tool_ids = _ids(tools)
        return [
            build_final_recipe(recipe, targets, tool_ids, dish_id=dishes[recipe.dish].entity.id)
            for recipe in recipes
        ]

    async def ingest(
        self,
        recipes: Sequence[InitialRecipe],
        provenances: Sequence[RecipeProvenance],
        log: Optional[logging.Logger] = None,
    ) -> list[FinalRecipeRecord]:
        """Link ``recipes`` and save each with the provenance at the same position."""
        if len(recipes) != len(provenances):
            raise ValueError(
                f"Got {len(provenances)} provenance(s) for {len(recipes)} recipe(s)"
            )
        log = log or self.logger
        records = await self.link_entities(recipes, log=log)
        if self.recipe_repository is not None:
            for record, provenance in zip(records, provenances):
                await self.recipe_repository.save_recipe(record, provenance)
            log.info("Saved %d recipe(s)", len(records))
        return records
