# relish/services/recipe_assembly.py
"""
Pure folds that turn extracted recipes into final, id-linked records.

Nothing here performs I/O: name collection, tool-alternative merging and
quantity aggregation are plain functions over immutable intermediate state.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import reduce
from typing import Iterable, Mapping, Optional, Sequence

from relish.app.domain.errors import UnknownEntityError
from relish.app.domain.models import ReferenceTarget
from relish.services.persist_models import (
    FinalRecipeRecord,
    FinalStep,
    IngredientReference,
    StepIngredient,
    ToolReference,
)
from relish.services.types import IngredientMention, InitialRecipe, ToolMention

MergedTool = tuple[str, tuple[str, ...]]


def _unique(names: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(names))


def collect_ingredient_names(recipes: Sequence[InitialRecipe]) -> list[str]:
    """Distinct ingredient names across every step of every recipe, in first-seen order."""
    return _unique(
        ingredient.ingredientName
        for recipe in recipes
        for step in recipe.steps
        for ingredient in step.ingredients
    )


def collect_tool_names(recipes: Sequence[InitialRecipe]) -> list[str]:
    """Flat pool of tool and alternative-tool names, deduplicated."""
    return _unique(
        name
        for recipe in recipes
        for step in recipe.steps
        for tool in step.tools
        for name in (tool.toolName, *tool.alternativeTools)
    )


def _merge_tool(acc: tuple[MergedTool, ...], tool: ToolMention) -> tuple[MergedTool, ...]:
    for index, (name, alternatives) in enumerate(acc):
        if name == tool.toolName:
            merged = (name, tuple(_unique((*alternatives, *tool.alternativeTools))))
            return acc[:index] + (merged,) + acc[index + 1:]
    return acc + ((tool.toolName, tuple(_unique(tool.alternativeTools))),)


def merge_tool_alternatives(tools: Iterable[ToolMention]) -> tuple[MergedTool, ...]:
    """Fold tool mentions into one entry per tool name with the union of alternatives."""
    return reduce(_merge_tool, tools, ())


def normalize_unit(unit: str) -> str:
    normalized = unit.strip().casefold().rstrip(".")
    if len(normalized) > 2 and normalized.endswith("s") and not normalized.endswith("ss"):
        normalized = normalized[:-1]
    return normalized


@dataclass(frozen=True)
class QuantityTotal:
    quantity: float = 0
    unit: Optional[str] = None
    partial: bool = False


def _add_quantity(acc: QuantityTotal, mention: IngredientMention) -> QuantityTotal:
    if acc.partial:
        return acc
    if mention.quantity is None or not mention.unit:
        return QuantityTotal(partial=True)
    if acc.unit is not None and normalize_unit(acc.unit) != normalize_unit(mention.unit):
        return QuantityTotal(partial=True)
    return QuantityTotal(
        quantity=acc.quantity + mention.quantity,
        unit=acc.unit if acc.unit is not None else mention.unit,
    )


def aggregate_quantity(mentions: Sequence[IngredientMention]) -> Optional[tuple[float, str]]:
    """
    Sum the quantities of one ingredient across steps.

    Returns None (no aggregate) if any mention lacks a quantity or unit, or
    if units disagree. The first unit as written is kept.
    """
    if not mentions:
        return None
    total = reduce(_add_quantity, mentions, QuantityTotal())
    if total.partial or total.unit is None:
        return None
    return total.quantity, total.unit


def _lookup(mapping: Mapping[str, object], name: str):
    try:
        return mapping[name]
    except KeyError:
        raise UnknownEntityError(name) from None


def _tool_reference(
    name: str,
    alternatives: Iterable[str],
    tool_ids: Mapping[str, str],
) -> ToolReference:
    return ToolReference(
        tool_id=_lookup(tool_ids, name),
        alternative_ids=tuple(_lookup(tool_ids, alt) for alt in alternatives),
    )


def build_final_recipe(
    recipe: InitialRecipe,
    ingredient_targets: Mapping[str, ReferenceTarget],
    tool_ids: Mapping[str, str],
    dish_id: Optional[str] = None,
) -> FinalRecipeRecord:
    """
    Replace every ingredient and tool name of ``recipe`` with its canonical id.

    Ingredient and tool lists only cover what this recipe uses.
    """
    mentions = [ingredient for step in recipe.steps for ingredient in step.ingredients]

    ingredients: list[IngredientReference] = []
    for name in _unique(m.ingredientName for m in mentions):
        amount = aggregate_quantity([m for m in mentions if m.ingredientName == name])
        ingredients.append(
            IngredientReference(
                target=_lookup(ingredient_targets, name),
                quantity=amount[0] if amount else None,
                unit=amount[1] if amount else None,
            )
        )

    merged_tools = merge_tool_alternatives(tool for step in recipe.steps for tool in step.tools)

    steps = tuple(
        FinalStep(
            description=step.description,
            ingredients=tuple(
                StepIngredient(
                    target=_lookup(ingredient_targets, i.ingredientName),
                    name=i.ingredientName,
                    quantity=i.quantity,
                    unit=i.unit,
                )
                for i in step.ingredients
            ),
            tools=tuple(
                _tool_reference(t.toolName, t.alternativeTools, tool_ids) for t in step.tools
            ),
            prep_seconds=step.prepSeconds,
        )
        for step in recipe.steps
    )

    return FinalRecipeRecord(
        dish=recipe.dish,
        dish_id=dish_id,
        ingredients=tuple(ingredients),
        tools=tuple(_tool_reference(name, alts, tool_ids) for name, alts in merged_tools),
        steps=steps,
        total_prep_seconds=sum(step.prepSeconds or 0 for step in recipe.steps),
    )
