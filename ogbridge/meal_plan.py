"""
Meal Planner -> shopping list ingredient suggestions.

Reads the "Meal Planner" list, keeps meals that are not crossed off, and
asks Claude for the ingredients of every meal that has no note. A meal with
a note (e.g. "leftovers", "eating out") needs no ingredients.
"""

from __future__ import annotations
import json
import logging
import re
from typing import Any, Optional

import anthropic

from .api import OurGroceriesClient
from .errors import SuggestionError

MEAL_PLAN_LIST = "Meal Planner"
SHOPPING_LIST = "Shopping List"

MODEL = "claude-haiku-4-5-20251001"
MAX_TOKENS = 2048

_JSON_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")

PROMPT_TEMPLATE = """For each of the following meals, list the ingredients needed as a shopping list. Use common Australian grocery items. Be practical: skip pantry staples that most people have (salt, pepper, oil, butter, common dried herbs and spices, flour, sugar, soy sauce, stock cubes). Focus on fresh produce, proteins, dairy, and specialty items they'd need to buy.

Each ingredient should have a clean "name" (what you'd look for in the shop) and a "note" with quantity or other detail (e.g. brand, variety).

Return ONLY valid JSON, no markdown fencing. Use this exact format:
[{{"meal":"Meal Name","ingredients":[{{"name":"Chicken breast","note":"600g, 4 fillets"}}]}}]

Meals:
{meals}"""


def build_ingredient_prompt(meal_names: list[str]) -> str:
    """Build the user prompt listing meals as a numbered list."""
    numbered = "\n".join(f"{i}. {name}" for i, name in enumerate(meal_names, start=1))
    return PROMPT_TEMPLATE.format(meals=numbered)


def parse_ingredient_response(text: str) -> list[dict[str, Any]]:
    """
    Parse the model's answer into [{"name": meal, "ingredients": [...]}].

    The model is asked for bare JSON but sometimes wraps it in prose or a
    markdown fence, so fall back to the outermost [...] span.

    Raises:
        SuggestionError: If no JSON array can be recovered
    """
    text = (text or '').strip()
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        match = _JSON_ARRAY_PATTERN.search(text)
        if match is None:
            raise SuggestionError("Failed to parse Claude response as JSON", raw_text=text)
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise SuggestionError(f"Failed to parse Claude response as JSON: {e}", raw_text=text) from e

    if not isinstance(parsed, list):
        raise SuggestionError("Claude response is not a JSON array", raw_text=text)

    meals = []
    for entry in parsed:
        if not isinstance(entry, dict):
            continue
        ingredients = [
            {'name': ing} if isinstance(ing, str) else ing
            for ing in entry.get('ingredients') or []
        ]
        meals.append({'name': entry.get('meal'), 'ingredients': ingredients})
    return meals


class IngredientSuggester:
    """Asks Claude for the ingredients of a batch of meals."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[Any] = None,
        model: str = MODEL,
    ) -> None:
        if client is None:
            if not api_key:
                raise ValueError("Anthropic API key is required")
            client = anthropic.Anthropic(api_key=api_key)
        self.client = client
        self.model = model

    def suggest(self, meal_names: list[str]) -> list[dict[str, Any]]:
        if not meal_names:
            return []

        logging.info("Asking %s for ingredients of %d meal(s)", self.model, len(meal_names))
        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=MAX_TOKENS,
                messages=[{'role': 'user', 'content': build_ingredient_prompt(meal_names)}],
            )
        except anthropic.APIError as e:
            raise SuggestionError(f"Claude request failed: {e}") from e

        text_parts = [block.text for block in message.content if hasattr(block, 'text')]
        return parse_ingredient_response("\n".join(text_parts))


def plan_meal_ingredients(
    items: list[dict[str, Any]],
    suggester: IngredientSuggester,
) -> list[dict[str, Any]]:
    """
    Turn Meal Planner items into meals with suggested ingredients.

    Meals with a note come first, with no ingredients; the rest follow in
    the order the model returns them.
    """
    active = [item for item in items if not item.get('crossedOff')]
    with_notes = [item for item in active if item.get('note')]
    needing_ingredients = [item for item in active if not item.get('note')]

    results = [
        {'name': item.get('value'), 'note': item['note'], 'ingredients': []}
        for item in with_notes
    ]
    results.extend(suggester.suggest([item.get('value') for item in needing_ingredients]))
    return results


def suggest_meal_plan_ingredients(
    client: OurGroceriesClient,
    suggester: IngredientSuggester,
    list_name: str = MEAL_PLAN_LIST,
) -> Optional[list[dict[str, Any]]]:
    """
    Read the meal plan list and suggest ingredients for it.

    Returns:
        Meals with ingredients, or None if the meal plan list does not exist
    """
    meal_plan = client.find_list_by_name(list_name)
    if meal_plan is None:
        return None
    return plan_meal_ingredients(client.get_list_items(meal_plan['id']), suggester)
