# farmtrace/services/recipes_service.py
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List

from farmtrace.core.errors import ExternalServiceError
from farmtrace.services.text_generation import TextGenerationClient, generated_text

logger = logging.getLogger(__name__)

MAX_RECIPES = 2

_NUMBERED = re.compile(r"\d\.\s+")
_TITLE_SPLIT = re.compile(r"^([^:.]+)[:.](.+)\Z")


def normalize_ingredient(ingredient: str) -> str:
    return re.sub(r"\s+fruit$", "", ingredient.lower()).strip()


def recipe_prompt(ingredient: str) -> str:
    return f"Suggest two simple dishes I can make with {ingredient}. Include a brief description for each dish."


def format_recipes(text: str, ingredient: str) -> Dict[str, Any]:
    """
    Split numbered model output into {title, description} items.
    "Title: text" / "Title. text" first, else first sentence as title.
    """
    chunks = [c for c in _NUMBERED.split(text) if c.strip()]
    recipes: List[Dict[str, str]] = []
    for chunk in chunks:
        m = _TITLE_SPLIT.match(chunk)
        if m:
            recipes.append({"title": m.group(1).strip(), "description": m.group(2).strip()})
            continue
        sentences = chunk.split(".")
        recipes.append({"title": sentences[0].strip(), "description": ".".join(sentences[1:]).strip()})

    return {"ingredient": ingredient, "recipes": recipes[:MAX_RECIPES]}


class RecipeService:
    PARAMETERS = {
        "max_new_tokens": 150,
        "temperature": 0.7,
        "top_p": 0.9,
        "do_sample": True,
    }

    def __init__(self, client: TextGenerationClient):
        self.client = client

    async def suggest(self, ingredient: str) -> Dict[str, Any]:
        """
        No local fallback here: upstream failures propagate as
        ExternalServiceError.
        """
        normalized = normalize_ingredient(ingredient)
        logger.info("[recipes] generating recipes for ingredient=%s", normalized)

        data = await self.client.generate(recipe_prompt(normalized), self.PARAMETERS)
        text = generated_text(data)
        if text is None:
            raise ExternalServiceError("Received unexpected data format from AI service")

        return format_recipes(text, normalized)
