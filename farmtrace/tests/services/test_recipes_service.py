import asyncio

import httpx
import pytest

from farmtrace.core.errors import ExternalServiceError
from farmtrace.services.recipes_service import RecipeService, format_recipes, normalize_ingredient
from farmtrace.services.text_generation import TextGenerationClient


def service(handler):
    return RecipeService(
        TextGenerationClient(
            url="https://inference.test/models/m",
            api_key="k",
            transport=httpx.MockTransport(handler),
        )
    )


def test_normalize_ingredient():
    assert normalize_ingredient("Mango Fruit") == "mango"
    assert normalize_ingredient("Passion fruit") == "passion"
    assert normalize_ingredient("Grapefruit") == "grapefruit"


def test_format_recipes_splits_numbered_items():
    text = "1. Mango Salsa: Fresh and zesty. 2. Mango Lassi. A cool yogurt drink. 3. Extra: ignored"
    out = format_recipes(text, "mango")
    assert out == {
        "ingredient": "mango",
        "recipes": [
            {"title": "Mango Salsa", "description": "Fresh and zesty."},
            {"title": "Mango Lassi", "description": "A cool yogurt drink."},
        ],
    }


def test_suggest_uses_generated_text():
    body = [{"generated_text": "1. Banana Bread: Moist loaf. 2. Smoothie: Blend it."}]
    out = asyncio.run(service(lambda request: httpx.Response(200, json=body)).suggest("Banana"))
    assert out["ingredient"] == "banana"
    assert [r["title"] for r in out["recipes"]] == ["Banana Bread", "Smoothie"]


def test_suggest_rejects_unexpected_shape():
    with pytest.raises(ExternalServiceError):
        asyncio.run(service(lambda request: httpx.Response(200, json={"error": "x"})).suggest("kiwi"))


def test_suggest_propagates_upstream_failure():
    with pytest.raises(ExternalServiceError):
        asyncio.run(service(lambda request: httpx.Response(500)).suggest("kiwi"))


def test_title_split_does_not_accept_trailing_newline():
    out = format_recipes("1. Salsa: Fresh mix\n2. Lassi: Sweet drink", "mango")
    assert out["recipes"] == [
        {"title": "Salsa: Fresh mix", "description": ""},
        {"title": "Lassi", "description": "Sweet drink"},
    ]
