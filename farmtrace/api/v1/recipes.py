# farmtrace/api/v1/recipes.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from farmtrace.api.errors import to_http
from farmtrace.core.deps import text_generation_dep
from farmtrace.core.errors import ExternalServiceError
from farmtrace.services.recipes_service import RecipeService
from farmtrace.services.text_generation import TextGenerationClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recipes", tags=["recipes"])


@router.get("/suggestions/{ingredient}")
async def recipe_suggestions(
    ingredient: str,
    client: TextGenerationClient = Depends(text_generation_dep),
):
    if not client.api_key:
        raise HTTPException(
            status_code=503,
            detail={"error": "not_configured", "message": "HUGGINGFACE_API_KEY is not set."},
        )
    try:
        return await RecipeService(client).suggest(ingredient)
    except ExternalServiceError as exc:
        raise to_http(exc)
