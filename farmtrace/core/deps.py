# farmtrace/core/deps.py
from __future__ import annotations

from fastapi import Depends

from farmtrace.core.config import Settings, get_settings
from farmtrace.services.augmentation_service import InsightSummarizer, get_summarizer
from farmtrace.services.logistics_service import LogisticsService
from farmtrace.services.text_generation import TextGenerationClient


def summarizer_dep(settings: Settings = Depends(get_settings)) -> InsightSummarizer:
    """
    Remote phrasing only when USE_AI_SERVICE is on and an API key is set.
    """
    return get_summarizer(settings)


def logistics_service_dep(
    summarizer: InsightSummarizer = Depends(summarizer_dep),
) -> LogisticsService:
    return LogisticsService(summarizer=summarizer)


def text_generation_dep(settings: Settings = Depends(get_settings)) -> TextGenerationClient:
    return TextGenerationClient.from_settings(settings)
