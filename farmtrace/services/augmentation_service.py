# farmtrace/services/augmentation_service.py
"""
Optional phrasing of insights by an external text-generation model.

The summarizer is a strategy: the heuristic one hands back the locally
generated record untouched, the remote one asks the model for the four
narrative fields and substitutes them only when the answer is complete.
Numbers (summary, metrics, region_performance) are never taken from the
model.
"""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from farmtrace.core.config import Settings
from farmtrace.core.errors import ExternalServiceError
from farmtrace.services.aggregation_service import FleetMetrics, TOP_REGIONS
from farmtrace.services.insight_service import (
    NARRATIVE_KEYS,
    PREDICTION_KEYS,
    EntityMetrics,
)
from farmtrace.services.logistics_extractor import SECONDS_PER_DAY, LogisticsExtract
from farmtrace.services.text_generation import TextGenerationClient, generated_text

logger = logging.getLogger(__name__)

SOURCE_AI = "ai"

_ROLE = (
    "You are a supply chain and market intelligence expert with a strong background in "
    "logistics analytics, predictive modeling, and regional economic forecasting."
)

_RESPONSE_FORMAT = (
    "Response MUST be in valid JSON format with these keys: insights, trend_analysis, "
    "region_prediction (with nested top_region_next_quarter and reason), and "
    "strategic_recommendation."
)

ENTITY_PROMPT = """{role}

Analyze the following product journey data across multiple geographic regions and time periods:

{data}

Your task is to:
1. Analyze the movement and activity pattern of the product.
2. Identify key trends, bottlenecks, or strategic pivots in regional logistics.
3. Evaluate which regions showed the most favorable conditions (e.g., efficiency, low delay, high turnover).
4. Use that information to predict which region is likely to be optimal for product performance in the upcoming quarter.
5. Provide your answer in the form of a structured report with reasoning.

{response_format}
"""

FLEET_PROMPT = """{role}

Analyze the following aggregate supply chain data across multiple batches and regions:

{data}

Your task is to:
1. Analyze the movement patterns and supply chain structure.
2. Identify key trends and strategic optimization opportunities.
3. Evaluate which regions showed the most favorable conditions.
4. Predict which region is likely to be optimal for overall supply chain performance in the upcoming quarter.
5. Provide your answer in the form of a structured report with reasoning.

{response_format}
"""


# ─────────────────────────────────────────────
# PROMPTS
# ─────────────────────────────────────────────

def entity_prompt(extract: LogisticsExtract, metrics: EntityMetrics) -> str:
    data = {
        "product_type": extract.product_type,
        "regions_in_path": extract.region_path,
        "origin": extract.origin,
        "current_location": extract.current_location,
        "shipment_count": len(extract.shipment_events),
        "journey_days": round(metrics.journey_days, 2),
        "days_per_region": round(metrics.efficiency, 2),
        "dwell_days_by_region": {
            region: round(seconds / SECONDS_PER_DAY, 2)
            for region, seconds in extract.region_dwell_time.items()
        },
    }
    return ENTITY_PROMPT.format(
        role=_ROLE,
        data=json.dumps(data, indent=2, ensure_ascii=False),
        response_format=_RESPONSE_FORMAT,
    )


def fleet_prompt(fleet: FleetMetrics) -> str:
    data = {
        "entity_count": fleet.total_entities,
        "unique_regions": fleet.unique_regions,
        "top_regions": fleet.top_regions[:TOP_REGIONS],
        "most_connected_region": fleet.most_connected_region,
        "product_types": [
            {
                "name": name,
                "count": m.count,
                "avg_transit_time": round(m.average_transit_time, 2),
            }
            for name, m in fleet.product_types.items()
        ],
    }
    return FLEET_PROMPT.format(
        role=_ROLE,
        data=json.dumps(data, indent=2, ensure_ascii=False),
        response_format=_RESPONSE_FORMAT,
    )


# ─────────────────────────────────────────────
# RESPONSE PARSING
# ─────────────────────────────────────────────

# model text beyond this many characters per requested token is not scanned
CHARS_PER_TOKEN_CAP = 16

_DECODER = json.JSONDecoder()


def extract_json_object(text: str, max_chars: Optional[int] = None) -> Optional[Dict[str, Any]]:
    """
    Decode the first JSON object that starts at a "{" in free-form text.
    Only the first ``max_chars`` characters are looked at; undecodable or
    too deeply nested candidates are skipped.
    """
    if max_chars is not None:
        text = text[:max_chars]

    start = text.find("{")
    while start != -1:
        try:
            obj, _ = _DECODER.raw_decode(text, start)
        except (ValueError, RecursionError):
            start = text.find("{", start + 1)
            continue
        return obj if isinstance(obj, dict) else None
    return None


def parse_narrative(data: Any, max_chars: Optional[int] = None) -> Optional[Dict[str, Any]]:
    """
    Returns the four narrative fields, or None when anything is missing or
    mistyped. Partial answers are rejected as a whole.
    """
    text = generated_text(data)
    if text is not None:
        obj = extract_json_object(text, max_chars)
    elif isinstance(data, dict):
        obj = data
    else:
        obj = None

    if not obj or not isinstance(obj.get("insights"), str):
        return None

    prediction = obj.get("region_prediction")
    if not isinstance(prediction, dict):
        return None
    if not all(isinstance(prediction.get(k), str) for k in PREDICTION_KEYS):
        return None
    if not all(isinstance(obj.get(k), str) for k in NARRATIVE_KEYS if k != "region_prediction"):
        return None

    return {
        "insights": obj["insights"],
        "trend_analysis": obj["trend_analysis"],
        "region_prediction": {k: prediction[k] for k in PREDICTION_KEYS},
        "strategic_recommendation": obj["strategic_recommendation"],
    }


# ─────────────────────────────────────────────
# STRATEGIES
# ─────────────────────────────────────────────

class InsightSummarizer(ABC):
    name: str

    @abstractmethod
    async def summarize(self, result: Dict[str, Any], prompt: str) -> Dict[str, Any]:
        """Return ``result`` with its narrative fields possibly rephrased."""


class HeuristicSummarizer(InsightSummarizer):
    """Keeps the locally generated narrative."""

    name = "heuristic"

    async def summarize(self, result: Dict[str, Any], prompt: str) -> Dict[str, Any]:
        return result


class RemoteSummarizer(InsightSummarizer):
    name = "remote"

    def __init__(
        self,
        client: TextGenerationClient,
        *,
        max_new_tokens: int = 500,
        temperature: float = 0.7,
    ):
        self.client = client
        self.parameters = {
            "max_new_tokens": max_new_tokens,
            "temperature": temperature,
            "return_full_text": False,
        }
        self.max_chars = max_new_tokens * CHARS_PER_TOKEN_CAP

    async def summarize(self, result: Dict[str, Any], prompt: str) -> Dict[str, Any]:
        """
        Single attempt. Any failure returns ``result`` as-is, which is exactly
        what the heuristic generator produced.
        """
        try:
            data = await self.client.generate(prompt, self.parameters)
        except ExternalServiceError as exc:
            logger.warning("[augment] falling back to heuristic insights: %s", exc.message)
            return result

        try:
            narrative = parse_narrative(data, self.max_chars)
        except (ValueError, TypeError, RecursionError) as exc:
            logger.warning("[augment] unreadable model answer, using heuristic insights: %s", exc)
            return result
        if narrative is None:
            logger.warning("[augment] model answer lacks the expected structure, using heuristic insights")
            return result

        merged = dict(result)
        merged.update(narrative)
        merged["source"] = SOURCE_AI
        return merged


def get_summarizer(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> InsightSummarizer:
    if not settings.ai_enabled:
        return HeuristicSummarizer()
    client = TextGenerationClient.from_settings(settings, transport=transport)
    return RemoteSummarizer(
        client,
        max_new_tokens=settings.ai_max_new_tokens,
        temperature=settings.ai_temperature,
    )
