# farmtrace/services/text_generation.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from farmtrace.core.config import Settings
from farmtrace.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)


class TextGenerationClient:
    """
    Thin client for a hosted text-generation (inference) endpoint.

    One POST per call, bounded by ``timeout`` and never retried. Every
    failure mode is raised as ExternalServiceError; deciding what to do
    about it is the caller's business.
    """

    def __init__(
        self,
        *,
        url: str,
        api_key: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "TextGenerationClient":
        return cls(
            url=settings.ai_model_url,
            api_key=settings.huggingface_api_key,
            timeout=settings.ai_timeout_seconds,
            transport=transport,
        )

    async def generate(self, prompt: str, parameters: Dict[str, Any]) -> Any:
        """
        Returns the decoded JSON body of a successful response.
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        body = {"inputs": prompt, "parameters": parameters}

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 10.0)),
                transport=self._transport,
            ) as client:
                resp = await client.post(self.url, headers=headers, json=body)
        except httpx.TimeoutException as exc:
            logger.warning("[textgen] timeout after %.1fs", self.timeout)
            raise ExternalServiceError(f"Text generation timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            logger.warning("[textgen] transport error: %s", exc)
            raise ExternalServiceError(f"Text generation request failed: {exc}") from exc

        if resp.status_code >= 300:
            logger.warning("[textgen] %d: %s", resp.status_code, resp.text[:200])
            raise ExternalServiceError(
                "Text generation service returned an error",
                status_code=resp.status_code,
            )

        try:
            return resp.json()
        except (ValueError, RecursionError) as exc:
            raise ExternalServiceError("Text generation response is not decodable JSON") from exc


def generated_text(data: Any) -> Optional[str]:
    """
    Pull the generated string out of the usual response shapes:
    ``[{"generated_text": ...}]`` or ``{"generated_text": ...}``.
    """
    if isinstance(data, list) and data and isinstance(data[0], dict):
        text = data[0].get("generated_text")
        return text if isinstance(text, str) else None
    if isinstance(data, dict):
        text = data.get("generated_text")
        return text if isinstance(text, str) else None
    return None
