"""Async client for the generative text service.

One call shape: ``generate(model, prompt) -> TextResult``. No schema is
requested from the service; callers parse the free text themselves.

Providers:
  - gemini  Generative Language REST API, POST /models/{model}:generateContent
  - openai  any OpenAI-compatible server, POST /v1/chat/completions
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import BaseModel

from pyarchitect.config import settings

logger = structlog.get_logger().bind(component="text_service")

PROVIDERS = ("gemini", "openai")


class TextResult(BaseModel):
    """Text returned by the service. Empty when the reply carried none."""

    text: str = ""
    model: str = ""


class TextServiceClient:
    """Thin httpx wrapper. Errors (httpx.HTTPError) propagate to the caller."""

    def __init__(
        self,
        provider: str | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.provider = (provider or settings.ai_provider).lower()
        if self.provider not in PROVIDERS:
            raise ValueError(f"Unknown text service provider: {self.provider!r}")
        if self.provider == "gemini":
            default_url, default_key = settings.gemini_base_url, settings.gemini_api_key
        else:
            default_url, default_key = settings.openai_base_url, settings.openai_api_key
        self.base_url = (base_url or default_url).rstrip("/")
        self.api_key = api_key if api_key is not None else default_key
        self.timeout = timeout or settings.ai_timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self._auth_headers(),
            )
        return self._client

    def _auth_headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        if self.provider == "gemini":
            return {"x-goog-api-key": self.api_key}
        return {"Authorization": f"Bearer {self.api_key}"}

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def generate(self, model: str, prompt: str) -> TextResult:
        """Send one prompt, get back the reply text."""
        client = await self._get_client()
        if self.provider == "gemini":
            payload: dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
            response = await client.post(f"/models/{model}:generateContent", json=payload)
        else:
            payload = {"model": model, "messages": [{"role": "user", "content": prompt}]}
            response = await client.post("/v1/chat/completions", json=payload)
        response.raise_for_status()
        result = response.json()

        text = _extract_gemini_text(result) if self.provider == "gemini" else _extract_openai_text(result)
        logger.debug(
            "text_generated",
            provider=self.provider,
            model=model,
            prompt_len=len(prompt),
            text_len=len(text),
        )
        return TextResult(text=text, model=model)


def _extract_gemini_text(result: Any) -> str:
    try:
        parts = result["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""
    if not isinstance(parts, list):
        return ""
    return "".join(str(part.get("text") or "") for part in parts if isinstance(part, dict))


def _extract_openai_text(result: Any) -> str:
    try:
        content = result["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""


_text_service: TextServiceClient | None = None


def get_text_service() -> TextServiceClient:
    """Get the global TextServiceClient instance."""
    global _text_service
    if _text_service is None:
        _text_service = TextServiceClient()
    return _text_service
