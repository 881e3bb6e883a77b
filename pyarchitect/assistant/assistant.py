"""AIAssistant — generate, explain, and autofix Python source.

Each operation is one request to the text service, no retries. Service
failures surface as AssistantServiceError. Response parsing never raises:
an autofix reply that ignores the ---EXPLANATION--- / ---CODE--- convention
comes back as Unparsed so the caller still shows it.
"""

from __future__ import annotations

import re

import httpx
import structlog

from pyarchitect.assistant import prompts
from pyarchitect.config import settings
from pyarchitect.errors import AssistantServiceError
from pyarchitect.models.schemas import AutofixResult, Explanation, GeneratedCode, Unparsed
from pyarchitect.tools.text_service import TextServiceClient, get_text_service

logger = structlog.get_logger().bind(component="assistant")

# Opening fence, language-tagged (```python) or bare (```)
_LEADING_FENCE_RE = re.compile(r"^```[\w+.-]*[ \t]*(?:\n|$)")
_TRAILING_FENCE_RE = re.compile(r"\n?```[ \t]*$")


def strip_code_fences(text: str) -> str:
    """Remove one leading and one trailing markdown fence, if present."""
    code = text.strip()
    code = _LEADING_FENCE_RE.sub("", code, count=1)
    code = _TRAILING_FENCE_RE.sub("", code, count=1)
    return code.strip("\n")


def parse_autofix_response(text: str) -> AutofixResult | Unparsed:
    """Split an autofix reply into explanation and code.

    Everything after the first ---CODE--- token is the code. Without that
    token the whole reply is returned as Unparsed.
    """
    parts = text.split(prompts.CODE_TOKEN, 1)
    if len(parts) < 2:
        return Unparsed(raw_text=text)
    explanation = parts[0].replace(prompts.EXPLANATION_TOKEN, "").strip()
    code = strip_code_fences(parts[1])
    return AutofixResult(explanation=explanation, code=code)


class AIAssistant:
    """Builds prompts, calls the text service, parses the replies."""

    def __init__(self, client: TextServiceClient | None = None, model: str | None = None) -> None:
        self._client = client or get_text_service()
        self.model = model or settings.ai_model

    async def generate(self, task: str) -> GeneratedCode | None:
        """Code for ``task``, or None if the service returned nothing."""
        text = await self._complete("generate", prompts.generate_prompt(task))
        code = strip_code_fences(text)
        if not code.strip():
            logger.info("generate_empty_response")
            return None
        return GeneratedCode(code=code)

    async def explain(self, source: str) -> Explanation:
        text = await self._complete("explain", prompts.explain_prompt(source))
        return Explanation(explanation=text)

    async def autofix(self, source: str, raw_diagnostic: str) -> AutofixResult | Unparsed:
        text = await self._complete("autofix", prompts.autofix_prompt(source, raw_diagnostic))
        result = parse_autofix_response(text)
        if isinstance(result, Unparsed):
            logger.warning("autofix_unparsed", response_len=len(text))
        else:
            logger.info("autofix_parsed", code_len=len(result.code))
        return result

    async def _complete(self, request_kind: str, prompt: str) -> str:
        try:
            result = await self._client.generate(self.model, prompt)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("assistant_service_error", request=request_kind, error=str(e))
            raise AssistantServiceError(f"{request_kind} request failed: {e}") from e
        logger.debug("assistant_response", request=request_kind, text_len=len(result.text))
        return result.text
