"""Perplexity LLM collector (OpenAI-compatible API with native citations)."""

import logging

import httpx

from georise.analysis.mention import BrandMatcher
from georise.collectors.llm_base import BaseLlmCollector, LlmResponse
from georise.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "sonar-pro"
API_URL = "https://api.perplexity.ai/chat/completions"
SYSTEM_PROMPT = "You are a helpful assistant that provides comprehensive answers with citations."


class PerplexityCollector(BaseLlmCollector):
    """Mention checks against the Perplexity Chat Completions API.

    Perplexity returns native citations as a top-level array, which become
    the citations of a mentioned result.
    """

    provider = "perplexity"
    credential_name = "PERPLEXITY_API_KEY"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        matcher: BrandMatcher | None = None,
        timeout: float | None = None,
    ):
        super().__init__(api_key=api_key, matcher=matcher)
        self.model = model
        self.timeout = timeout or settings.upstream_timeout_seconds

    async def query_llm(self, prompt: str) -> LlmResponse:
        """Send a prompt to Perplexity Chat Completions API."""
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.2,
            "max_tokens": 1000,
            "return_citations": True,
            "return_related_questions": False,
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                API_URL,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
            if resp.status_code >= 400:
                logger.error("Perplexity API error: %d - %s", resp.status_code, resp.text[:300])
            resp.raise_for_status()
            data = resp.json()

        text = data["choices"][0]["message"]["content"] or ""
        usage = data.get("usage") or {}

        return LlmResponse(
            text=text,
            model=data.get("model", self.model),
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            cited_urls=data.get("citations") or [],
        )
