"""Client for the Lovable AI gateway (OpenAI-compatible chat completions).

Used by competitor analysis and the chat coach. Non-2xx answers raise
``GatewayError`` with the upstream status so callers can map 402/429.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx

from georise.core.config import settings
from georise.core.exceptions import GatewayError, MissingCredentialError

logger = logging.getLogger(__name__)

PROVIDER = "lovable"


@dataclass
class GatewayReply:
    text: str
    model: str
    usage: dict = field(default_factory=dict)

    @property
    def prompt_tokens(self) -> int:
        return int(self.usage.get("prompt_tokens") or 0)

    @property
    def completion_tokens(self) -> int:
        return int(self.usage.get("completion_tokens") or 0)

    @property
    def total_tokens(self) -> int:
        return int(self.usage.get("total_tokens") or (self.prompt_tokens + self.completion_tokens))


class AiGatewayClient:
    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ):
        self.api_key = settings.lovable_api_key if api_key is None else api_key
        if not self.api_key:
            raise MissingCredentialError("LOVABLE_API_KEY")
        self.api_url = api_url or settings.lovable_api_url
        self.model = model or settings.lovable_model
        self.timeout = timeout or settings.upstream_timeout_seconds

    async def chat(
        self,
        messages: list[dict],
        *,
        temperature: float = 0.5,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> GatewayReply:
        payload: dict = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                self.api_url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )

        if resp.status_code >= 400:
            logger.error("AI gateway error: %d - %s", resp.status_code, resp.text[:300])
            raise GatewayError(resp.status_code, resp.text)

        data = resp.json()
        text = data.get("choices", [{}])[0].get("message", {}).get("content") or ""
        return GatewayReply(text=text.strip(), model=data.get("model", self.model), usage=data.get("usage") or {})
