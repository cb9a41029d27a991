"""Base LLM collector: one prompt in, one answer (text + citations) out."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from georise.analysis.mention import BrandMatcher, check_mention
from georise.analysis.types import MentionCheck
from georise.core.exceptions import MissingCredentialError

logger = logging.getLogger(__name__)


@dataclass
class LlmResponse:
    """Raw response from an LLM API."""

    text: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cited_urls: list[str] = field(default_factory=list)  # some APIs return citations natively

    @property
    def tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class BaseLlmCollector(ABC):
    """Base class for search-augmented LLM engines used for mention checks."""

    provider: str = "unknown"
    credential_name: str = "API_KEY"

    def __init__(self, api_key: str, matcher: BrandMatcher | None = None):
        if not api_key:
            raise MissingCredentialError(self.credential_name)
        self.api_key = api_key
        self.matcher = matcher

    @abstractmethod
    async def query_llm(self, prompt: str) -> LlmResponse:
        """Send a prompt to the LLM and return the raw response. Implemented by subclasses."""
        ...

    async def check(self, query: str, brand_name: str) -> MentionCheck:
        """Ask one query and check the answer for the brand.

        Upstream errors (non-2xx, timeouts) propagate to the caller.
        """
        logger.info("%s: querying %r", self.provider, query[:80])
        resp = await self.query_llm(query)
        result = check_mention(resp.text, brand_name, resp.cited_urls, self.matcher)
        if result.mentioned:
            logger.info("%s: brand mentioned at position %d", self.provider, result.position)
        return result
