"""
LLM adapter - implements ReasoningPort

Uses LiteLLM so Claude (anthropic/...) and Perplexity (perplexity/...)
are reached through the same async completion call.
"""

import logging
from typing import Dict, List, Optional

from litellm import acompletion

from heights_ai.config import Settings
from heights_ai.domain.models import ProviderId
from heights_ai.infrastructure.logging import log_async_performance
from heights_ai.ports.interfaces import ProviderEmptyResult, ReasoningPort


logger = logging.getLogger(__name__)


class LiteLLMReasoningAdapter(ReasoningPort):
    """
    LiteLLM reasoning adapter

    One instance per reasoning provider; the model string selects the
    vendor.
    """

    def __init__(
        self,
        provider_id: ProviderId,
        model: str,
        api_key: Optional[str] = None,
        max_tokens: int = 4000,
        temperature: float = 0.7,
        api_base: Optional[str] = None,
    ):
        """
        Args:
            provider_id: id the gateway registers this adapter under
            model: LiteLLM model string, e.g. anthropic/claude-3-5-sonnet-20241022
            api_key: vendor API key
            max_tokens: completion cap; answers that hit it get continued
            temperature: sampling temperature
            api_base: optional proxy base URL
        """
        self._provider_id = provider_id
        self.model = model
        self.api_key = api_key
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.api_base = api_base

    @property
    def provider_id(self) -> ProviderId:
        return self._provider_id

    @log_async_performance()
    async def converse(self, system_prompt: str, messages: List[Dict[str, str]]) -> str:
        response = await acompletion(
            model=self.model,
            messages=[{"role": "system", "content": system_prompt}] + list(messages),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            api_key=self.api_key,
            api_base=self.api_base,
        )

        choice = response.choices[0]
        if getattr(choice, "finish_reason", None) == "length":
            logger.info(
                f"{self.model} stopped at max_tokens={self.max_tokens}",
                extra={'provider': self._provider_id.value}
            )

        content = choice.message.content
        if not content:
            raise ProviderEmptyResult(self._provider_id, f"{self.model} returned no content")
        return content


def create_reasoning_adapters(settings: Settings) -> List[LiteLLMReasoningAdapter]:
    """Adapters for every reasoning provider that has an API key"""
    adapters = []
    if settings.anthropic_api_key:
        adapters.append(LiteLLMReasoningAdapter(
            ProviderId.CLAUDE,
            model=settings.claude_model,
            api_key=settings.anthropic_api_key,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
        ))
    if settings.perplexity_api_key:
        adapters.append(LiteLLMReasoningAdapter(
            ProviderId.PERPLEXITY,
            model=settings.perplexity_model,
            api_key=settings.perplexity_api_key,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
        ))
    return adapters
