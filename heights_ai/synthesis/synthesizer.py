"""
Response synthesizer - truncation repair and multi-provider combination
"""

import logging
from typing import Dict, List, Optional, Sequence

from heights_ai.config import DEFAULT_TRUNCATION_MARKERS, Settings
from heights_ai.domain.models import ProviderId
from heights_ai.gateway.provider_gateway import ProviderGateway
from heights_ai.infrastructure.errors import ContinuationFailed
from heights_ai.synthesis.truncation import (
    is_likely_truncated,
    is_response_complete,
    merge_continuation,
)


logger = logging.getLogger(__name__)


INCOMPLETE_MARKER = "[Response may be incomplete: continuation unavailable]"
SUPPLEMENT_HEADING = "### Current Market Context"

CONTINUATION_PROMPT = """Your previous answer was cut off. It ended with:

\"\"\"{tail}\"\"\"

Continue exactly where it stopped. Do not repeat text that was already written \
and do not restart the answer."""


class ResponseSynthesizer:
    """
    Repairs truncated answers and merges two reasoning answers

    Args:
        max_continuations: upper bound on continuation calls per answer
        markers: dangling suffixes that flag truncation
        complete_min_lines: line count that makes an answer "complete"
        tail_chars: characters of the partial answer sent as the seed
    """

    def __init__(
        self,
        max_continuations: int = 2,
        markers: Sequence[str] = DEFAULT_TRUNCATION_MARKERS,
        complete_min_lines: int = 15,
        tail_chars: int = 100,
    ):
        self.max_continuations = max_continuations
        self.markers = tuple(markers)
        self.complete_min_lines = complete_min_lines
        self.tail_chars = tail_chars

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResponseSynthesizer":
        return cls(
            max_continuations=settings.max_continuations,
            markers=settings.truncation_markers,
            complete_min_lines=settings.complete_min_lines,
        )

    def is_truncated(self, text: str) -> bool:
        return is_likely_truncated(text, self.markers)

    def is_complete(self, text: str) -> bool:
        return is_response_complete(text, self.complete_min_lines, self.markers)

    async def complete_truncated(
        self,
        content: str,
        provider_id: ProviderId,
        gateway: ProviderGateway,
        system_prompt: str,
        timeout: float = 30.0,
    ) -> str:
        """
        Ask the same provider to continue a truncated answer

        Stops as soon as the merged text no longer looks truncated or the
        continuation budget is spent. A failed continuation keeps the
        partial answer and appends a visible marker.
        """
        merged = content
        attempts = 0
        while self.is_truncated(merged) and attempts < self.max_continuations:
            attempts += 1
            try:
                continuation = await self._request_continuation(
                    merged, provider_id, gateway, system_prompt, timeout
                )
            except ContinuationFailed as e:
                logger.warning(e.message, extra={'provider': provider_id.value})
                return f"{merged.rstrip()}\n\n{INCOMPLETE_MARKER}"
            merged = merge_continuation(merged, continuation)
            logger.info(
                f"Merged continuation {attempts} from {provider_id.value}",
                extra={'provider': provider_id.value}
            )
        return merged

    async def _request_continuation(
        self,
        content: str,
        provider_id: ProviderId,
        gateway: ProviderGateway,
        system_prompt: str,
        timeout: float,
    ) -> str:
        tail = content.rstrip()[-self.tail_chars:]
        messages: List[Dict[str, str]] = [
            {"role": "user", "content": CONTINUATION_PROMPT.format(tail=tail)},
        ]
        result = await gateway.converse(provider_id, system_prompt, messages, timeout=timeout)
        if not result.success:
            raise ContinuationFailed(provider_id.value, result.error.message if result.error else None)
        return result.data

    def combine(
        self,
        primary: str,
        secondary: Optional[str],
        secondary_label: str = "Real-time search",
    ) -> str:
        """
        Merge a general answer with a real-time-search answer

        A complete primary keeps its text and gets the secondary appended
        as a labelled supplement. An incomplete primary is completed by
        splicing the secondary onto it.
        """
        if not secondary or not secondary.strip():
            return primary
        if not primary or not primary.strip():
            return secondary.strip()

        if self.is_complete(primary):
            return (
                f"{primary.rstrip()}\n\n---\n\n{SUPPLEMENT_HEADING}\n"
                f"*{secondary_label}*\n\n{secondary.strip()}"
            )
        return merge_continuation(primary, secondary)
