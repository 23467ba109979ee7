"""
Presentation layer - prompts and deterministic answer text

Contains:
- prompts: templates sent to reasoning providers
- formatter: market snapshot, news digest, suggestions, freshness
"""

from heights_ai.presentation.formatter import (
    FALLBACK_NOTICE,
    FALLBACK_SUGGESTIONS,
    RETRY_SUGGESTIONS,
    assess_data_freshness,
    build_data_suggestions,
    build_error_content,
    build_news_suggestions,
    build_suggestions,
    format_market_snapshot,
    format_news_digest,
    format_price,
    intent_to_response_type,
    new_response_id,
    with_interpretation,
)
from heights_ai.presentation.prompts import (
    build_fallback_prompt,
    build_grounded_query,
    build_market_data_prompt,
    build_news_prompt,
    build_search_query,
    build_system_prompt,
)

__all__ = [
    "FALLBACK_NOTICE",
    "FALLBACK_SUGGESTIONS",
    "RETRY_SUGGESTIONS",
    "assess_data_freshness",
    "build_data_suggestions",
    "build_error_content",
    "build_news_suggestions",
    "build_suggestions",
    "format_market_snapshot",
    "format_news_digest",
    "format_price",
    "intent_to_response_type",
    "new_response_id",
    "with_interpretation",
    "build_fallback_prompt",
    "build_grounded_query",
    "build_market_data_prompt",
    "build_news_prompt",
    "build_search_query",
    "build_system_prompt",
]
