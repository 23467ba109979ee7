"""
Synthesis layer - turns raw model prose into the final answer

Contains:
- truncation: pure truncation / completeness predicates and merging
- synthesizer: continuation calls and multi-provider combination
- extraction: best-effort fact parser and news heuristics
"""

from heights_ai.synthesis.truncation import (
    is_likely_truncated,
    is_response_complete,
    merge_continuation,
)
from heights_ai.synthesis.synthesizer import (
    ResponseSynthesizer,
    INCOMPLETE_MARKER,
    SUPPLEMENT_HEADING,
)
from heights_ai.synthesis.extraction import (
    FactExtractor,
    classify_sentiment,
    sentiment_from_score,
    assess_impact,
)

__all__ = [
    "is_likely_truncated",
    "is_response_complete",
    "merge_continuation",
    "ResponseSynthesizer",
    "INCOMPLETE_MARKER",
    "SUPPLEMENT_HEADING",
    "FactExtractor",
    "classify_sentiment",
    "sentiment_from_score",
    "assess_impact",
]
