"""
Adapters layer - concrete port implementations

Contains:
- LiteLLMReasoningAdapter: Claude / Perplexity through LiteLLM
- YFinanceAdapter: Yahoo Finance quotes and news
"""

from heights_ai.adapters.llm_adapter import LiteLLMReasoningAdapter, create_reasoning_adapters
from heights_ai.adapters.yfinance_adapter import YFinanceAdapter

__all__ = [
    "LiteLLMReasoningAdapter",
    "create_reasoning_adapters",
    "YFinanceAdapter",
]
