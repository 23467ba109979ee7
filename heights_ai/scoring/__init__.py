"""
Scoring layer - confidence formula and trade setup
"""

from heights_ai.scoring.confidence import (
    ConfidenceScorer,
    ConfidenceWeights,
    technical_alignment,
    fundamental_strength,
    market_conditions_score,
    news_sentiment_score,
)

__all__ = [
    "ConfidenceScorer",
    "ConfidenceWeights",
    "technical_alignment",
    "fundamental_strength",
    "market_conditions_score",
    "news_sentiment_score",
]
