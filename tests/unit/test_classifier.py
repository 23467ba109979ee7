"""
QueryClassifier tests
"""

import pytest

from heights_ai.domain.models import (
    AssetType,
    ChatContext,
    ChatMessage,
    MatchKind,
    QueryIntent,
)
from heights_ai.infrastructure.errors import ValidationError
from heights_ai.orchestrator.classifier import QueryClassifier


@pytest.fixture
def classifier():
    return QueryClassifier()


class TestIntent:

    @pytest.mark.parametrize("query,intent", [
        ("What's Bitcoin doing today?", QueryIntent.PRICE),
        ("What's the price of AAPL?", QueryIntent.PRICE),
        ("Latest news on bitcoin", QueryIntent.NEWS),
        ("Should I buy AAPL? Give me a technical analysis", QueryIntent.ANALYSIS),
        ("Explain how institutional demand affects crypto markets", QueryIntent.EXPLANATION),
        ("Compare ETH versus SOL", QueryIntent.COMPARISON),
    ])
    def test_detects_intent(self, classifier, query, intent):
        assert classifier.classify(query).intent == intent

    def test_unknown_query_is_ambiguous(self, classifier):
        result = classifier.classify("hello there")

        assert result.intent == QueryIntent.EXPLANATION
        assert result.asset_symbol is None
        assert result.confidence == pytest.approx(0.3)
        assert result.is_ambiguous

    def test_empty_string_is_classified_not_rejected(self, classifier):
        result = classifier.classify("")
        assert result.is_ambiguous

    def test_non_string_raises(self, classifier):
        with pytest.raises(ValidationError):
            classifier.classify(None)


class TestSymbol:

    def test_alias_resolves_to_ticker(self, classifier):
        result = classifier.classify("What's Bitcoin doing today?")

        assert result.asset_symbol == "BTC"
        assert result.asset_type == AssetType.CRYPTO
        assert result.match_kind == MatchKind.ALIAS
        assert result.timeframe == "1d"

    def test_exact_ticker(self, classifier):
        result = classifier.classify("What's the price of AAPL?")

        assert result.asset_symbol == "AAPL"
        assert result.asset_type == AssetType.STOCK
        assert result.match_kind == MatchKind.EXACT

    def test_cashtag_lowercase(self, classifier):
        assert classifier.classify("thoughts on $tsla").asset_symbol == "TSLA"

    def test_forex_pair(self, classifier):
        result = classifier.classify("Will EUR/USD go up next month?")

        assert result.asset_symbol == "EURUSD=X"
        assert result.asset_type == AssetType.FOREX
        assert result.timeframe == "1m"

    def test_longest_alias_wins(self, classifier):
        assert classifier.classify("crude oil outlook").asset_symbol == "CL=F"

    def test_stopwords_are_not_tickers(self, classifier):
        result = classifier.classify("Is the CEO of the ETF good?")
        assert result.asset_symbol is None

    def test_unknown_uppercase_token_is_pattern_match(self, classifier):
        result = classifier.classify("price of PLTR")

        assert result.asset_symbol == "PLTR"
        assert result.match_kind == MatchKind.PATTERN

    def test_symbol_inherited_from_context(self, classifier):
        context = ChatContext(message_history=(
            ChatMessage(role="user", content="tell me more", metadata={"asset_symbol": "ETH"}),
        ))

        result = classifier.classify("and the price now?", context)

        assert result.asset_symbol == "ETH"
        assert result.match_kind == MatchKind.CONTEXT
        assert result.asset_type == AssetType.CRYPTO

    def test_symbol_in_query_beats_context(self, classifier):
        context = ChatContext(message_history=(
            ChatMessage(role="user", content="ETH?", metadata={"asset_symbol": "ETH"}),
        ))
        assert classifier.classify("price of AAPL", context).asset_symbol == "AAPL"

    def test_inherited_forex_pair_keeps_its_type(self, classifier):
        context = ChatContext(message_history=(
            ChatMessage(role="user", content="euro?", metadata={"asset_symbol": "EURUSD=X"}),
        ))

        result = classifier.classify("and the price now?", context)

        assert result.asset_symbol == "EURUSD=X"
        assert result.match_kind == MatchKind.CONTEXT
        assert result.asset_type == AssetType.FOREX


class TestConfidenceAndParameters:

    def test_confidence_is_bounded_and_ordered(self, classifier):
        exact = classifier.classify("What's the price of AAPL?")
        vague = classifier.classify("hello there")

        assert 0.0 <= vague.confidence < exact.confidence <= 1.0

    def test_deterministic(self, classifier):
        query = "Should I buy TSLA this week?"
        assert classifier.classify(query) == classifier.classify(query)

    def test_extracts_parameters(self, classifier):
        result = classifier.classify("Should I buy BTC at $60,000 or is it risky?")

        assert result.parameters["target_price"] == 60000.0
        assert result.parameters["action"] == "buy"
        assert result.parameters["risk_tolerance"] == "high"

    def test_comparison_pair(self, classifier):
        result = classifier.classify("Compare ETH versus SOL")
        assert result.parameters["comparison"] == {"asset1": "ETH", "asset2": "SOL"}

    @pytest.mark.parametrize("query", [
        "Should I explain budgets in $, or euros?",
        "Is $. a typo?",
        "$",
    ])
    def test_dollar_sign_without_amount(self, classifier, query):
        result = classifier.classify(query)

        assert "target_price" not in result.parameters
        assert 0.0 <= result.confidence <= 1.0
