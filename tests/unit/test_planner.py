"""
StrategyPlanner tests
"""

import itertools

import pytest

from heights_ai.config import Settings
from heights_ai.domain.models import (
    AssetType,
    ClassifiedQuery,
    ProviderId,
    QueryIntent,
)
from heights_ai.orchestrator.planner import REASONING_PROVIDERS, StrategyPlanner


def classified(intent, asset_type=AssetType.STOCK, symbol=None):
    return ClassifiedQuery(intent=intent, asset_type=asset_type, confidence=0.8, asset_symbol=symbol)


@pytest.fixture
def planner():
    return StrategyPlanner(reasoning_timeout=30.0, data_timeout=15.0, max_retries=1)


def test_crypto_price_routes_to_market_data(planner):
    strategy = planner.plan(classified(QueryIntent.PRICE, AssetType.CRYPTO, "BTC"))

    assert strategy.primary_provider == ProviderId.COINBASE
    assert strategy.fallback_providers == (ProviderId.POLYGON, ProviderId.YFINANCE)
    assert strategy.requires_data
    assert strategy.timeout_seconds == 15.0


def test_stock_price_cascade(planner):
    strategy = planner.plan(classified(QueryIntent.PRICE, AssetType.STOCK, "AAPL"))

    assert strategy.cascade == (
        ProviderId.ALPHA_VANTAGE, ProviderId.POLYGON, ProviderId.TWELVE_DATA, ProviderId.YFINANCE,
    )


def test_price_without_symbol_uses_search(planner):
    strategy = planner.plan(classified(QueryIntent.PRICE))

    assert strategy.primary_provider == ProviderId.PERPLEXITY
    assert not strategy.requires_data
    assert strategy.data_providers == ()


def test_news_with_symbol_ends_with_search(planner):
    strategy = planner.plan(classified(QueryIntent.NEWS, AssetType.CRYPTO, "BTC"))

    assert strategy.primary_provider == ProviderId.GNEWS
    assert strategy.cascade[-1] == ProviderId.PERPLEXITY


def test_analysis_is_reasoning_first(planner):
    strategy = planner.plan(classified(QueryIntent.ANALYSIS, AssetType.STOCK, "TSLA"))

    assert strategy.primary_provider == ProviderId.CLAUDE
    assert strategy.timeout_seconds == 30.0
    assert ProviderId.ALPHA_VANTAGE in strategy.data_providers
    assert ProviderId.BENZINGA in strategy.data_providers


@pytest.mark.parametrize(
    "intent,asset_type,symbol",
    list(itertools.product(list(QueryIntent), list(AssetType), [None, "SYM"])),
)
def test_fallbacks_never_repeat(planner, intent, asset_type, symbol):
    strategy = planner.plan(classified(intent, asset_type, symbol))

    assert strategy.primary_provider not in strategy.fallback_providers
    assert len(set(strategy.cascade)) == len(strategy.cascade)
    assert len(set(strategy.data_providers)) == len(strategy.data_providers)
    assert strategy.requires_data == (symbol is not None)


def test_reasoning_intents_have_a_reasoning_fallback(planner):
    for intent in (QueryIntent.ANALYSIS, QueryIntent.EXPLANATION, QueryIntent.PREDICTION, QueryIntent.COMPARISON):
        strategy = planner.plan(classified(intent))
        assert all(p in REASONING_PROVIDERS for p in strategy.cascade)


def test_plan_is_pure(planner):
    query = classified(QueryIntent.PRICE, AssetType.CRYPTO, "ETH")
    assert planner.plan(query) == planner.plan(query)


def test_from_settings():
    planner = StrategyPlanner.from_settings(Settings(reasoning_timeout=12.0, data_timeout=4.0, max_retries=3))

    strategy = planner.plan(classified(QueryIntent.EXPLANATION))

    assert strategy.timeout_seconds == 12.0
    assert strategy.max_retries == 3
    assert planner.data_timeout == 4.0
