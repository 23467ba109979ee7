"""
Adapter tests - vendor SDKs are mocked, no network
"""

import time
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

import pytest

from fakes import run
from heights_ai.adapters.llm_adapter import LiteLLMReasoningAdapter, create_reasoning_adapters
from heights_ai.adapters.yfinance_adapter import YFinanceAdapter
from heights_ai.config import Settings
from heights_ai.domain.models import ProviderId, Sentiment
from heights_ai.ports.interfaces import ProviderEmptyResult


def completion(content, finish_reason="stop"):
    return SimpleNamespace(choices=[
        SimpleNamespace(finish_reason=finish_reason, message=SimpleNamespace(content=content)),
    ])


class TestLiteLLMAdapter:

    def test_converse_prepends_system_prompt(self):
        adapter = LiteLLMReasoningAdapter(ProviderId.CLAUDE, "anthropic/test-model", api_key="key", max_tokens=100)
        mocked = AsyncMock(return_value=completion("Bitcoin is up."))

        with patch("heights_ai.adapters.llm_adapter.acompletion", mocked):
            answer = run(adapter.converse("be helpful", [{"role": "user", "content": "BTC?"}]))

        assert answer == "Bitcoin is up."
        kwargs = mocked.call_args.kwargs
        assert kwargs["model"] == "anthropic/test-model"
        assert kwargs["max_tokens"] == 100
        assert kwargs["messages"][0] == {"role": "system", "content": "be helpful"}
        assert kwargs["messages"][1] == {"role": "user", "content": "BTC?"}

    def test_length_stop_still_returns_text(self):
        adapter = LiteLLMReasoningAdapter(ProviderId.CLAUDE, "anthropic/test-model")

        with patch("heights_ai.adapters.llm_adapter.acompletion", AsyncMock(return_value=completion("cut off,", "length"))):
            assert run(adapter.converse("system", [])) == "cut off,"

    def test_empty_content_raises(self):
        adapter = LiteLLMReasoningAdapter(ProviderId.PERPLEXITY, "perplexity/sonar")

        with patch("heights_ai.adapters.llm_adapter.acompletion", AsyncMock(return_value=completion(None))):
            with pytest.raises(ProviderEmptyResult):
                run(adapter.converse("system", []))

    def test_adapters_need_keys(self):
        assert create_reasoning_adapters(Settings()) == []

        adapters = create_reasoning_adapters(Settings(anthropic_api_key="a", perplexity_api_key="p"))
        assert [a.provider_id for a in adapters] == [ProviderId.CLAUDE, ProviderId.PERPLEXITY]


class TestYFinanceAdapter:

    def test_crypto_ticker_mapping(self):
        adapter = YFinanceAdapter()

        assert adapter.to_ticker("btc") == "BTC-USD"
        assert adapter.to_ticker("AAPL") == "AAPL"
        assert adapter.provider_id == ProviderId.YFINANCE

    def test_quote_from_info(self):
        adapter = YFinanceAdapter()
        ticker = SimpleNamespace(info={
            "currentPrice": 110.0,
            "previousClose": 100.0,
            "dayHigh": 112.0,
            "dayLow": 99.0,
            "volume": 1000,
            "marketCap": 2e12,
        })

        with patch.object(adapter, "_get_ticker", return_value=ticker):
            point = run(adapter.fetch_market_data("aapl"))

        assert point.symbol == "AAPL"
        assert point.price == 110.0
        assert point.change == pytest.approx(10.0)
        assert point.change_percent == pytest.approx(10.0)
        assert point.high_24h == 112.0
        assert point.market_cap == 2e12
        assert point.source == ProviderId.YFINANCE

    def test_no_price_anywhere_raises(self):
        adapter = YFinanceAdapter()
        ticker = Mock(info={})
        ticker.history.return_value = Mock(empty=True)

        with patch.object(adapter, "_get_ticker", return_value=ticker):
            with pytest.raises(ProviderEmptyResult):
                run(adapter.fetch_market_data("ZZZZ"))

    def test_news_handles_both_payload_shapes(self):
        adapter = YFinanceAdapter()
        recent_iso = (datetime.now(timezone.utc) - timedelta(hours=2)).strftime("%Y-%m-%dT%H:%M:%SZ")
        ticker = SimpleNamespace(news=[
            {
                "content": {
                    "title": "Apple shares surge after record quarter",
                    "summary": "Services growth beat estimates.",
                    "pubDate": recent_iso,
                    "provider": {"displayName": "Yahoo Finance"},
                    "canonicalUrl": {"url": "https://example.com/a"},
                },
            },
            {
                "title": "AAPL slides as regulators raise concern",
                "providerPublishTime": int(time.time()) - 3600,
                "publisher": "Reuters",
                "link": "https://example.com/b",
            },
            {
                "title": "Ancient headline",
                "providerPublishTime": int(time.time()) - 200 * 86400,
            },
        ])

        with patch.object(adapter, "_get_ticker", return_value=ticker):
            items = run(adapter.fetch_news("AAPL", limit=10))

        assert [item.source for item in items] == ["Reuters", "Yahoo Finance"]
        assert items[0].sentiment == Sentiment.NEGATIVE
        assert items[1].sentiment == Sentiment.POSITIVE
        assert items[1].url == "https://example.com/a"
        assert items[0].relevance_score == 0.8

    def test_news_limit(self):
        adapter = YFinanceAdapter()
        now = int(time.time())
        ticker = SimpleNamespace(news=[
            {"title": f"Headline {i}", "providerPublishTime": now - i * 60} for i in range(5)
        ])

        with patch.object(adapter, "_get_ticker", return_value=ticker):
            items = run(adapter.fetch_news("BTC", limit=2))

        assert [item.title for item in items] == ["Headline 0", "Headline 1"]
