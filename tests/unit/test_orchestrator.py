"""
Orchestrator unit tests
"""

import asyncio
from unittest.mock import Mock

import pytest

from fakes import FakeMarketData, FakeNews, FakeReasoner, make_news, make_quote, run
from heights_ai.domain.models import (
    DataFreshness,
    ErrorCode,
    ProviderId,
    QueryIntent,
    QueryOptions,
    Recommendation,
    ResponseType,
)
from heights_ai.gateway.provider_gateway import ProviderGateway
from heights_ai.orchestrator import Orchestrator
from heights_ai.orchestrator.orchestrator import GATHERING_MESSAGE
from heights_ai.presentation.formatter import FALLBACK_NOTICE, FALLBACK_SUGGESTIONS
from heights_ai.synthesis.synthesizer import INCOMPLETE_MARKER, SUPPLEMENT_HEADING


async def collect(stream):
    return [response async for response in stream]


class TestDataAnswers:
    """Answers served from prefetched market data"""

    def test_bitcoin_end_to_end(self, make_orchestrator, btc_quote):
        coinbase = FakeMarketData(ProviderId.COINBASE, {"BTC": btc_quote})
        claude = FakeReasoner(ProviderId.CLAUDE, ["Bitcoin is up modestly today."])
        orchestrator = make_orchestrator(coinbase, claude)

        response = run(orchestrator.process_query("What's Bitcoin doing today?"))

        assert response.market_data[0].symbol == "BTC"
        assert "62,000" in response.content
        assert "Bitcoin is up modestly today." in response.content
        assert response.type == ResponseType.DATA
        assert response.metadata.sources[0] == ProviderId.COINBASE
        assert response.metadata.confidence == pytest.approx(0.9)
        assert response.metadata.data_freshness == DataFreshness.REAL_TIME
        assert response.metadata.classification.asset_symbol == "BTC"
        assert response.partial is False
        assert "Set price alerts" in response.suggestions

    def test_answer_without_reasoner_is_snapshot_only(self, make_orchestrator, btc_quote):
        coinbase = FakeMarketData(ProviderId.COINBASE, {"BTC": btc_quote})
        orchestrator = make_orchestrator(coinbase)

        response = run(orchestrator.process_query("BTC price"))

        assert "$62,000.00" in response.content
        assert response.metadata.sources == (ProviderId.COINBASE,)

    def test_cascade_skips_failed_providers(self, make_orchestrator):
        alpha = FakeMarketData(ProviderId.ALPHA_VANTAGE, error=ConnectionError("refused"))
        polygon = FakeMarketData(ProviderId.POLYGON, error=RuntimeError("bad gateway"))
        twelve = FakeMarketData(
            ProviderId.TWELVE_DATA,
            {"AAPL": make_quote("AAPL", 190.5, 0.8, ProviderId.TWELVE_DATA)},
        )
        orchestrator = make_orchestrator(alpha, polygon, twelve)

        response = run(orchestrator.process_query("What's the price of AAPL?"))

        assert response.metadata.sources[0] == ProviderId.TWELVE_DATA
        assert ProviderId.ALPHA_VANTAGE not in response.metadata.sources
        assert ProviderId.POLYGON not in response.metadata.sources
        assert "$190.50" in response.content
        # prefetched once, never re-requested by the cascade
        assert alpha.call_count == 1
        assert polygon.call_count == 1
        assert twelve.call_count == 1

    def test_news_query_uses_news_provider(self, make_orchestrator, news_items):
        gnews = FakeNews(ProviderId.GNEWS, news_items)
        orchestrator = make_orchestrator(gnews)

        response = run(orchestrator.process_query("Latest news on bitcoin"))

        assert response.type == ResponseType.NEWS
        assert response.metadata.sources[0] == ProviderId.GNEWS
        assert "Bitcoin surges on ETF inflows" in response.content
        assert response.metadata.confidence == pytest.approx(0.8)
        assert len(response.news) == 2


class TestReasoningAnswers:

    def test_failed_reasoner_falls_through_to_search(self, make_orchestrator):
        claude = FakeReasoner(ProviderId.CLAUDE, [RuntimeError("overloaded")])
        perplexity = FakeReasoner(ProviderId.PERPLEXITY, ["Index investing tracks a whole market cheaply."])
        orchestrator = make_orchestrator(claude, perplexity)

        response = run(orchestrator.process_query("Explain how index investing works"))

        assert response.metadata.sources[0] == ProviderId.PERPLEXITY
        assert response.metadata.data_freshness == DataFreshness.REAL_TIME
        expected = min(1.0, response.metadata.classification.confidence + 0.1)
        assert response.metadata.confidence == pytest.approx(expected)

    def test_truncated_answer_is_continued_once(self, make_orchestrator):
        claude = FakeReasoner(ProviderId.CLAUDE, [
            "Bitcoin has rallied strongly this quarter, driven by demand from institutions such as",
            "driven by demand from institutions such as pension funds and ETF issuers.",
        ])
        orchestrator = make_orchestrator(claude)

        response = run(orchestrator.process_query("Explain how institutional demand affects crypto markets"))

        assert claude.call_count == 2
        assert response.content == (
            "Bitcoin has rallied strongly this quarter, driven by demand from "
            "institutions such as pension funds and ETF issuers."
        )
        assert response.content.count("such as") == 1

    def test_failed_continuation_keeps_partial_answer(self, make_orchestrator):
        claude = FakeReasoner(ProviderId.CLAUDE, [
            "Index funds are popular for several reasons, including",
            RuntimeError("overloaded"),
        ])
        orchestrator = make_orchestrator(claude)

        response = run(orchestrator.process_query("Explain index funds"))

        assert response.content.startswith("Index funds are popular")
        assert response.content.endswith(INCOMPLETE_MARKER)
        assert response.metadata.sources == (ProviderId.CLAUDE,)

    def test_secondary_reasoner_is_merged(self, make_orchestrator):
        claude = FakeReasoner(ProviderId.CLAUDE, ["Bonds pay fixed interest.\n\nIn summary, they are lower risk."])
        perplexity = FakeReasoner(ProviderId.PERPLEXITY, ["Treasury yields rose this week."])
        orchestrator = make_orchestrator(claude, perplexity)

        response = run(orchestrator.process_query(
            "Explain how bonds work",
            options=QueryOptions(use_secondary_reasoner=True),
        ))

        assert response.metadata.sources == (ProviderId.CLAUDE, ProviderId.PERPLEXITY)
        assert SUPPLEMENT_HEADING in response.content
        assert "Treasury yields rose this week." in response.content
        assert perplexity.call_count == 1

    def test_analysis_is_scored_with_trade_setup(self, make_orchestrator):
        alpha = FakeMarketData(
            ProviderId.ALPHA_VANTAGE,
            {"AAPL": make_quote("AAPL", 190.0, 1.5, ProviderId.ALPHA_VANTAGE)},
        )
        claude = FakeReasoner(ProviderId.CLAUDE, [
            "Recommendation: BUY. Apple is in an uptrend with strong services growth.",
        ])
        orchestrator = make_orchestrator(alpha, claude)

        response = run(orchestrator.process_query(
            "Should I buy AAPL? Give me a technical analysis",
            options=QueryOptions(portfolio_size=100000),
        ))

        analysis = response.analysis
        assert response.type == ResponseType.ANALYSIS
        assert analysis is not None
        assert analysis.symbol == "AAPL"
        assert analysis.recommendation == Recommendation.BUY
        assert 0.0 <= analysis.confidence <= 1.0
        assert analysis.confidence_factors is not None
        assert analysis.trade_setup is not None
        assert analysis.trade_setup.stop_loss < analysis.trade_setup.entry
        assert response.metadata.sources[:2] == (ProviderId.CLAUDE, ProviderId.ALPHA_VANTAGE)
        assert 0.0 <= response.metadata.confidence <= 1.0
        grounded = claude.calls[0]["messages"][0]["content"]
        assert "AAPL: $190.00 (+1.50%) - Source: alpha_vantage" in grounded

    def test_analysis_survives_labels_without_numbers(self, make_orchestrator):
        alpha = FakeMarketData(
            ProviderId.ALPHA_VANTAGE,
            {"AAPL": make_quote("AAPL", 150.0, 0.5, ProviderId.ALPHA_VANTAGE)},
        )
        claude = FakeReasoner(ProviderId.CLAUDE, [
            "AAPL trades near $150. Key support, resistance levels matter, and volume, too.",
        ])
        orchestrator = make_orchestrator(alpha, claude)

        response = run(orchestrator.process_query("Analyze AAPL technical outlook"))

        assert response.type == ResponseType.ANALYSIS
        assert response.metadata.error_code != ErrorCode.INTERNAL_ERROR
        assert response.metadata.sources[0] == ProviderId.CLAUDE
        assert response.analysis is not None
        assert response.metadata.confidence > 0.0

    def test_sources_only_name_providers_whose_data_was_kept(self, make_orchestrator):
        quotes = [
            FakeMarketData(pid, {"AAPL": make_quote("AAPL", 190.0, 1.0, pid)})
            for pid in (ProviderId.ALPHA_VANTAGE, ProviderId.POLYGON, ProviderId.TWELVE_DATA, ProviderId.YFINANCE)
        ]
        orchestrator = make_orchestrator(*quotes, FakeReasoner(ProviderId.CLAUDE, ["Apple looks steady."]))

        response = run(orchestrator.process_query("Analyze AAPL"))

        kept = {q.source for q in response.market_data}
        assert len(response.market_data) == 3
        assert ProviderId.YFINANCE not in kept
        assert ProviderId.YFINANCE not in response.metadata.sources
        assert set(response.metadata.sources) == kept | {ProviderId.CLAUDE}

    def test_news_sources_follow_the_item_cap(self, make_orchestrator):
        polygon = FakeNews(ProviderId.POLYGON, [make_news(f"Headline {i}") for i in range(10)])
        gnews = FakeNews(ProviderId.GNEWS, [make_news("Crowded out")])
        orchestrator = make_orchestrator(gnews, polygon, FakeReasoner(ProviderId.CLAUDE, ["Sentiment is upbeat."]))

        response = run(orchestrator.process_query("Analyze BTC"))

        assert len(response.news) == 10
        assert "Crowded out" not in [item.title for item in response.news]
        assert response.metadata.sources == (ProviderId.CLAUDE, ProviderId.POLYGON)
        assert gnews.call_count == 1


class TestFallback:

    def test_terminal_fallback_answers_when_cascade_fails(self, make_orchestrator):
        claude = FakeReasoner(ProviderId.CLAUDE, [RuntimeError("down"), "Bonds pay fixed interest."])
        perplexity = FakeReasoner(ProviderId.PERPLEXITY, [RuntimeError("down")])
        orchestrator = make_orchestrator(claude, perplexity)

        response = run(orchestrator.process_query("Explain how bonds work"))

        assert response.content.startswith(FALLBACK_NOTICE)
        assert "Bonds pay fixed interest." in response.content
        assert response.metadata.sources == (ProviderId.CLAUDE,)
        assert response.metadata.confidence == pytest.approx(0.6)
        assert response.suggestions == FALLBACK_SUGGESTIONS

    def test_everything_failing_still_returns_a_response(self, make_orchestrator):
        claude = FakeReasoner(ProviderId.CLAUDE, [RuntimeError("down")])
        perplexity = FakeReasoner(ProviderId.PERPLEXITY, [RuntimeError("down")])
        orchestrator = make_orchestrator(claude, perplexity)

        response = run(orchestrator.process_query("Explain how bonds work"))

        assert response.content.startswith(FALLBACK_NOTICE)
        assert response.metadata.sources == ()
        assert response.metadata.confidence == pytest.approx(0.1)
        assert response.metadata.error_code == ErrorCode.ALL_PROVIDERS_EXHAUSTED
        assert claude.call_count == 2

    def test_price_query_falls_back_to_reasoner_when_data_fails(self, make_orchestrator):
        alpha = FakeMarketData(ProviderId.ALPHA_VANTAGE, error=ConnectionError("refused"))
        polygon = FakeMarketData(ProviderId.POLYGON, error=RuntimeError("bad gateway"))
        claude = FakeReasoner(ProviderId.CLAUDE, ["Apple usually trades in a wide range."])
        orchestrator = make_orchestrator(alpha, polygon, claude)

        response = run(orchestrator.process_query("What's the price of AAPL?"))

        assert response.metadata.classification.intent == QueryIntent.PRICE
        assert ProviderId.CLAUDE in response.metadata.sources
        assert ProviderId.ALPHA_VANTAGE not in response.metadata.sources
        assert "Real-time market data and news are currently unavailable" in response.content
        assert "Apple usually trades in a wide range." in response.content
        assert response.metadata.confidence == pytest.approx(0.6)

    def test_no_providers_registered(self, make_orchestrator):
        response = run(make_orchestrator().process_query("What's Bitcoin doing today?"))

        assert response.content.startswith(FALLBACK_NOTICE)
        assert response.metadata.sources == ()


class TestErrors:

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_invalid_query_returns_error_response(self, make_orchestrator, query):
        response = run(make_orchestrator().process_query(query))

        assert response.type == ResponseType.ERROR
        assert response.metadata.confidence == 0.0
        assert response.metadata.sources == ()
        assert response.metadata.error_code == ErrorCode.INVALID_INPUT
        assert response.content.startswith("I apologize")

    def test_unexpected_exception_becomes_error_response(self, settings):
        classifier = Mock()
        classifier.classify.side_effect = RuntimeError("boom")
        orchestrator = Orchestrator(ProviderGateway(), classifier=classifier, settings=settings)

        response = run(orchestrator.process_query("What's Bitcoin doing today?"))

        assert response.type == ResponseType.ERROR
        assert response.metadata.error_code == ErrorCode.INTERNAL_ERROR
        assert "boom" in response.content
        assert response.metadata.classification is None
        assert len(response.suggestions) == 3


class TestProperties:

    @pytest.mark.parametrize("query", [
        "What's Bitcoin doing today?",
        "Should I buy TSLA?",
        "Compare ETH vs SOL",
        "hello there",
        "Latest news on gold",
        "Will EUR/USD go up next month?",
    ])
    def test_confidence_is_bounded(self, make_orchestrator, btc_quote, query):
        orchestrator = make_orchestrator(
            FakeMarketData(ProviderId.COINBASE, {"BTC": btc_quote}),
            FakeReasoner(ProviderId.CLAUDE, ["Markets move for many reasons."]),
        )

        response = run(orchestrator.process_query(query))

        assert 0.0 <= response.metadata.confidence <= 1.0
        assert response.metadata.processing_time_ms >= 0.0

    def test_concurrent_queries_do_not_share_data(self, make_orchestrator, btc_quote):
        coinbase = FakeMarketData(ProviderId.COINBASE, {"BTC": btc_quote}, delay=0.01)
        alpha = FakeMarketData(
            ProviderId.ALPHA_VANTAGE,
            {"AAPL": make_quote("AAPL", 190.5, 0.8, ProviderId.ALPHA_VANTAGE)},
            delay=0.01,
        )
        orchestrator = make_orchestrator(coinbase, alpha)

        async def both():
            return await asyncio.gather(
                orchestrator.process_query("What's Bitcoin doing today?"),
                orchestrator.process_query("What's the price of AAPL?"),
            )

        btc, aapl = run(both())

        assert {p.symbol for p in btc.market_data} == {"BTC"}
        assert {p.symbol for p in aapl.market_data} == {"AAPL"}
        assert "62,000" in btc.content
        assert "62,000" not in aapl.content
        assert btc.id != aapl.id


class TestStreaming:

    def test_stream_yields_progress_then_final(self, make_orchestrator, btc_quote):
        orchestrator = make_orchestrator(FakeMarketData(ProviderId.COINBASE, {"BTC": btc_quote}))

        responses = run(collect(orchestrator.stream_process_query("What's Bitcoin doing today?")))

        assert len(responses) == 3
        assert responses[0].partial and responses[0].metadata.classification.asset_symbol == "BTC"
        assert responses[1].partial and responses[1].content == GATHERING_MESSAGE
        assert not responses[2].partial
        assert "62,000" in responses[2].content

    def test_stream_without_data_skips_gathering(self, make_orchestrator):
        orchestrator = make_orchestrator(FakeReasoner(ProviderId.CLAUDE, ["Diversify across assets."]))

        responses = run(collect(orchestrator.stream_process_query("Explain diversification")))

        assert [r.partial for r in responses] == [True, False]
        assert responses[-1].content == "Diversify across assets."
