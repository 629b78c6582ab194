"""
Unit Tests for the Price and History Services

These tests drive the request-level pipelines with stub sources and a stub
FX resolver:
- /prices: fan-out, consolidation, outlier filtering, aggregation, degraded zero price
- /precise-prices: conversion of non-target quotes, hard failure when empty
- /multi-prices: CoinGecko first, Binance fallback, market-cap ordering
- /history: merge, USD x FX fallbacks, truncation

Run with:
    pytest tests/unit/test_price_service.py -v
"""

from typing import Dict, List, Optional

import pytest
from pydantic import ValidationError

from core.heuristics import HeuristicTables
from core.schemas import HistoryPoint, MultiPriceQuote, PrecisePriceQuote, SourceQuote
from core.source_manager import SourceManager
from services.errors import InvalidInterval, NoHistoryData, NoPreciseData, NoUsableQuotes
from services.history_service import DEFAULT_LIMIT, HistoryService, convert_series
from services.price_service import PriceService


# ============================================
# Stubs
# ============================================

class StubSource:
    """
    Stand-in for a MarketSource.

    quotes / precise / history are keyed by vs; "*" answers any other currency.
    """

    def __init__(
        self,
        name: str,
        quotes: Optional[Dict[str, SourceQuote]] = None,
        precise: Optional[Dict[str, PrecisePriceQuote]] = None,
        history: Optional[Dict[str, List[HistoryPoint]]] = None,
        capabilities: Optional[Dict[str, bool]] = None,
    ):
        self.name = name
        self.quotes = quotes or {}
        self.precise = precise or {}
        self.history = history or {}
        self.capabilities = capabilities or {"quote": True, "precise": bool(precise), "history": bool(history)}
        self.calls = []
        self.market_rows: List[MultiPriceQuote] = []

    def supports(self, feature):
        return self.capabilities.get(feature, False)

    @staticmethod
    def _pick(table, vs):
        return table.get(vs, table.get("*"))

    async def get_quote(self, base_id, vs):
        self.calls.append(("quote", base_id, vs))
        return self._pick(self.quotes, vs)

    async def get_precise_quote(self, base_id, vs):
        self.calls.append(("precise", base_id, vs))
        return self._pick(self.precise, vs)

    async def get_history(self, base_id, vs, interval, limit, days):
        self.calls.append(("history", vs, interval, limit, days))
        return list(self._pick(self.history, vs) or [])

    async def get_market_rows(self, asset_ids, vs):
        return list(self.market_rows)

    async def get_market_row(self, base_id):
        return next((row for row in self.market_rows if row.id == base_id), None)


class StubFx:
    def __init__(self, rate: Optional[float]):
        self.rate = rate
        self.calls = []

    async def resolve(self, base, target):
        self.calls.append((base, target))
        if base == target:
            return 1.0
        return self.rate


def q(source, price, volume=None):
    return SourceQuote(source=source, price=price, volume=volume)


def pq(source, price, confidence=0.8, volume=None):
    return PrecisePriceQuote(
        source=source, price=price, volume=volume, confidence=confidence,
        latency=120, last_update="2024-01-01T00:00:00.000Z",
    )


def series(*pairs):
    return [HistoryPoint(timestamp=ts, price=price) for ts, price in pairs]


def make_manager(*sources):
    return SourceManager(tables=HeuristicTables(), sources=list(sources))


# ============================================
# /prices
# ============================================

class TestGetPrices:

    @pytest.mark.asyncio
    async def test_usd_pipeline_excludes_outlier(self):
        manager = make_manager(
            StubSource("binance", quotes={"*": q("binance:USDT", 100.0)}),
            StubSource("kraken", quotes={"*": q("kraken:USD", 102.0)}),
            StubSource("bitstamp", quotes={"*": q("bitstamp:USD", 1000.0)}),
        )
        response = await PriceService(manager, StubFx(1.0)).get_prices("bitcoin", "usd")

        assert response.base == "BTC"
        assert response.vs == "USD"
        assert sorted(s.source for s in response.sources) == ["binance:USDT", "kraken:USD"]
        assert 100.0 <= response.price <= 102.0
        assert response.updated_at.endswith("Z")

    @pytest.mark.asyncio
    async def test_usd_quote_not_multiplied(self):
        manager = make_manager(StubSource("kraken", quotes={"*": q("kraken:USD", 50123.4567, 10.0)}))
        fx = StubFx(1.0)
        response = await PriceService(manager, fx).get_prices("bitcoin", "USD")

        assert response.price == 50123.4567
        assert response.sources[0].price == 50123.4567
        assert response.sources[0].source == "kraken:USD"

    @pytest.mark.asyncio
    async def test_all_sources_fail_is_zero_price(self):
        manager = make_manager(StubSource("binance"), StubSource("kraken"))
        response = await PriceService(manager, StubFx(0.9)).get_prices("bitcoin", "EUR")

        assert response.price == 0
        assert response.sources == []

    @pytest.mark.asyncio
    async def test_converts_usd_quotes_into_target(self):
        kraken = StubSource("kraken", quotes={"EUR": q("kraken:EUR", 45100.0)})
        binance = StubSource("binance", quotes={"*": q("binance:USDT", 50000.0)})
        response = await PriceService(make_manager(kraken, binance), StubFx(0.9)).get_prices("bitcoin", "EUR")

        by_source = {s.source: s.price for s in response.sources}
        assert by_source["kraken:EUR"] == 45100.0
        assert by_source["binance:USDT->EUR"] == pytest.approx(45000.0)
        assert kraken.calls == [("quote", "bitcoin", "EUR")]

    @pytest.mark.asyncio
    async def test_derives_cross_rate_from_coingecko(self):
        coingecko = StubSource(
            "coingecko",
            quotes={"XAU": q("coingecko:XAU", 21.0), "USD": q("coingecko:USD", 50000.0)},
        )
        kraken = StubSource("kraken", quotes={"*": q("kraken:USD", 50000.0)})
        response = await PriceService(make_manager(coingecko, kraken), StubFx(None)).get_prices("bitcoin", "XAU")

        by_source = {s.source: s.price for s in response.sources}
        assert by_source["coingecko:XAU"] == 21.0
        assert by_source["kraken:USD->XAU"] == pytest.approx(21.0)
        assert ("quote", "bitcoin", "USD") in coingecko.calls

    @pytest.mark.asyncio
    async def test_unnormalisable_quotes_raise_with_sources(self):
        manager = make_manager(StubSource("kraken", quotes={"*": q("kraken:USD", 50000.0)}))

        with pytest.raises(NoUsableQuotes) as exc_info:
            await PriceService(manager, StubFx(None)).get_prices("bitcoin", "XAU")

        assert exc_info.value.sources == ["kraken:USD"]
        assert exc_info.value.status_code == 502


# ============================================
# /precise-prices
# ============================================

class TestGetPrecisePrices:

    @pytest.mark.asyncio
    async def test_scores_precise_quotes(self):
        manager = make_manager(
            StubSource("binance", precise={"*": pq("binance:USDT", 50000.0, 0.9)}),
            StubSource("kraken", precise={"*": pq("kraken:USD", 50100.0, 0.6)}),
        )
        response = await PriceService(manager, StubFx(1.0)).get_precise_prices("bitcoin", "USD")

        assert response.base == "BTC"
        assert response.confidence == 0.75
        assert response.price_range.min == 50000.0
        assert response.price_range.max == 50100.0
        assert len(response.sources) == 2

    @pytest.mark.asyncio
    async def test_converts_with_fx_and_tags_source(self):
        manager = make_manager(StubSource("binance", precise={"*": pq("binance:USDT", 50000.0)}))
        response = await PriceService(manager, StubFx(0.9)).get_precise_prices("bitcoin", "EUR")

        assert response.sources[0].source == "binance:USDT->EUR"
        assert response.price == pytest.approx(45000.0)

    @pytest.mark.asyncio
    async def test_drops_quotes_without_fx(self):
        manager = make_manager(StubSource("binance", precise={"*": pq("binance:USDT", 50000.0)}))
        with pytest.raises(NoPreciseData):
            await PriceService(manager, StubFx(None)).get_precise_prices("bitcoin", "XAU")

    @pytest.mark.asyncio
    async def test_all_sources_fail_raises(self):
        manager = make_manager(StubSource("binance", capabilities={"precise": True}))
        with pytest.raises(NoPreciseData):
            await PriceService(manager, StubFx(1.0)).get_precise_prices("bitcoin", "USD")


# ============================================
# /multi-prices
# ============================================

class TestGetMultiPrices:

    @pytest.mark.asyncio
    async def test_coingecko_rows_sorted_by_market_cap(self):
        coingecko = StubSource("coingecko")
        coingecko.market_rows = [
            MultiPriceQuote(id="ethereum", symbol="ETH", price=3000.0, market_cap=3.6e11),
            MultiPriceQuote(id="bitcoin", symbol="BTC", price=50000.0, market_cap=9.8e11),
        ]
        response = await PriceService(make_manager(coingecko), StubFx(1.0)).get_multi_prices("USD")
        assert [row.id for row in response.data] == ["bitcoin", "ethereum"]

    @pytest.mark.asyncio
    async def test_binance_fallback_for_usd(self):
        binance = StubSource("binance")
        binance.market_rows = [MultiPriceQuote(id="bitcoin", symbol="BTC", price=50000.0)]
        manager = make_manager(StubSource("coingecko"), binance)

        response = await PriceService(manager, StubFx(1.0)).get_multi_prices("USD")
        assert [row.symbol for row in response.data] == ["BTC"]

    @pytest.mark.asyncio
    async def test_no_fallback_outside_usd(self):
        binance = StubSource("binance")
        binance.market_rows = [MultiPriceQuote(id="bitcoin", symbol="BTC", price=50000.0)]
        manager = make_manager(StubSource("coingecko"), binance)

        with pytest.raises(NoUsableQuotes):
            await PriceService(manager, StubFx(0.9)).get_multi_prices("EUR")


# ============================================
# /history
# ============================================

class TestHistoryService:

    @pytest.mark.asyncio
    async def test_merges_sources(self):
        coingecko = StubSource("coingecko", history={"USD": series((1000, 50000.0))})
        binance = StubSource("binance", history={"USD": series((1000, 50010.0), (2000, 50020.0))})
        response = await HistoryService(make_manager(coingecko, binance), StubFx(1.0)).get_history(
            "bitcoin", "USD", "1h", 24
        )

        assert [(p.timestamp, p.price) for p in response.data] == [(1000, 50005.0), (2000, 50020.0)]
        assert response.base == "BTC"
        assert response.interval == "1h"
        assert coingecko.calls[0] == ("history", "USD", "1h", 24, 7)

    @pytest.mark.asyncio
    async def test_interval_map(self):
        binance = StubSource("binance", history={"*": series((1, 1.0))})
        service = HistoryService(make_manager(binance), StubFx(1.0))

        for interval, days in (("1m", 1), ("5m", 1), ("1h", 7), ("1d", 365)):
            await service.get_history("bitcoin", "USD", interval, 10)
            assert binance.calls[-1] == ("history", "USD", interval, 10, days)

    @pytest.mark.asyncio
    async def test_invalid_interval(self):
        service = HistoryService(make_manager(), StubFx(1.0))
        with pytest.raises(InvalidInterval):
            await service.get_history("bitcoin", "USD", "3h", 10)

    @pytest.mark.asyncio
    async def test_truncates_to_last_points(self):
        binance = StubSource("binance", history={"USD": series((1, 1.0), (2, 2.0), (3, 3.0))})
        service = HistoryService(make_manager(binance), StubFx(1.0), max_limit=2)

        response = await service.get_history("bitcoin", "USD", "1h", 5000)
        assert [p.timestamp for p in response.data] == [2, 3]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, -5])
    async def test_non_positive_limit_uses_default(self, limit):
        points = series(*((ts, float(ts)) for ts in range(1, 31)))
        binance = StubSource("binance", history={"USD": points})
        service = HistoryService(make_manager(binance), StubFx(1.0))

        response = await service.get_history("bitcoin", "USD", "1h", limit)
        assert len(response.data) == DEFAULT_LIMIT == 24
        assert response.data[-1].timestamp == 30
        assert binance.calls[0] == ("history", "USD", "1h", 24, 7)

    @pytest.mark.asyncio
    async def test_coingecko_usd_converted_when_target_missing(self):
        coingecko = StubSource("coingecko", history={"USD": series((1000, 50000.0))})
        service = HistoryService(make_manager(coingecko, StubSource("binance")), StubFx(0.9))

        response = await service.get_history("bitcoin", "EUR", "1d", 30)
        assert response.data[0].price == pytest.approx(45000.0)

    @pytest.mark.asyncio
    async def test_coindesk_fallback_for_long_ranges(self):
        coindesk = StubSource("coindesk", history={"USD": series((1000, 40000.0))})
        service = HistoryService(
            make_manager(StubSource("coingecko"), StubSource("binance"), coindesk), StubFx(0.5)
        )

        response = await service.get_history("bitcoin", "EUR", "1d", 30)
        assert response.data[0].price == pytest.approx(20000.0)

    @pytest.mark.asyncio
    async def test_binance_usd_fallback_for_short_ranges(self):
        binance = StubSource("binance", history={"USD": series((60, 50000.0))})
        coindesk = StubSource("coindesk", history={"USD": series((1000, 40000.0))})
        service = HistoryService(make_manager(StubSource("coingecko"), binance, coindesk), StubFx(0.9))

        response = await service.get_history("bitcoin", "EUR", "5m", 30)
        assert [(p.timestamp, p.price) for p in response.data] == [(60, pytest.approx(45000.0))]
        assert coindesk.calls == []

    @pytest.mark.asyncio
    async def test_empty_raises(self):
        service = HistoryService(make_manager(StubSource("coingecko"), StubSource("binance")), StubFx(0.9))
        with pytest.raises(NoHistoryData):
            await service.get_history("bitcoin", "EUR", "1h", 24)

    @pytest.mark.asyncio
    async def test_converted_series_drops_non_positive_points(self):
        coingecko = StubSource("coingecko", history={"USD": series((1000, 50000.0), (2000, 1e-320))})
        service = HistoryService(make_manager(coingecko, StubSource("binance")), StubFx(1e-10))

        response = await service.get_history("bitcoin", "EUR", "1d", 30)
        assert [p.timestamp for p in response.data] == [1000]
        assert response.data[0].price > 0


class TestHistoryPoints:

    @pytest.mark.parametrize("price", [0.0, -1.0, float("nan"), float("inf")])
    def test_rejects_invalid_price(self, price):
        with pytest.raises(ValidationError):
            HistoryPoint(timestamp=1, price=price)

    def test_convert_series_builds_validated_points(self):
        points = [HistoryPoint(timestamp=1, price=2.0, volume=3.0), HistoryPoint(timestamp=2, price=4.0)]
        converted = convert_series(points, 0.5)

        assert [(p.timestamp, p.price, p.volume) for p in converted] == [(1, 1.0, 3.0), (2, 2.0, None)]

    @pytest.mark.parametrize("rate", [0.0, -1.0, float("nan")])
    def test_convert_series_drops_unusable_rates(self, rate):
        assert convert_series(series((1, 2.0), (2, 4.0)), rate) == []

    def test_convert_series_unknown_rate(self):
        assert convert_series(series((1, 2.0)), None) == []
