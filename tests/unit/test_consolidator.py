"""
Unit Tests for the Quote Consolidator

Run with:
    pytest tests/unit/test_consolidator.py -v
"""

import pytest

from core.schemas import SourceQuote
from services.consolidator import consolidate


def q(source, price, volume=None):
    return SourceQuote(source=source, price=price, volume=volume)


class TestTargetUsd:

    def test_usd_and_usdt_pass_through_unchanged(self):
        quotes = [q("binance:USDT", 50000.12345, 10.0), q("kraken:USD", 50010.0)]
        result = consolidate(quotes, "USD", fx_rate=1.0)

        assert [(r.source, r.price) for r in result] == [
            ("binance:USDT", 50000.12345),
            ("kraken:USD", 50010.0),
        ]

    def test_absent_quotes_are_skipped(self):
        assert consolidate([None, q("kraken:USD", 1.0), None], "USD", 1.0)[0].source == "kraken:USD"

    def test_empty_input(self):
        assert consolidate([], "USD", 1.0) == []


class TestConversion:

    def test_usd_converted_and_tagged(self):
        result = consolidate([q("kraken:USD", 50000.0, 5.0)], "EUR", fx_rate=0.9)

        assert len(result) == 1
        assert result[0].source == "kraken:USD->EUR"
        assert result[0].price == pytest.approx(45000.0)
        assert result[0].volume == 5.0

    def test_direct_quote_is_not_converted(self):
        result = consolidate([q("binance:EUR", 46000.0), q("binance:USDT", 50000.0)], "EUR", fx_rate=0.9)
        by_source = {r.source: r.price for r in result}

        assert by_source["binance:EUR"] == 46000.0
        assert by_source["binance:USDT->EUR"] == pytest.approx(45000.0)

    def test_usd_dropped_without_fx(self):
        result = consolidate([q("kraken:USD", 50000.0), q("coingecko:XAU", 21.0)], "XAU", fx_rate=None)
        assert [r.source for r in result] == ["coingecko:XAU"]

    def test_other_denominations_dropped(self):
        assert consolidate([q("kraken:GBP", 40000.0)], "EUR", fx_rate=0.9) == []


class TestDeduplication:

    def test_larger_volume_wins(self):
        quotes = [q("kraken:USD", 100.0, 1.0), q("kraken:USD", 101.0, 5.0), q("kraken:USD", 102.0)]
        result = consolidate(quotes, "USD", 1.0)

        assert len(result) == 1
        assert result[0].price == 101.0

    def test_source_keys_are_unique(self):
        quotes = [
            q("binance:USDT", 1.0, 3.0), q("binance:USDT", 1.1, 2.0),
            q("kraken:USD", 1.0), q("kraken:USD", 1.0),
            q("coinbase:EUR", 0.9), q("coinbase:EUR", 0.95, 1.0),
        ]
        for vs, rate in (("USD", 1.0), ("EUR", 0.9)):
            sources = [r.source for r in consolidate(quotes, vs, rate)]
            assert len(sources) == len(set(sources))
