"""
Unit Tests for the HTTP Routes

The module-level services in app.main are swapped for services built on stub
sources, so no request leaves the process. The lifespan is not entered, so the
shared HTTP session is never opened.

Run with:
    pytest tests/unit/test_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

import app.main as main
from core.heuristics import HeuristicTables
from core.schemas import HistoryPoint, PrecisePriceQuote, SourceQuote
from core.source_manager import SourceManager
from services.history_service import HistoryService
from services.price_service import PriceService
from tests.unit.test_price_service import StubFx, StubSource


@pytest.fixture
def client():
    return TestClient(main.app)


def install(monkeypatch, *sources, fx_rate=1.0):
    manager = SourceManager(tables=HeuristicTables(), sources=list(sources))
    fx = StubFx(fx_rate)
    monkeypatch.setattr(main, "price_service", PriceService(manager, fx))
    monkeypatch.setattr(main, "history_service", HistoryService(manager, fx))


# ============================================
# System Endpoints
# ============================================

class TestSystemEndpoints:

    def test_root(self, client):
        body = client.get("/").json()
        assert body["status"] == "operational"
        assert "binance" in body["sources"]

    def test_sources(self, client):
        sources = client.get("/sources").json()["sources"]
        names = {s["name"] for s in sources}
        assert names == {"binance", "kraken", "bitstamp", "coinbase", "coingecko", "coindesk"}


# ============================================
# /prices
# ============================================

class TestPricesEndpoint:

    def test_success_payload(self, client, monkeypatch):
        install(
            monkeypatch,
            StubSource("binance", quotes={"*": SourceQuote(source="binance:USDT", price=100.0, volume=3.0)}),
            StubSource("kraken", quotes={"*": SourceQuote(source="kraken:USD", price=102.0)}),
            StubSource("bitstamp", quotes={"*": SourceQuote(source="bitstamp:USD", price=1000.0)}),
        )
        response = client.get("/prices", params={"vs": "USD", "base": "bitcoin"})

        assert response.status_code == 200
        body = response.json()
        assert body["base"] == "BTC"
        assert body["vs"] == "USD"
        assert "updatedAt" in body
        tags = {s["source"] for s in body["sources"]}
        assert tags == {"binance:USDT", "kraken:USD"}
        kraken = next(s for s in body["sources"] if s["source"] == "kraken:USD")
        assert "volume" not in kraken

    def test_defaults_to_bitcoin_usd(self, client, monkeypatch):
        binance = StubSource("binance", quotes={"*": SourceQuote(source="binance:USDT", price=100.0)})
        install(monkeypatch, binance)

        assert client.get("/prices").status_code == 200
        assert binance.calls == [("quote", "bitcoin", "USD")]

    def test_all_sources_fail_is_200_with_zero(self, client, monkeypatch):
        install(monkeypatch, StubSource("binance"), StubSource("kraken"))
        response = client.get("/prices", params={"vs": "USD", "base": "bitcoin"})

        assert response.status_code == 200
        assert response.json()["price"] == 0
        assert response.json()["sources"] == []

    def test_unnormalisable_quotes_is_502(self, client, monkeypatch):
        install(monkeypatch, StubSource("kraken", quotes={"*": SourceQuote(source="kraken:USD", price=1.0)}), fx_rate=None)
        response = client.get("/prices", params={"vs": "XAU", "base": "bitcoin"})

        assert response.status_code == 502
        body = response.json()
        assert body["error"]
        assert body["base"] == "BTC"
        assert body["vs"] == "XAU"
        assert body["sources"] == ["kraken:USD"]
        assert "updatedAt" in body

    def test_unexpected_failure_is_500(self, client, monkeypatch):
        class Broken:
            async def get_prices(self, base_id, vs):
                raise RuntimeError("boom")

        monkeypatch.setattr(main, "price_service", Broken())
        response = client.get("/prices")

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to fetch prices"


# ============================================
# /precise-prices
# ============================================

class TestPrecisePricesEndpoint:

    def test_success_payload(self, client, monkeypatch):
        quote = PrecisePriceQuote(
            source="binance:USDT", price=50000.0, volume=10.0, confidence=0.9,
            latency=80, last_update="2024-01-01T00:00:00.000Z",
        )
        install(monkeypatch, StubSource("binance", precise={"*": quote}))
        body = client.get("/precise-prices").json()

        assert body["price"] == 50000.0
        assert body["confidence"] == 0.9
        assert body["priceRange"] == {"min": 50000.0, "max": 50000.0, "median": 50000.0}
        assert body["volatility"] == 0.0
        assert body["sources"][0]["lastUpdate"] == "2024-01-01T00:00:00.000Z"

    def test_all_sources_fail_is_502(self, client, monkeypatch):
        install(monkeypatch, StubSource("binance", capabilities={"precise": True}))
        response = client.get("/precise-prices", params={"vs": "USD", "base": "bitcoin"})

        assert response.status_code == 502
        assert "error" in response.json()


# ============================================
# /history and /multi-prices
# ============================================

class TestHistoryEndpoint:

    def test_merged_history(self, client, monkeypatch):
        install(
            monkeypatch,
            StubSource("coingecko", history={"USD": [HistoryPoint(timestamp=1000, price=50000.0)]}),
            StubSource("binance", history={"USD": [
                HistoryPoint(timestamp=1000, price=50010.0),
                HistoryPoint(timestamp=2000, price=50020.0),
            ]}),
        )
        body = client.get("/history", params={"interval": "1h", "limit": 24}).json()

        assert body["interval"] == "1h"
        assert [(p["timestamp"], p["price"]) for p in body["data"]] == [(1000, 50005.0), (2000, 50020.0)]

    def test_invalid_interval_is_400(self, client, monkeypatch):
        install(monkeypatch)
        response = client.get("/history", params={"interval": "2w"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid interval"

    def test_empty_history_is_502(self, client, monkeypatch):
        install(monkeypatch, StubSource("coingecko"), StubSource("binance"))
        assert client.get("/history", params={"interval": "1d"}).status_code == 502

    def test_zero_limit_uses_default(self, client, monkeypatch):
        points = [HistoryPoint(timestamp=ts, price=100.0 + ts) for ts in range(1, 41)]
        install(monkeypatch, StubSource("binance", history={"USD": points}))
        response = client.get("/history", params={"interval": "1h", "limit": 0})

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data) == 24
        assert data[-1]["timestamp"] == 40


class TestMultiPricesEndpoint:

    def test_empty_is_502(self, client, monkeypatch):
        install(monkeypatch, StubSource("coingecko"))
        assert client.get("/multi-prices").status_code == 502
