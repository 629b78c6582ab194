"""
Kraken Source

Kraken lists bitcoin as XBT and answers under its own pair key
(e.g. "XXBTZUSD" for the requested "XBTUSD"), so the first entry of the
result object is taken.

Endpoint Used:
    GET /0/public/Ticker?pair=XBTUSD
        {"error": [],
         "result": {"XXBTZUSD": {
             "c": ["50000.0", "0.01"],      # last trade [price, lot volume]
             "v": ["120.5", "3400.2"],      # volume [today, last 24h]
             "h": ["50500.0", "51000.0"],   # high [today, last 24h]
             "l": ["49500.0", "49000.0"]}}} # low  [today, last 24h]

Capabilities:
    quote, precise
"""

from typing import Optional

from core.config import settings
from core.schemas import Ticker
from core.source_interface import MarketSource


KRAKEN_SYMBOLS = {"BTC": "XBT", "DOGE": "XDG"}


class KrakenSource(MarketSource):
    """Kraken spot ticker connector."""

    name = "kraken"
    home_currency = "USD"
    direct_currencies = frozenset({"EUR", "GBP", "CAD", "JPY", "CHF", "AUD"})

    capabilities = {
        "quote": True,
        "precise": True,
        "history": False,
    }

    def __init__(self, http, tables=None, **timeouts):
        super().__init__(http, tables, **timeouts)
        self.base_url = settings.kraken_base_url

    def pair_for(self, base_id: str, currency: str) -> str:
        symbol = self.symbol_for(base_id)
        return f"{KRAKEN_SYMBOLS.get(symbol, symbol)}{currency.upper()}"

    async def _fetch_ticker(self, base_id: str, denomination: str, timeout: float) -> Optional[Ticker]:
        result = await self.http.get_json(
            f"{self.base_url}/0/public/Ticker",
            params={"pair": self.pair_for(base_id, denomination)},
            timeout=timeout,
            provider=self.name,
        )
        if not result.ok:
            return None

        data = result.data
        if data.get("error"):
            self.logger.warning(f"Kraken error for {base_id}/{denomination}: {data['error']}")
            return None

        pairs = data.get("result") or {}
        if not pairs:
            return None
        ticker = next(iter(pairs.values()))

        return Ticker(
            price=float(ticker["c"][0]),
            volume=float(ticker["v"][1]),
            high=float(ticker["h"][1]),
            low=float(ticker["l"][1]),
            denomination=denomination,
            latency_ms=result.latency_ms,
        )
