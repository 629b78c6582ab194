"""
Coinbase Exchange Source

Endpoint Used:
    GET /products/BTC-USD/stats
        {"open": "49500", "high": "51000", "low": "49000", "last": "50000",
         "volume": "8500.3", "volume_30day": "..."}

Capabilities:
    quote, precise
"""

from typing import Optional

from core.config import settings
from core.schemas import Ticker
from core.source_interface import MarketSource


class CoinbaseSource(MarketSource):
    """Coinbase Exchange product stats connector."""

    name = "coinbase"
    home_currency = "USD"
    direct_currencies = frozenset({"EUR", "GBP"})

    capabilities = {
        "quote": True,
        "precise": True,
        "history": False,
    }

    def __init__(self, http, tables=None, **timeouts):
        super().__init__(http, tables, **timeouts)
        self.base_url = settings.coinbase_base_url

    async def _fetch_ticker(self, base_id: str, denomination: str, timeout: float) -> Optional[Ticker]:
        product = f"{self.symbol_for(base_id)}-{denomination}"
        result = await self.http.get_json(
            f"{self.base_url}/products/{product}/stats",
            timeout=timeout,
            provider=self.name,
        )
        if not result.ok:
            return None

        data = result.data
        return Ticker(
            price=float(data["last"]),
            volume=float(data["volume"]),
            high=float(data["high"]),
            low=float(data["low"]),
            denomination=denomination,
            latency_ms=result.latency_ms,
        )
