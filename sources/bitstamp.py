"""
Bitstamp Source

Endpoint Used:
    GET /api/v2/ticker/btcusd/
        {"last": "50000", "high": "51000", "low": "49000", "volume": "1500.2", ...}
"""

from typing import Optional

from core.config import settings
from core.schemas import Ticker
from core.source_interface import MarketSource


class BitstampSource(MarketSource):
    """Bitstamp spot ticker connector (plain quotes only)."""

    name = "bitstamp"
    home_currency = "USD"
    direct_currencies = frozenset({"EUR", "GBP"})

    capabilities = {
        "quote": True,
        "precise": False,
        "history": False,
    }

    def __init__(self, http, tables=None, **timeouts):
        super().__init__(http, tables, **timeouts)
        self.base_url = settings.bitstamp_base_url

    async def _fetch_ticker(self, base_id: str, denomination: str, timeout: float) -> Optional[Ticker]:
        pair = f"{self.symbol_for(base_id)}{denomination}".lower()
        result = await self.http.get_json(
            f"{self.base_url}/api/v2/ticker/{pair}/",
            timeout=timeout,
            provider=self.name,
        )
        if not result.ok:
            return None

        data = result.data
        return Ticker(
            price=float(data["last"]),
            volume=float(data["volume"]) if data.get("volume") is not None else None,
            high=float(data["high"]) if data.get("high") is not None else None,
            low=float(data["low"]) if data.get("low") is not None else None,
            denomination=denomination,
            latency_ms=result.latency_ms,
        )
