"""
Binance Spot Source

Binance quotes most assets against USDT, and a handful of fiat pairs directly.

API Documentation:
    https://binance-docs.github.io/apidocs/spot/en/

Endpoints Used:
    GET /api/v3/ticker/24hr?symbol=BTCUSDT
        {"lastPrice": "50000.00", "volume": "1000.5", "highPrice": "51000.00",
         "lowPrice": "49000.00", "priceChangePercent": "1.25", ...}

    GET /api/v3/klines?symbol=BTCUSDT&interval=1h&limit=24
        [[openTime, open, high, low, close, volume, closeTime, ...], ...]

Capabilities:
    quote, precise, history
"""

from typing import List, Optional

from core.config import settings
from core.schemas import HistoryPoint, MultiPriceQuote, Ticker
from core.source_interface import MarketSource, make_history_point
from core.utils.time import to_epoch_seconds


class BinanceSource(MarketSource):
    """
    Binance spot market connector.

    Example:
        >>> source = BinanceSource(http)
        >>> quote = await source.get_quote("bitcoin", "USD")
        >>> quote.source
        'binance:USDT'
    """

    name = "binance"
    home_currency = "USDT"
    direct_currencies = frozenset({"EUR", "GBP", "TRY", "BRL", "JPY"})

    capabilities = {
        "quote": True,
        "precise": True,
        "history": True,
    }

    def __init__(self, http, tables=None, **timeouts):
        super().__init__(http, tables, **timeouts)
        self.base_url = settings.binance_base_url

    def pair_for(self, base_id: str, currency: str) -> str:
        """Binance symbol, with USD mapped onto the USDT book."""
        currency = currency.upper()
        quote_asset = "USDT" if currency in ("USD", "USDT") else currency
        return f"{self.symbol_for(base_id)}{quote_asset}"

    async def _fetch_ticker(self, base_id: str, denomination: str, timeout: float) -> Optional[Ticker]:
        symbol = self.pair_for(base_id, denomination)
        result = await self.http.get_json(
            f"{self.base_url}/api/v3/ticker/24hr",
            params={"symbol": symbol},
            timeout=timeout,
            provider=self.name,
        )
        if not result.ok:
            return None

        data = result.data
        return Ticker(
            price=float(data["lastPrice"]),
            volume=float(data["volume"]),
            high=float(data["highPrice"]),
            low=float(data["lowPrice"]),
            denomination=denomination,
            latency_ms=result.latency_ms,
        )

    async def _fetch_history(
        self,
        base_id: str,
        vs: str,
        interval: str,
        limit: int,
        days: int,
    ) -> List[HistoryPoint]:
        result = await self.http.get_json(
            f"{self.base_url}/api/v3/klines",
            params={"symbol": self.pair_for(base_id, vs), "interval": interval, "limit": limit},
            timeout=self.history_timeout,
            provider=self.name,
        )
        if not result.ok:
            return []

        points = (
            make_history_point(to_epoch_seconds(item[0]), float(item[4]), float(item[5]))
            for item in result.data
        )
        return [point for point in points if point is not None]

    async def get_market_row(self, base_id: str) -> Optional[MultiPriceQuote]:
        """
        24h USD(T) market row for the multi-price endpoint. None on any failure.
        """
        try:
            result = await self.http.get_json(
                f"{self.base_url}/api/v3/ticker/24hr",
                params={"symbol": self.pair_for(base_id, "USD")},
                timeout=self.quote_timeout,
                provider=self.name,
            )
            if not result.ok:
                return None

            data = result.data
            price = float(data["lastPrice"])
            volume = float(data.get("volume") or 0)
            if not price > 0:
                return None

            return MultiPriceQuote(
                id=base_id,
                symbol=self.symbol_for(base_id),
                price=price,
                change_24h=float(data.get("priceChangePercent") or 0),
                volume_24h=volume if volume > 0 else None,
            )
        except Exception as e:
            self.logger.warning(f"Binance market row failed for {base_id}: {e}")
            return None
