"""
CoinDesk Bitcoin Price Index Source

Bitcoin only, USD only.

Endpoints Used:
    GET /v1/bpi/currentprice/USD.json
        {"bpi": {"USD": {"rate_float": 50000.1234, ...}}}

    GET /v1/bpi/historical/close.json?currency=USD&start=2024-01-01&end=2024-01-31
        {"bpi": {"2024-01-01": 42280.23, ...}}

Capabilities:
    quote, history (daily closes; used as the USD fallback for long ranges)
"""

from datetime import timedelta
from typing import List, Optional

from core.config import settings
from core.schemas import HistoryPoint, Ticker
from core.source_interface import MarketSource, make_history_point
from core.utils.time import current_utc_datetime, date_to_epoch_seconds


SUPPORTED_ASSET = "bitcoin"


class CoinDeskSource(MarketSource):
    """CoinDesk BPI connector."""

    name = "coindesk"
    home_currency = "USD"

    capabilities = {
        "quote": True,
        "precise": False,
        "history": True,
    }

    def __init__(self, http, tables=None, **timeouts):
        super().__init__(http, tables, **timeouts)
        self.base_url = settings.coindesk_base_url

    async def _fetch_ticker(self, base_id: str, denomination: str, timeout: float) -> Optional[Ticker]:
        if base_id.lower() != SUPPORTED_ASSET:
            return None

        result = await self.http.get_json(
            f"{self.base_url}/v1/bpi/currentprice/USD.json",
            timeout=timeout,
            provider=self.name,
        )
        if not result.ok:
            return None

        rate = result.data["bpi"]["USD"]["rate_float"]
        return Ticker(price=float(rate), denomination="USD", latency_ms=result.latency_ms)

    async def _fetch_history(
        self,
        base_id: str,
        vs: str,
        interval: str,
        limit: int,
        days: int,
    ) -> List[HistoryPoint]:
        if base_id.lower() != SUPPORTED_ASSET or vs != "USD":
            return []

        end = current_utc_datetime()
        start = end - timedelta(days=days)
        result = await self.http.get_json(
            f"{self.base_url}/v1/bpi/historical/close.json",
            params={
                "currency": "USD",
                "start": start.strftime("%Y-%m-%d"),
                "end": end.strftime("%Y-%m-%d"),
            },
            timeout=self.history_timeout,
            provider=self.name,
        )
        if not result.ok:
            return []

        closes = result.data.get("bpi") or {}
        points = (
            make_history_point(date_to_epoch_seconds(day), float(price))
            for day, price in sorted(closes.items())
        )
        return [point for point in points if point is not None]
