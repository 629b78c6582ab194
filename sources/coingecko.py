"""
CoinGecko Source

CoinGecko prices every asset directly in almost any currency (including
metals such as XAU), so quotes are always requested in the target currency.
It reports no base-asset volume, so its quotes carry none.

API Documentation:
    https://docs.coingecko.com/reference/introduction

Endpoints Used:
    GET /simple/price?ids=bitcoin&vs_currencies=eur
        {"bitcoin": {"eur": 46000.0}}

    GET /simple/price?ids=bitcoin,ethereum&vs_currencies=usd
        &include_24hr_change=true&include_24hr_vol=true&include_market_cap=true
        {"bitcoin": {"usd": 50000, "usd_24h_change": 1.2,
                     "usd_24h_vol": 2.1e10, "usd_market_cap": 9.8e11}, ...}

    GET /coins/bitcoin/market_chart?vs_currency=eur&days=7&interval=daily
        {"prices": [[1704067200000, 46000.0], ...], ...}

Capabilities:
    quote, history
"""

import math
from typing import List, Optional, Sequence

from core.config import settings
from core.schemas import HistoryPoint, MultiPriceQuote, Ticker
from core.source_interface import MarketSource, make_history_point
from core.utils.time import to_epoch_seconds


class CoinGeckoSource(MarketSource):
    """CoinGecko aggregator connector."""

    name = "coingecko"
    home_currency = "USD"

    capabilities = {
        "quote": True,
        "precise": False,
        "history": True,
    }

    def __init__(self, http, tables=None, **timeouts):
        timeouts.setdefault("history_timeout", settings.coingecko_history_timeout)
        super().__init__(http, tables, **timeouts)
        self.base_url = settings.coingecko_base_url

    def denomination_for(self, vs: str) -> str:
        return vs.upper()

    async def _fetch_ticker(self, base_id: str, denomination: str, timeout: float) -> Optional[Ticker]:
        result = await self.http.get_json(
            f"{self.base_url}/simple/price",
            params={"ids": base_id.lower(), "vs_currencies": denomination.lower()},
            timeout=timeout,
            provider=self.name,
        )
        if not result.ok:
            return None

        raw = (result.data.get(base_id.lower()) or {}).get(denomination.lower())
        if raw is None:
            return None

        return Ticker(price=float(raw), denomination=denomination, latency_ms=result.latency_ms)

    async def _fetch_history(
        self,
        base_id: str,
        vs: str,
        interval: str,
        limit: int,
        days: int,
    ) -> List[HistoryPoint]:
        result = await self.http.get_json(
            f"{self.base_url}/coins/{base_id.lower()}/market_chart",
            params={
                "vs_currency": vs.lower(),
                "days": days,
                "interval": "hourly" if days <= 1 else "daily",
            },
            timeout=self.history_timeout,
            provider=self.name,
        )
        if not result.ok:
            return []

        points = (
            make_history_point(to_epoch_seconds(timestamp), float(price))
            for timestamp, price in result.data.get("prices") or []
        )
        return [point for point in points if point is not None]

    async def get_market_rows(self, asset_ids: Sequence[str], vs: str) -> List[MultiPriceQuote]:
        """
        One call pricing every asset with 24h change, volume and market cap.

        Returns:
            Rows for the assets CoinGecko priced; empty list on any failure
        """
        currency = vs.lower()
        try:
            result = await self.http.get_json(
                f"{self.base_url}/simple/price",
                params={
                    "ids": ",".join(asset_ids),
                    "vs_currencies": currency,
                    "include_24hr_change": "true",
                    "include_24hr_vol": "true",
                    "include_market_cap": "true",
                },
                timeout=self.quote_timeout,
                provider=self.name,
            )
        except Exception as e:
            self.logger.warning(f"CoinGecko multi-price request failed: {e}")
            return []

        if not result.ok or not isinstance(result.data, dict):
            return []

        rows = []
        for asset_id in asset_ids:
            entry = result.data.get(asset_id)
            try:
                if not entry or entry.get(currency) is None:
                    continue

                price = float(entry[currency])
                change = float(entry.get(f"{currency}_24h_change") or 0)
                volume = float(entry.get(f"{currency}_24h_vol") or 0)
                market_cap = float(entry.get(f"{currency}_market_cap") or 0)
            except (TypeError, ValueError, AttributeError) as e:
                self.logger.warning(f"Malformed CoinGecko entry for {asset_id}: {e}")
                continue

            if not math.isfinite(price) or price <= 0:
                self.logger.warning(f"Invalid CoinGecko price for {asset_id}: {price}")
                continue

            rows.append(
                MultiPriceQuote(
                    id=asset_id,
                    symbol=self.symbol_for(asset_id),
                    price=price,
                    change_24h=change if math.isfinite(change) else 0.0,
                    volume_24h=volume if math.isfinite(volume) and volume > 0 else None,
                    market_cap=market_cap if math.isfinite(market_cap) and market_cap > 0 else None,
                )
            )
        return rows
