"""
History Service

Builds the /history series from CoinGecko market charts and Binance klines.

Fallback chain when vs is not USD:
    1. CoinGecko returned nothing -> CoinGecko USD series x FX(USD->vs)
    2. both sources still empty   -> CoinDesk (ranges over a day) or
                                     Binance USD klines, x FX(USD->vs)

The surviving series are merged point-by-point and the last `limit` points kept.
"""

import asyncio
from typing import Dict, List, Optional, Tuple

from core.config import settings
from core.logging import get_logger
from core.schemas import HistoryPoint, HistoryResponse
from core.source_interface import make_history_point
from core.source_manager import SourceManager
from core.utils.time import utc_now_iso
from services.errors import InvalidInterval, NoHistoryData
from services.fx_resolver import FxRateResolver
from services.history_merger import merge_history


# interval -> (provider candle interval, days of history requested)
INTERVALS: Dict[str, Tuple[str, int]] = {
    "1m": ("1m", 1),
    "5m": ("5m", 1),
    "1h": ("1h", 7),
    "1d": ("1d", 365),
}

DEFAULT_LIMIT = 24


def convert_series(points: List[HistoryPoint], rate: Optional[float]) -> List[HistoryPoint]:
    """
    Multiply every price by an FX rate. Empty when the rate is unknown.

    Points whose converted price is not a positive finite number are dropped.
    """
    if not points or rate is None:
        return []
    converted = (
        make_history_point(point.timestamp, point.price * rate, point.volume)
        for point in points
    )
    return [point for point in converted if point is not None]


class HistoryService:
    """
    Attributes:
        manager: Registry of market sources
        fx: FX rate resolver for the USD fallbacks
        max_limit: Upper bound on returned points
    """

    def __init__(
        self,
        manager: SourceManager,
        fx: Optional[FxRateResolver] = None,
        max_limit: Optional[int] = None,
    ):
        self.manager = manager
        self.fx = fx or FxRateResolver(manager.http, manager.tables)
        self.max_limit = max_limit or settings.history_max_limit
        self.logger = get_logger(__name__)

    async def _series(
        self,
        name: str,
        base_id: str,
        vs: str,
        interval: str,
        limit: int,
        days: int,
    ) -> List[HistoryPoint]:
        if not self.manager.has_source(name):
            return []
        return await self.manager.get_source(name).get_history(base_id, vs, interval, limit, days)

    async def get_history(self, base_id: str, vs: str, interval: str, limit: int) -> HistoryResponse:
        """
        Merged price series for base_id in vs.

        Raises:
            InvalidInterval: If interval is not one of 1m, 5m, 1h, 1d
            NoHistoryData: If every source and fallback came back empty
        """
        if interval not in INTERVALS:
            raise InvalidInterval("Invalid interval")

        base_id, vs = base_id.lower(), vs.upper()
        if limit <= 0:
            limit = DEFAULT_LIMIT
        limit = min(limit, self.max_limit)
        candle, days = INTERVALS[interval]

        coingecko, binance = await asyncio.gather(
            self._series("coingecko", base_id, vs, candle, limit, days),
            self._series("binance", base_id, vs, candle, limit, days),
        )

        if not coingecko and vs != "USD":
            usd_series, rate = await asyncio.gather(
                self._series("coingecko", base_id, "USD", candle, limit, days),
                self.fx.resolve("USD", vs),
            )
            coingecko = convert_series(usd_series, rate)
            if coingecko:
                self.logger.info(f"History {base_id}/{vs}: CoinGecko USD series converted at {rate}")

        if not coingecko and not binance and vs != "USD":
            fallback = "coindesk" if days > 1 else "binance"
            usd_series, rate = await asyncio.gather(
                self._series(fallback, base_id, "USD", candle, limit, days),
                self.fx.resolve("USD", vs),
            )
            binance = convert_series(usd_series, rate)
            if binance:
                self.logger.info(f"History {base_id}/{vs}: {fallback} USD series converted at {rate}")

        merged = merge_history([coingecko, binance])
        if not merged:
            raise NoHistoryData("No historical data available")

        data = merged[-limit:]
        self.logger.info(f"History {base_id}/{vs} {interval}: {len(data)} point(s)")
        return HistoryResponse(
            base=self.manager.tables.symbol_for(base_id),
            vs=vs,
            interval=interval,
            data=data,
            updated_at=utc_now_iso(),
        )
