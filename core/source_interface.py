"""
Market Source Interface - Abstract Contract for All Price Providers

Every market-data provider (Binance, Kraken, CoinGecko, ...) is wrapped in a
MarketSource subclass. Enforcing one interface means:
- The price service fans out to providers without knowing any of them
- Validation and error containment happen once, here, for every provider
- Adding a provider never touches the aggregation code

Public methods never raise. Network, HTTP, parsing and validation failures
are logged and turned into "absent" (None, or an empty list for history).

Subclasses implement the private hooks:
    _fetch_ticker(base_id, denomination, timeout) -> Optional[Ticker]
    _fetch_history(base_id, vs, interval, limit, days) -> List[HistoryPoint]

Capabilities System:
    capabilities = {
        "quote": True,     # plain /prices quote
        "precise": False,  # low-latency quote for /precise-prices
        "history": False,  # time series for /history
    }

Denomination:
    If the requested currency is listed in `direct_currencies` the adapter asks
    the provider for that pair directly; otherwise it asks for its
    `home_currency` (USD or USDT) and the consolidator converts later.
"""

import math
from abc import ABC, abstractmethod
from typing import Dict, FrozenSet, List, Optional

from core.config import settings
from core.heuristics import HeuristicTables
from core.http_client import HttpClient
from core.logging import get_logger
from core.schemas import (
    HistoryPoint,
    PrecisePriceQuote,
    SourceQuote,
    Ticker,
    make_source_tag,
)
from core.utils.time import utc_now_iso
from services.confidence import quote_confidence


# Reject snapshots whose last price sits outside the 24h band by more than this
HIGH_TOLERANCE = 1.1
LOW_TOLERANCE = 0.9


def _finite(value: Optional[float]) -> bool:
    return value is not None and isinstance(value, (int, float)) and math.isfinite(value)


def validate_ticker(ticker: Ticker) -> Optional[Ticker]:
    """
    Apply the uniform plausibility rules to a raw snapshot.

    Rules:
        - price must be finite and > 0
        - volume that is missing, non-finite or negative is dropped (not fatal)
        - when both 24h high and low are finite and positive:
            reject high < low
            reject price > high * 1.1
            reject price < low * 0.9

    Returns:
        A cleaned Ticker, or None if the snapshot must be discarded
    """
    if not _finite(ticker.price) or ticker.price <= 0:
        return None

    volume = ticker.volume if _finite(ticker.volume) and ticker.volume >= 0 else None
    high = ticker.high if _finite(ticker.high) and ticker.high > 0 else None
    low = ticker.low if _finite(ticker.low) and ticker.low > 0 else None

    if high is not None and low is not None:
        if high < low:
            return None
        if ticker.price > high * HIGH_TOLERANCE:
            return None
        if ticker.price < low * LOW_TOLERANCE:
            return None

    return ticker.model_copy(update={"volume": volume, "high": high, "low": low})


def make_history_point(timestamp: int, price: float, volume: Optional[float] = None) -> Optional[HistoryPoint]:
    """
    Build a series point, or None when the price is not a positive finite number.

    A volume that is missing, non-finite or negative is dropped.
    """
    if not _finite(price) or price <= 0:
        return None
    if not _finite(volume) or volume < 0:
        volume = None
    return HistoryPoint(timestamp=timestamp, price=price, volume=volume)


class MarketSource(ABC):
    """
    Abstract Base Class for Market-Data Providers

    Class Attributes:
        name: Unique provider identifier (lowercase), also the reliability-table key
        home_currency: Denomination used when the target currency is not listed
        direct_currencies: Quote currencies the provider lists for the base asset
        capabilities: Which request variants this provider serves

    Instance Attributes:
        http: Shared HttpClient
        tables: Heuristic tables (asset symbols, reliability weights)
        quote_timeout / precise_timeout / history_timeout: per-attempt deadlines (seconds)
    """

    name: str
    home_currency: str = "USD"
    direct_currencies: FrozenSet[str] = frozenset()

    capabilities: Dict[str, bool] = {
        "quote": True,
        "precise": False,
        "history": False,
    }

    def __init__(
        self,
        http: HttpClient,
        tables: Optional[HeuristicTables] = None,
        quote_timeout: Optional[float] = None,
        precise_timeout: Optional[float] = None,
        history_timeout: Optional[float] = None,
    ):
        self.http = http
        self.tables = tables or settings.heuristics
        self.quote_timeout = quote_timeout or settings.quote_timeout
        self.precise_timeout = precise_timeout or settings.precise_timeout
        self.history_timeout = history_timeout or settings.history_timeout
        self.logger = get_logger(f"sources.{self.name}")

    # ============================================
    # Helpers
    # ============================================

    def supports(self, feature: str) -> bool:
        """Check if this provider serves a request variant ("quote", "precise", "history")."""
        return self.capabilities.get(feature, False)

    def denomination_for(self, vs: str) -> str:
        """Currency to request from the provider for a target currency."""
        vs = vs.upper()
        if vs == self.home_currency or vs in self.direct_currencies:
            return vs
        return self.home_currency

    def symbol_for(self, base_id: str) -> str:
        return self.tables.symbol_for(base_id)

    @property
    def reliability(self) -> float:
        return self.tables.weight_for(self.name)

    # ============================================
    # Public, Never-Raising Operations
    # ============================================

    async def get_quote(self, base_id: str, vs: str) -> Optional[SourceQuote]:
        """
        Fetch one validated quote for base_id, in vs or in the home currency.

        Returns:
            SourceQuote tagged "<name>:<DENOMINATION>", or None
        """
        ticker = await self._safe_ticker(base_id, vs, self.quote_timeout)
        if ticker is None:
            return None

        quote = SourceQuote(
            source=make_source_tag(self.name, ticker.denomination),
            price=ticker.price,
            volume=ticker.volume,
        )
        self.logger.debug(f"{quote.source} {base_id}: {quote.price}")
        return quote

    async def get_precise_quote(self, base_id: str, vs: str) -> Optional[PrecisePriceQuote]:
        """
        Fetch a low-latency quote with a per-source confidence score.

        Returns:
            PrecisePriceQuote, or None if the provider has no precise variant or failed
        """
        if not self.supports("precise"):
            return None

        ticker = await self._safe_ticker(base_id, vs, self.precise_timeout)
        if ticker is None:
            return None

        confidence = quote_confidence(
            volume=ticker.volume,
            high=ticker.high,
            low=ticker.low,
            latency_ms=ticker.latency_ms,
            timeout_ms=self.precise_timeout * 1000,
        )

        return PrecisePriceQuote(
            source=make_source_tag(self.name, ticker.denomination),
            price=ticker.price,
            volume=ticker.volume if ticker.volume else None,
            confidence=confidence,
            latency=ticker.latency_ms,
            last_update=utc_now_iso(),
        )

    async def get_history(
        self,
        base_id: str,
        vs: str,
        interval: str,
        limit: int,
        days: int,
    ) -> List[HistoryPoint]:
        """
        Fetch a price series in exactly `vs`. Empty list on any failure.
        """
        if not self.supports("history"):
            return []

        try:
            points = await self._fetch_history(base_id, vs.upper(), interval, limit, days)
        except Exception as e:
            self.logger.warning(f"{self.name} history failed for {base_id}/{vs}: {e}")
            return []

        self.logger.debug(f"{self.name} history {base_id}/{vs} {interval}: {len(points)} points")
        return points

    async def _safe_ticker(self, base_id: str, vs: str, timeout: float) -> Optional[Ticker]:
        denomination = self.denomination_for(vs)
        try:
            ticker = await self._fetch_ticker(base_id, denomination, timeout)
        except Exception as e:
            self.logger.warning(f"{self.name} quote failed for {base_id}/{denomination}: {e}")
            return None

        if ticker is None:
            return None

        valid = validate_ticker(ticker)
        if valid is None:
            self.logger.warning(
                f"{self.name} rejected snapshot for {base_id}/{denomination}: "
                f"price={ticker.price} high={ticker.high} low={ticker.low}"
            )
        return valid

    # ============================================
    # Provider Hooks
    # ============================================

    @abstractmethod
    async def _fetch_ticker(self, base_id: str, denomination: str, timeout: float) -> Optional[Ticker]:
        """
        Request the provider's ticker for base_id priced in `denomination`.

        May raise; the caller contains every exception. Return None when the
        provider answered but has no usable data (non-2xx, missing pair).
        """
        ...

    async def _fetch_history(
        self,
        base_id: str,
        vs: str,
        interval: str,
        limit: int,
        days: int,
    ) -> List[HistoryPoint]:
        """Request a series; only providers with the "history" capability override this."""
        raise NotImplementedError(f"{self.name} does not support history")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name!r})>"
