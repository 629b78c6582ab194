"""
Price Service

Request-level orchestration for /prices, /precise-prices and /multi-prices.

Pipeline for /prices:
    every "quote" source + FX resolver, concurrently (settle-all)
        -> consolidate into the target currency
        -> filter outliers
        -> reliability-weighted aggregation
        -> fallback price (direct quote, then FX-converted USD quote)

Nothing is cached between calls; every request starts from zero state.
"""

import asyncio
import math
from typing import Any, List, Optional, Sequence

from core.heuristics import HeuristicTables
from core.logging import get_logger
from core.schemas import (
    USD_DENOMINATIONS,
    MultiPriceQuote,
    MultiPricesResponse,
    PrecisePriceQuote,
    PrecisePricesResponse,
    PricesResponse,
    SourceQuote,
)
from core.source_manager import SourceManager
from core.utils.time import utc_now_iso
from services.aggregator import aggregate, fallback_price
from services.confidence import score_precise
from services.consolidator import consolidate
from services.errors import NoPreciseData, NoUsableQuotes
from services.fx_resolver import FxRateResolver, derive_cross_rate
from services.outlier_filter import filter_outliers


def _settled(outcome: Any) -> Any:
    """Result of a gathered awaitable, with exceptions mapped to None."""
    return None if isinstance(outcome, BaseException) else outcome


class PriceService:
    """
    Produces the published price payloads.

    Attributes:
        manager: Registry of market sources
        fx: FX rate resolver
        tables: Heuristic tables (weights, ceilings, asset symbols)
    """

    def __init__(
        self,
        manager: SourceManager,
        fx: Optional[FxRateResolver] = None,
        tables: Optional[HeuristicTables] = None,
    ):
        self.manager = manager
        self.tables = tables or manager.tables
        self.fx = fx or FxRateResolver(manager.http, self.tables)
        self.logger = get_logger(__name__)

    # ============================================
    # FX
    # ============================================

    async def _derived_rate(self, base_id: str, vs: str, quotes: Sequence[SourceQuote]) -> Optional[float]:
        """
        Cross-rate from CoinGecko's own target and USD prices for the same asset.
        """
        if not self.manager.has_source("coingecko"):
            return None
        coingecko = self.manager.get_source("coingecko")

        in_target = next(
            (q.price for q in quotes if q.provider == "coingecko" and q.denomination == vs),
            None,
        )
        if in_target is None:
            return None

        in_usd = await coingecko.get_quote(base_id, "USD")
        rate = derive_cross_rate(in_target, in_usd.price if in_usd else None)
        if rate is not None:
            self.logger.info(f"Derived USD->{vs} cross-rate {rate:.6f} from coingecko")
        return rate

    # ============================================
    # /prices
    # ============================================

    async def get_prices(self, base_id: str, vs: str) -> PricesResponse:
        """
        Consolidated price of base_id in vs.

        Returns:
            PricesResponse; price 0 with no sources when every provider failed

        Raises:
            NoUsableQuotes: Providers answered but no quote could be expressed in vs
        """
        base_id, vs = base_id.lower(), vs.upper()
        sources = self.manager.sources_with_feature("quote")

        outcomes = await asyncio.gather(
            *(source.get_quote(base_id, vs) for source in sources),
            self.fx.resolve("USD", vs),
            return_exceptions=True,
        )
        quotes: List[SourceQuote] = [q for q in map(_settled, outcomes[:-1]) if q is not None]
        fx_rate: Optional[float] = _settled(outcomes[-1])

        if fx_rate is None and vs != "USD":
            fx_rate = await self._derived_rate(base_id, vs, quotes)

        symbol = self.tables.symbol_for(base_id)
        if not quotes:
            self.logger.warning(f"No source returned a quote for {base_id}/{vs}")
            return PricesResponse(base=symbol, vs=vs, price=0, sources=[], updated_at=utc_now_iso())

        consolidated = consolidate(quotes, vs, fx_rate)
        if not consolidated:
            raise NoUsableQuotes(
                f"No quote could be expressed in {vs}",
                sources=[q.source for q in quotes],
            )

        filtered = filter_outliers(consolidated, base_id, self.tables, fx_rate)
        price = aggregate(filtered, self.tables)

        if price is None or not math.isfinite(price) or price <= 0:
            direct = next((q for q in quotes if q.denomination == vs), None)
            usd = next((q for q in quotes if q.denomination in USD_DENOMINATIONS), None)
            price = fallback_price(direct, usd, fx_rate) or 0

        self.logger.info(
            f"Price {base_id}/{vs}: {price:.8g} from {len(filtered)}/{len(quotes)} source(s)"
        )
        return PricesResponse(
            base=symbol,
            vs=vs,
            price=price,
            sources=filtered,
            updated_at=utc_now_iso(),
        )

    # ============================================
    # /precise-prices
    # ============================================

    @staticmethod
    def _in_currency(
        quote: PrecisePriceQuote,
        vs: str,
        fx_rate: Optional[float],
    ) -> Optional[PrecisePriceQuote]:
        if quote.denomination == vs:
            return quote
        if vs == "USD" and quote.denomination in USD_DENOMINATIONS:
            return quote
        if quote.denomination in USD_DENOMINATIONS and fx_rate is not None:
            return quote.model_copy(
                update={"source": f"{quote.source}->{vs}", "price": quote.price * fx_rate}
            )
        return None

    async def get_precise_prices(self, base_id: str, vs: str) -> PrecisePricesResponse:
        """
        Confidence-scored price from the low-latency sources.

        Raises:
            NoPreciseData: If no precise source produced a usable quote
        """
        base_id, vs = base_id.lower(), vs.upper()
        sources = self.manager.sources_with_feature("precise")

        outcomes = await asyncio.gather(
            *(source.get_precise_quote(base_id, vs) for source in sources),
            self.fx.resolve("USD", vs),
            return_exceptions=True,
        )
        fx_rate: Optional[float] = _settled(outcomes[-1])

        quotes: List[PrecisePriceQuote] = []
        for raw in map(_settled, outcomes[:-1]):
            if raw is None:
                continue
            quote = self._in_currency(raw, vs, fx_rate)
            if quote is None:
                self.logger.debug(f"Dropping precise {raw.source}: cannot express in {vs}")
                continue
            quotes.append(quote)

        if not quotes:
            raise NoPreciseData("No precise price data available")

        summary = score_precise(quotes)
        self.logger.info(
            f"Precise {base_id}/{vs}: {summary.price} "
            f"(confidence {summary.confidence}, {len(quotes)} source(s))"
        )
        return PrecisePricesResponse(
            base=self.tables.symbol_for(base_id),
            vs=vs,
            price=summary.price,
            confidence=summary.confidence,
            sources=quotes,
            price_range=summary.price_range,
            volatility=summary.volatility,
            updated_at=utc_now_iso(),
        )

    # ============================================
    # /multi-prices
    # ============================================

    async def get_multi_prices(self, vs: str) -> MultiPricesResponse:
        """
        Price every configured asset in one response.

        CoinGecko first; when it returns nothing and vs is USD, Binance 24h
        tickers are used per asset. Rows are sorted by market cap, descending.

        Raises:
            NoUsableQuotes: If neither provider priced any asset
        """
        vs = vs.upper()
        assets = self.tables.default_assets
        rows: List[MultiPriceQuote] = []

        if self.manager.has_source("coingecko"):
            rows = await self.manager.get_source("coingecko").get_market_rows(assets, vs)

        if not rows and vs == "USD" and self.manager.has_source("binance"):
            self.logger.warning("CoinGecko returned no rows, falling back to Binance tickers")
            binance = self.manager.get_source("binance")
            outcomes = await asyncio.gather(
                *(binance.get_market_row(asset_id) for asset_id in assets),
                return_exceptions=True,
            )
            rows = [row for row in map(_settled, outcomes) if row is not None]

        if not rows:
            raise NoUsableQuotes("No price data available", sources=["coingecko", "binance"])

        rows.sort(key=lambda row: row.market_cap or 0, reverse=True)
        return MultiPricesResponse(data=rows, updated_at=utc_now_iso())
