"""
Normalized Data Schemas

This module defines Pydantic models for every quote and response type.

Key Principle:
    Regardless of which provider a quote comes from (Binance, Kraken, CoinGecko, ...),
    it gets normalized into these schemas before any aggregation happens.

Models:
    - Ticker: Raw provider snapshot, not yet validated
    - SourceQuote: One validated price from one provider
    - ConsolidatedQuote: A SourceQuote expressed in the requested currency
    - PrecisePriceQuote: SourceQuote with confidence and latency
    - HistoryPoint: One point of a price time series
    - PriceRange, PricesResponse, PrecisePricesResponse, HistoryResponse,
      MultiPriceQuote, MultiPricesResponse, ErrorResponse: endpoint payloads

Provenance tags:
    SourceQuote.source is "<provider>:<DENOMINATION>", e.g. "binance:USDT".
    A conversion is recorded by suffixing "-><VS>", e.g. "kraken:USD->EUR".
"""

from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


USD_DENOMINATIONS = ("USD", "USDT")


def make_source_tag(provider: str, denomination: str) -> str:
    """Build a provenance tag such as "kraken:USD"."""
    return f"{provider.lower()}:{denomination.upper()}"


def provider_of(source: str) -> str:
    """Provider part of a provenance tag ("kraken:USD->EUR" -> "kraken")."""
    return source.split(":", 1)[0]


def denomination_of(source: str) -> str:
    """
    Currency a quote is currently expressed in.

    Examples:
        >>> denomination_of("binance:USDT")
        'USDT'
        >>> denomination_of("kraken:USD->EUR")
        'EUR'
    """
    if "->" in source:
        return source.rsplit("->", 1)[1].upper()
    if ":" not in source:
        return ""
    return source.split(":", 1)[1].upper()


# ============================================
# Raw Provider Snapshot
# ============================================

class Ticker(BaseModel):
    """
    Raw 24h ticker snapshot as parsed from a provider payload.

    Values may still be NaN or inconsistent; `MarketSource.validate_ticker`
    decides whether the snapshot becomes a quote.
    """

    price: float
    denomination: str
    volume: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    latency_ms: int = 0


# ============================================
# Quotes
# ============================================

class SourceQuote(BaseModel):
    """
    A single validated price of one base asset from one provider.

    Attributes:
        source: Provenance tag, "<provider>:<DENOMINATION>"
        price: Price of 1 unit of the base asset
        volume: 24h volume in the base asset, when the provider reports it

    Example:
        >>> SourceQuote(source="binance:USDT", price=50000.0, volume=1234.5)
    """

    source: str = Field(..., description="Provenance tag", examples=["binance:USDT", "kraken:USD->EUR"])
    price: float = Field(..., gt=0, allow_inf_nan=False, description="Price of one base unit")
    volume: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False, description="24h volume")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {"source": "binance:USDT", "price": 50000.0, "volume": 1234.5}
        }
    )

    @property
    def provider(self) -> str:
        return provider_of(self.source)

    @property
    def denomination(self) -> str:
        return denomination_of(self.source)


class ConsolidatedQuote(SourceQuote):
    """
    A quote expressed in the requested currency.

    Same shape as SourceQuote; the tag carries a "->VS" suffix when the price
    was multiplied by an FX rate.
    """


class PrecisePriceQuote(SourceQuote):
    """
    SourceQuote with per-source confidence, request latency and fetch time.
    """

    confidence: float = Field(..., ge=0, le=1, description="Confidence score in [0, 1]")
    latency: int = Field(..., ge=0, description="Request latency in milliseconds")
    last_update: str = Field(..., alias="lastUpdate", description="ISO-8601 fetch time")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class HistoryPoint(BaseModel):
    """One point of a price series (timestamp in seconds since epoch)."""

    timestamp: int = Field(..., ge=0)
    price: float = Field(..., gt=0, allow_inf_nan=False)
    volume: Optional[float] = None


# ============================================
# Endpoint Payloads
# ============================================

class PriceRange(BaseModel):
    min: float
    max: float
    median: float


class PricesResponse(BaseModel):
    """Body of GET /prices."""

    base: str
    vs: str
    price: float
    sources: List[SourceQuote]
    updated_at: str = Field(..., alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class PrecisePricesResponse(BaseModel):
    """Body of GET /precise-prices."""

    base: str
    vs: str
    price: float
    confidence: float
    sources: List[PrecisePriceQuote]
    price_range: PriceRange = Field(..., alias="priceRange")
    volatility: float
    updated_at: str = Field(..., alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class HistoryResponse(BaseModel):
    """Body of GET /history."""

    base: str
    vs: str
    interval: str
    data: List[HistoryPoint]
    updated_at: str = Field(..., alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class MultiPriceQuote(BaseModel):
    """One asset row of GET /multi-prices."""

    id: str
    symbol: str
    price: float = Field(..., gt=0)
    change_24h: float = Field(default=0.0, alias="change24h")
    volume_24h: Optional[float] = Field(default=None, alias="volume24h")
    market_cap: Optional[float] = Field(default=None, alias="marketCap")

    model_config = ConfigDict(populate_by_name=True)


class MultiPricesResponse(BaseModel):
    data: List[MultiPriceQuote]
    updated_at: str = Field(..., alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class ErrorResponse(BaseModel):
    """Structured error body shared by every endpoint."""

    error: str
    base: Optional[str] = None
    vs: Optional[str] = None
    sources: Optional[List[str]] = None
    updated_at: str = Field(..., alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)
