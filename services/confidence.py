"""
Confidence Scorer

Per-source confidence for precise quotes, and the summary published by
/precise-prices (confidence-weighted price, price range, volatility).

Per-source confidence is the mean of three components, rounded to 2 decimals:
    volume      = min(1, ln(1 + volume) / 20)
    volatility  = max(0, 1 - (high - low) / low)
    latency     = max(0, 1 - latency_ms / timeout_ms)
"""

import math
import statistics
from dataclasses import dataclass
from typing import List, Optional, Sequence

from core.schemas import PrecisePriceQuote, PriceRange
from services.errors import NoPreciseData


VOLUME_SCALE = 20.0
PRICE_DECIMALS = 2
SUB_UNIT_SIGNIFICANT_DIGITS = 6


def volume_confidence(volume: Optional[float]) -> float:
    if volume is None or not math.isfinite(volume) or volume <= 0:
        return 0.0
    return min(1.0, math.log1p(volume) / VOLUME_SCALE)


def volatility_confidence(high: Optional[float], low: Optional[float]) -> float:
    # no 24h band reported: nothing to penalize
    if high is None or low is None or low <= 0:
        return 1.0
    return max(0.0, 1.0 - (high - low) / low)


def latency_confidence(latency_ms: float, timeout_ms: float) -> float:
    if timeout_ms <= 0:
        return 0.0
    return max(0.0, 1.0 - latency_ms / timeout_ms)


def quote_confidence(
    volume: Optional[float],
    high: Optional[float],
    low: Optional[float],
    latency_ms: float,
    timeout_ms: float,
) -> float:
    """
    Confidence of a single precise quote in [0, 1], rounded to 2 decimals.

    Example:
        >>> quote_confidence(volume=1e12, high=100.0, low=100.0, latency_ms=0, timeout_ms=2000)
        1.0
    """
    components = (
        volume_confidence(volume),
        volatility_confidence(high, low),
        latency_confidence(latency_ms, timeout_ms),
    )
    score = sum(components) / len(components)
    return round(min(1.0, max(0.0, score)), 2)


def round_price(value: float) -> float:
    """
    Round a published price without collapsing sub-unit prices to zero.

    Example:
        >>> round_price(50123.456)
        50123.46
        >>> round_price(0.0000123456789)
        1.23457e-05
    """
    if value == 0 or not math.isfinite(value) or abs(value) >= 1:
        return round(value, PRICE_DECIMALS)
    magnitude = math.floor(math.log10(abs(value)))
    return round(value, max(PRICE_DECIMALS, SUB_UNIT_SIGNIFICANT_DIGITS - 1 - magnitude))


@dataclass
class PreciseSummary:
    price: float
    confidence: float
    price_range: PriceRange
    volatility: float


def score_precise(quotes: Sequence[PrecisePriceQuote]) -> PreciseSummary:
    """
    Aggregate precise quotes.

    - price: confidence-weighted mean (plain mean if every confidence is 0)
    - price_range: min / max / median of the included prices
    - volatility: (max - min) / min * 100
    - confidence: mean of the per-source confidences
    Prices are rounded to 2 decimals, or to 6 significant digits below 1
    so sub-cent assets stay positive. Confidence and volatility use 2 decimals.

    Raises:
        NoPreciseData: If there is nothing to score
    """
    if not quotes:
        raise NoPreciseData("No precise price data available")

    total_weight = sum(q.confidence for q in quotes)
    if total_weight > 0:
        price = sum(q.price * q.confidence for q in quotes) / total_weight
    else:
        price = statistics.fmean(q.price for q in quotes)

    prices: List[float] = sorted(q.price for q in quotes)
    low, high = prices[0], prices[-1]
    median = statistics.median(prices)
    volatility = (high - low) / low * 100 if low > 0 else 0.0

    return PreciseSummary(
        price=round_price(price),
        confidence=round(statistics.fmean(q.confidence for q in quotes), 2),
        price_range=PriceRange(min=round_price(low), max=round_price(high), median=round_price(median)),
        volatility=round(volatility, 2),
    )
