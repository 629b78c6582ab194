"""
Weighted Aggregator

Produces the single published /prices value from the filtered quotes.

Two modes, chosen by whether any quote carries a positive volume:

- No volume anywhere: approximate a weighted median by repeating each price
  max(1, floor(reliability * 10 + 0.5)) times and taking the median of the multiset.
- Volume present: weighted mean with weight = reliability * ln(1 + volume).
  Zero-weight terms (no volume) are skipped; a zero total yields None.

Reliability weights come from HeuristicTables (unknown providers: 0.5).
"""

import math
import statistics
from typing import List, Optional, Sequence

from core.heuristics import HeuristicTables
from core.schemas import SourceQuote


def sample_count(weight: float) -> int:
    """How many times a price enters the weighted-median multiset."""
    return max(1, math.floor(weight * 10 + 0.5))


def weighted_median(quotes: Sequence[SourceQuote], tables: HeuristicTables) -> float:
    samples: List[float] = []
    for quote in quotes:
        samples.extend([quote.price] * sample_count(tables.weight_for(quote.source)))
    return statistics.median(samples)


def volume_weighted_mean(quotes: Sequence[SourceQuote], tables: HeuristicTables) -> Optional[float]:
    total_weight = 0.0
    weighted_sum = 0.0

    for quote in quotes:
        volume = quote.volume or 0.0
        weight = tables.weight_for(quote.source) * math.log1p(volume)
        if weight <= 0:
            continue
        total_weight += weight
        weighted_sum += quote.price * weight

    if total_weight <= 0:
        return None
    return weighted_sum / total_weight


def aggregate(quotes: Sequence[SourceQuote], tables: HeuristicTables) -> Optional[float]:
    """
    Aggregate same-currency quotes into one price.

    Returns:
        The aggregate price, or None if nothing could be computed

    Example:
        >>> aggregate([SourceQuote(source="kraken:USD", price=50000.0)], HeuristicTables())
        50000.0
    """
    if not quotes:
        return None
    if len(quotes) == 1:
        return quotes[0].price

    has_volume = any(q.volume is not None and q.volume > 0 for q in quotes)
    if not has_volume:
        return weighted_median(quotes, tables)

    return volume_weighted_mean(quotes, tables)


def fallback_price(
    direct_quote: Optional[SourceQuote],
    usd_quote: Optional[SourceQuote],
    fx_rate: Optional[float],
) -> Optional[float]:
    """
    Last-resort price when aggregation produced nothing.

    Order: the first direct target-currency quote, then the first USD quote
    converted with the FX rate, else None.
    """
    if direct_quote is not None:
        return direct_quote.price
    if usd_quote is not None and fx_rate is not None:
        price = usd_quote.price * fx_rate
        if math.isfinite(price) and price > 0:
            return price
    return None
