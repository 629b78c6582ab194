"""
Outlier Filter

Removes quotes unlikely to reflect the genuine market price.

A quote is kept when:
    0.5 * median <= price <= 2 * median
    and price <= ceiling(asset) * fx_rate   (when the asset has a ceiling)

The band is applied repeatedly until nothing more is removed, so running the
filter on its own output changes nothing. If a pass would remove every quote
the filter fails open and returns the set it was given for that pass.
"""

import statistics
from typing import List, Optional, Sequence, TypeVar

from core.heuristics import HeuristicTables
from core.logging import get_logger
from core.schemas import SourceQuote


logger = get_logger(__name__)

LOWER_BAND = 0.5
UPPER_BAND = 2.0

Q = TypeVar("Q", bound=SourceQuote)


def _single_pass(quotes: List[Q], ceiling: Optional[float]) -> List[Q]:
    median = statistics.median(q.price for q in quotes)
    low, high = LOWER_BAND * median, UPPER_BAND * median

    kept = []
    for quote in quotes:
        if not (low <= quote.price <= high):
            logger.info(
                f"Outlier rejected: {quote.source} {quote.price} outside [{low:.2f}, {high:.2f}]"
            )
            continue
        if ceiling is not None and quote.price > ceiling:
            logger.info(f"Outlier rejected: {quote.source} {quote.price} above ceiling {ceiling:.2f}")
            continue
        kept.append(quote)
    return kept


def filter_outliers(
    quotes: Sequence[Q],
    base_id: str,
    tables: HeuristicTables,
    fx_rate: Optional[float] = 1.0,
) -> List[Q]:
    """
    Drop implausible quotes.

    Args:
        quotes: Consolidated, same-currency quotes
        base_id: Asset id, used to look up the sanity ceiling
        tables: Heuristic tables holding the USD ceilings
        fx_rate: Target units per USD used to scale the ceiling; None skips the ceiling

    Returns:
        The surviving quotes, or the input unchanged if nothing would survive
    """
    current = list(quotes)
    if not current:
        return current

    ceiling_usd = tables.ceiling_for(base_id)
    ceiling = ceiling_usd * fx_rate if ceiling_usd is not None and fx_rate is not None else None

    while True:
        kept = _single_pass(current, ceiling)
        if not kept:
            logger.warning(
                f"Outlier filter would drop all {len(current)} quote(s) for {base_id}; keeping them"
            )
            return current
        if len(kept) == len(current):
            return kept
        current = kept
