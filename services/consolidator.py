"""
Quote Consolidator

Merges quotes from every provider into one list expressed in the target
currency.

Processing order:
    (a) quotes already denominated in the target currency are used as-is
    (b) USD / USDT quotes are multiplied by the FX rate when the target is not
        USD; the tag records the conversion ("kraken:USD->EUR")
    (c) target USD: USD / USDT quotes are used unmodified
    (d) no FX rate: USD / USDT quotes are dropped rather than guessed

Quotes in any other denomination are dropped. Entries sharing a source tag are
deduplicated, keeping the one with the larger volume (missing volume counts as 0).
"""

import math
from typing import Dict, Iterable, List, Optional

from core.logging import get_logger
from core.schemas import USD_DENOMINATIONS, ConsolidatedQuote, SourceQuote


logger = get_logger(__name__)


def _volume(quote: SourceQuote) -> float:
    return quote.volume or 0.0


def _usable(price: float) -> bool:
    return math.isfinite(price) and price > 0


def consolidate(
    quotes: Iterable[Optional[SourceQuote]],
    vs: str,
    fx_rate: Optional[float],
) -> List[ConsolidatedQuote]:
    """
    Normalize quotes into `vs`.

    Args:
        quotes: Adapter results; None entries (absent quotes) are skipped
        vs: Target currency code
        fx_rate: Target units per 1 USD, or None if it could not be resolved

    Returns:
        Deduplicated, target-currency quotes (possibly empty)
    """
    vs = vs.upper()
    present = [q for q in quotes if q is not None]

    direct: List[ConsolidatedQuote] = []
    converted: List[ConsolidatedQuote] = []

    for quote in present:
        denomination = quote.denomination

        if denomination == vs:
            direct.append(ConsolidatedQuote(source=quote.source, price=quote.price, volume=quote.volume))
            continue

        if denomination not in USD_DENOMINATIONS:
            logger.debug(f"Dropping {quote.source}: denomination {denomination} is not {vs} or USD")
            continue

        if vs == "USD":
            direct.append(ConsolidatedQuote(source=quote.source, price=quote.price, volume=quote.volume))
            continue

        if fx_rate is None:
            logger.debug(f"Dropping {quote.source}: no USD->{vs} rate")
            continue

        price = quote.price * fx_rate
        if not _usable(price):
            continue
        converted.append(
            ConsolidatedQuote(source=f"{quote.source}->{vs}", price=price, volume=quote.volume)
        )

    deduped: Dict[str, ConsolidatedQuote] = {}
    for quote in direct + converted:
        current = deduped.get(quote.source)
        if current is None or _volume(quote) > _volume(current):
            deduped[quote.source] = quote

    result = list(deduped.values())
    logger.debug(
        f"Consolidated {len(present)} quote(s) into {len(result)} {vs} quote(s) "
        f"({len(direct)} direct, {len(converted)} converted)"
    )
    return result
