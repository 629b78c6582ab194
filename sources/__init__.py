"""
Market Source Connectors Package

One module per market-data provider. Each module defines a MarketSource
subclass that knows the provider's endpoints, symbols and payload shapes;
validation, error containment and confidence scoring live in
core.source_interface.

Adding a provider:
    1. Create sources/<provider>.py with a MarketSource subclass
    2. Add it to SOURCE_CLASSES below
    3. Optionally give it a reliability weight in core.heuristics
"""

from sources.binance import BinanceSource
from sources.bitstamp import BitstampSource
from sources.coinbase import CoinbaseSource
from sources.coindesk import CoinDeskSource
from sources.coingecko import CoinGeckoSource
from sources.kraken import KrakenSource

SOURCE_CLASSES = [
    BinanceSource,
    KrakenSource,
    BitstampSource,
    CoinbaseSource,
    CoinGeckoSource,
    CoinDeskSource,
]

__all__ = [
    "BinanceSource",
    "BitstampSource",
    "CoinbaseSource",
    "CoinDeskSource",
    "CoinGeckoSource",
    "KrakenSource",
    "SOURCE_CLASSES",
]
