"""
Source Manager - Central Registry for Market Sources

The SourceManager owns the shared HttpClient and one instance of every
registered MarketSource. Request handlers ask it for "every source that can
serve X" instead of naming providers.

Example Usage:
    manager = SourceManager()
    await manager.initialize()

    for source in manager.sources_with_feature("precise"):
        quote = await source.get_precise_quote("bitcoin", "USD")

    await manager.shutdown()
"""

from typing import Dict, List, Optional

from core.config import settings
from core.heuristics import HeuristicTables
from core.http_client import HttpClient
from core.logging import logger
from core.source_interface import MarketSource


class SourceManager:
    """
    Registry of market sources sharing one HTTP client.

    Attributes:
        http: Shared HttpClient (session opened in initialize())
        tables: Heuristic tables handed to every source
        sources: Mapping of provider name to MarketSource
    """

    def __init__(
        self,
        http: Optional[HttpClient] = None,
        tables: Optional[HeuristicTables] = None,
        sources: Optional[List[MarketSource]] = None,
    ):
        self.http = http or HttpClient(retries=settings.request_retries)
        self.tables = tables or settings.heuristics

        if sources is None:
            # sources import core, so import the registry lazily
            from sources import SOURCE_CLASSES
            sources = [cls(self.http, self.tables) for cls in SOURCE_CLASSES]

        self.sources: Dict[str, MarketSource] = {source.name: source for source in sources}

        logger.info(
            f"SourceManager initialized with {len(self.sources)} source(s): {', '.join(self.sources)}"
        )

    # ============================================
    # Source Retrieval Methods
    # ============================================

    def get_source(self, name: str) -> MarketSource:
        """
        Get a source by name.

        Raises:
            ValueError: If the source is not registered
        """
        name = name.lower()

        if name not in self.sources:
            available = ", ".join(self.sources.keys())
            raise ValueError(f"Source '{name}' is not registered. Available sources: {available}")

        return self.sources[name]

    def has_source(self, name: str) -> bool:
        return name.lower() in self.sources

    def list_sources(self) -> List[str]:
        return list(self.sources.keys())

    def sources_with_feature(self, feature: str) -> List[MarketSource]:
        """
        Sources that support a request variant ("quote", "precise", "history").

        Example:
            >>> [s.name for s in manager.sources_with_feature("precise")]
            ['binance', 'kraken', 'coinbase']
        """
        return [source for source in self.sources.values() if source.supports(feature)]

    def describe(self) -> List[Dict[str, object]]:
        """Name, capabilities and reliability weight of every registered source."""
        return [
            {
                "name": source.name,
                "capabilities": dict(source.capabilities),
                "reliability": source.reliability,
                "homeCurrency": source.home_currency,
            }
            for source in self.sources.values()
        ]

    # ============================================
    # Lifecycle Management
    # ============================================

    async def initialize(self) -> None:
        """Open the shared HTTP session."""
        await self.http.open()
        logger.info("SourceManager HTTP session ready")

    async def shutdown(self) -> None:
        """Close the shared HTTP session."""
        try:
            await self.http.close()
            logger.info("SourceManager HTTP session closed")
        except Exception as e:
            logger.error(f"Error closing HTTP session: {e}")

    def __repr__(self) -> str:
        return f"<SourceManager(sources={list(self.sources.keys())})>"

    def __len__(self) -> int:
        return len(self.sources)
