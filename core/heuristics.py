"""
Heuristic Tables

Static tuning data used by the aggregation pipeline:

- reliability_weights: provider name -> weight in [0.5, 1.0]
- price_ceilings_usd: asset id -> sanity ceiling in USD (corrupted-feed guard)
- static_fx_rates: currency -> approximate units per 1 USD (offline fallback)
- asset_symbols: asset id -> ticker symbol (e.g. "bitcoin" -> "BTC")

The tables are plain data on a Pydantic model so they can be overridden from
configuration and injected into the services, independent of the math that
consumes them.

Usage:
    from core.heuristics import HeuristicTables

    tables = HeuristicTables(reliability_weights={"binance": 0.7})
    tables.weight_for("binance")   # 0.7
    tables.weight_for("unknown")   # 0.5
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field


DEFAULT_WEIGHT = 0.5


class HeuristicTables(BaseModel):
    """
    Injectable heuristic configuration for the price engine.

    Attributes:
        reliability_weights: Per-provider reliability (unknown providers get 0.5)
        price_ceilings_usd: Per-asset upper bound expressed in USD
        static_fx_rates: USD-based approximate FX rates used when every FX provider fails
        asset_symbols: Asset id to exchange ticker symbol
        default_assets: Asset ids served by the multi-price endpoint
    """

    reliability_weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "binance": 1.0,
            "coinbase": 0.95,
            "kraken": 0.9,
            "bitstamp": 0.85,
            "coingecko": 0.8,
            "coindesk": 0.7,
        }
    )

    price_ceilings_usd: Dict[str, float] = Field(
        default_factory=lambda: {
            "bitcoin": 1_000_000.0,
            "ethereum": 100_000.0,
            "binancecoin": 20_000.0,
            "solana": 10_000.0,
            "litecoin": 10_000.0,
            "chainlink": 2_000.0,
            "ordinals": 2_000.0,
            "cardano": 100.0,
            "polygon": 100.0,
            "dogecoin": 50.0,
        }
    )

    static_fx_rates: Dict[str, float] = Field(
        default_factory=lambda: {
            "USD": 1.0,
            "EUR": 0.92,
            "GBP": 0.79,
            "JPY": 150.0,
            "CAD": 1.36,
            "AUD": 1.52,
            "CHF": 0.88,
            "CNY": 7.2,
            "SEK": 10.5,
        }
    )

    asset_symbols: Dict[str, str] = Field(
        default_factory=lambda: {
            "bitcoin": "BTC",
            "ethereum": "ETH",
            "ordinals": "ORDI",
            "binancecoin": "BNB",
            "solana": "SOL",
            "cardano": "ADA",
            "dogecoin": "DOGE",
            "polygon": "MATIC",
            "chainlink": "LINK",
            "litecoin": "LTC",
        }
    )

    default_assets: List[str] = Field(
        default_factory=lambda: [
            "bitcoin", "ethereum", "ordinals", "binancecoin", "solana",
            "cardano", "dogecoin", "polygon", "chainlink", "litecoin",
        ]
    )

    def weight_for(self, provider: str) -> float:
        """Reliability weight for a provider name or a full source tag."""
        name = provider.split(":", 1)[0].lower()
        return self.reliability_weights.get(name, DEFAULT_WEIGHT)

    def ceiling_for(self, base_id: str) -> Optional[float]:
        """USD price ceiling for an asset, or None when the asset is not listed."""
        return self.price_ceilings_usd.get(base_id.lower())

    def symbol_for(self, base_id: str) -> str:
        """
        Ticker symbol for an asset id.

        Unknown ids fall back to the upper-cased id, matching how the
        exchanges are queried for assets outside the mapping table.
        """
        return self.asset_symbols.get(base_id.lower(), base_id.upper())

    def static_rate(self, base: str, target: str) -> Optional[float]:
        """Approximate base->target rate from the static table, if both are known."""
        base_rate = self.static_fx_rates.get(base.upper())
        target_rate = self.static_fx_rates.get(target.upper())
        if not base_rate or not target_rate:
            return None
        return target_rate / base_rate
