"""
FX Rate Resolver

Resolves a base->target currency multiplier (target units per 1 base unit).

Algorithm:
    1. base == target -> 1.0, no network call
    2. query every FX provider concurrently; a failing provider never cancels
       the others (settle-all)
    3. median of the finite, positive rates that came back
    4. none came back -> static approximate table (HeuristicTables.static_fx_rates)
    5. still nothing -> None ("unavailable")

Providers:
    - exchangerate.host  GET /latest?base=USD          -> {"rates": {...}}
    - frankfurter.app    GET /latest?from=USD          -> {"rates": {...}}
    - open.er-api.com    GET /v6/latest/USD            -> {"rates": {...}}

Usage:
    resolver = FxRateResolver(http)
    rate = await resolver.resolve("USD", "EUR")   # e.g. 0.92
"""

import asyncio
import math
import statistics
from typing import Any, Dict, List, Optional

from core.config import settings
from core.heuristics import HeuristicTables
from core.http_client import HttpClient
from core.logging import get_logger


class FxProvider:
    """
    One FX rates endpoint.

    Attributes:
        name: Provider name used in logs
        url_template: URL with a {base} placeholder
        base_param: Query parameter carrying the base currency, or None when it is in the path
    """

    def __init__(self, name: str, url_template: str, base_param: Optional[str] = None):
        self.name = name
        self.url_template = url_template
        self.base_param = base_param

    def request(self, base: str):
        url = self.url_template.format(base=base)
        params = {self.base_param: base} if self.base_param else None
        return url, params

    @staticmethod
    def parse_rate(payload: Any, target: str) -> Optional[float]:
        rates = payload.get("rates") if isinstance(payload, dict) else None
        if not isinstance(rates, dict):
            return None
        value = rates.get(target)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)


def default_fx_providers() -> List[FxProvider]:
    return [
        FxProvider("exchangerate.host", f"{settings.exchangerate_host_url}/latest", base_param="base"),
        FxProvider("frankfurter", f"{settings.frankfurter_url}/latest", base_param="from"),
        FxProvider("open.er-api", f"{settings.open_er_api_url}/v6/latest/{{base}}"),
    ]


def derive_cross_rate(direct_in_target: Optional[float], direct_in_usd: Optional[float]) -> Optional[float]:
    """
    Rate implied by two quotes of the same asset from the same provider.

    Used when no FX provider covers the target (e.g. XAU): the asset's price in
    the target divided by its price in USD.

    Example:
        >>> derive_cross_rate(46000.0, 50000.0)
        0.92
    """
    if direct_in_target is None or direct_in_usd is None:
        return None
    if direct_in_usd <= 0 or direct_in_target <= 0:
        return None
    rate = direct_in_target / direct_in_usd
    return rate if math.isfinite(rate) else None


class FxRateResolver:
    """
    Resolve FX rates from several independent providers with a static fallback.

    Attributes:
        http: Shared HttpClient
        tables: Heuristic tables holding the static fallback rates
        providers: FX endpoints queried on every resolve
        timeout: Per-attempt deadline in seconds
    """

    def __init__(
        self,
        http: HttpClient,
        tables: Optional[HeuristicTables] = None,
        providers: Optional[List[FxProvider]] = None,
        timeout: Optional[float] = None,
    ):
        self.http = http
        self.tables = tables or settings.heuristics
        self.providers = providers if providers is not None else default_fx_providers()
        self.timeout = timeout or settings.fx_timeout
        self.logger = get_logger(__name__)

    async def _query(self, provider: FxProvider, base: str, target: str) -> Optional[float]:
        url, params = provider.request(base)
        result = await self.http.get_json(url, params=params, timeout=self.timeout, provider=provider.name)
        if not result.ok:
            return None
        return FxProvider.parse_rate(result.data, target)

    async def resolve(self, base: str, target: str) -> Optional[float]:
        """
        Resolve target units per 1 base unit.

        Returns:
            The rate, or None if neither a provider nor the static table knows it
        """
        base, target = base.upper(), target.upper()
        if base == target:
            return 1.0

        results = await asyncio.gather(
            *(self._query(p, base, target) for p in self.providers),
            return_exceptions=True,
        )

        rates: Dict[str, float] = {}
        for provider, outcome in zip(self.providers, results):
            if isinstance(outcome, BaseException):
                self.logger.warning(f"FX provider {provider.name} failed for {base}->{target}: {outcome}")
                continue
            if outcome is not None and math.isfinite(outcome) and outcome > 0:
                rates[provider.name] = outcome

        if rates:
            rate = statistics.median(rates.values())
            self.logger.debug(f"FX {base}->{target} = {rate} from {', '.join(rates)}")
            return rate

        static = self.tables.static_rate(base, target)
        if static is not None:
            self.logger.warning(f"All FX providers failed for {base}->{target}; using static rate {static}")
            return static

        self.logger.warning(f"FX rate {base}->{target} unavailable")
        return None
