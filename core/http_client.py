"""
Shared Async HTTP Client

This module provides the single outbound HTTP path used by every source adapter
and FX provider. It handles:
- One aiohttp ClientSession (connection pool) for the whole application
- A per-attempt deadline scoped to that one request
- Retry with backoff
- Latency measurement (used by the precise-quote confidence score)

Retry/backoff per call:
    ATTEMPT -> 2xx            -> return result
    ATTEMPT -> transport error -> last attempt? raise SourceUnavailable
                                  : sleep 2**attempt seconds, retry
    ATTEMPT -> non-2xx status  -> last attempt? return result with that status
                                  : sleep 1s * (attempt + 1), retry

Usage:
    async with HttpClient(retries=2) as http:
        result = await http.get_json("https://api.kraken.com/0/public/Ticker",
                                     params={"pair": "XBTUSD"}, timeout=4.0,
                                     provider="kraken")
        if result.ok:
            print(result.data)
"""

import aiohttp
import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from core.logging import get_logger, log_api_request, log_api_response


DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; PriceFuse/1.0)",
    "Accept": "application/json",
}


class SourceUnavailable(RuntimeError):
    """Raised when every attempt of a call failed at the transport level."""


@dataclass
class FetchResult:
    """
    Outcome of one logical GET (after retries).

    Attributes:
        status: HTTP status of the final attempt
        data: Decoded JSON body (None unless status is 2xx)
        latency_ms: Time until the final response headers arrived
    """

    status: int
    data: Any = None
    latency_ms: int = 0

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class HttpClient:
    """
    Async JSON GET client with deadline, retry and backoff.

    Attributes:
        retries: Retries after the first attempt (2 -> 3 attempts total)
        session: aiohttp ClientSession, created in __aenter__ / open()
    """

    def __init__(self, retries: int = 2, session: Optional[aiohttp.ClientSession] = None):
        self.retries = retries
        self.session = session
        self.logger = get_logger(__name__)

    # ============================================
    # Session Management
    # ============================================

    async def open(self) -> None:
        if self.session is None:
            self.session = aiohttp.ClientSession(headers=DEFAULT_HEADERS)
            self.logger.debug("HttpClient session created")

    async def close(self) -> None:
        if self.session is not None:
            await self.session.close()
            self.session = None
            self.logger.debug("HttpClient session closed")

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ============================================
    # Request Handler with Retry Logic
    # ============================================

    async def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: float = 4.0,
        provider: str = "http",
        retries: Optional[int] = None,
    ) -> FetchResult:
        """
        GET a JSON document.

        Args:
            url: Absolute URL
            params: Optional query parameters
            timeout: Deadline for each attempt in seconds; expiry cancels only that attempt
            provider: Name used in log lines
            retries: Override the client-wide retry count

        Returns:
            FetchResult; non-2xx statuses of the last attempt are passed through

        Raises:
            SourceUnavailable: If the last attempt failed at the transport level
            ValueError: If a 2xx body is not valid JSON
        """
        if self.session is None:
            raise RuntimeError("HttpClient session not initialized. Use 'async with' or open().")

        max_retries = self.retries if retries is None else retries
        attempts = max_retries + 1

        for attempt in range(attempts):
            last_attempt = attempt == max_retries
            log_api_request(provider, url, params)
            started = time.perf_counter()

            try:
                async with self.session.get(
                    url,
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=timeout)
                ) as resp:
                    latency_ms = int((time.perf_counter() - started) * 1000)
                    log_api_response(provider, url, resp.status, latency_ms)

                    if 200 <= resp.status < 300:
                        data = await resp.json(content_type=None)
                        return FetchResult(status=resp.status, data=data, latency_ms=latency_ms)

                    if last_attempt:
                        self.logger.warning(
                            f"HTTP {resp.status} from {provider} on final attempt ({attempts}/{attempts})"
                        )
                        return FetchResult(status=resp.status, latency_ms=latency_ms)

                    delay = 1.0 * (attempt + 1)
                    self.logger.warning(
                        f"HTTP {resp.status} from {provider}. "
                        f"Retrying in {delay:.1f}s... (attempt {attempt + 1}/{attempts})"
                    )

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                reason = "timeout" if isinstance(e, asyncio.TimeoutError) else str(e) or type(e).__name__
                if last_attempt:
                    raise SourceUnavailable(
                        f"{provider}: {url} failed after {attempts} attempts ({reason})"
                    ) from e

                delay = float(2 ** attempt)
                self.logger.warning(
                    f"Request to {provider} failed: {reason}. "
                    f"Retrying in {delay:.1f}s... (attempt {attempt + 1}/{attempts})"
                )

            await asyncio.sleep(delay)

        # Unreachable: the last attempt always returns or raises
        raise SourceUnavailable(f"{provider}: {url} exhausted retries")
