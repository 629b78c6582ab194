"""
Price engine errors.

Adapters never raise (failures become "absent"); these are raised by the
request-level services and mapped to HTTP statuses in app/main.py.
"""

from typing import List, Optional


class PriceEngineError(Exception):
    """Base class for errors surfaced to API consumers."""

    status_code = 502


class NoUsableQuotes(PriceEngineError):
    """Providers answered, but no quote could be expressed in the target currency."""

    def __init__(self, message: str, sources: Optional[List[str]] = None):
        super().__init__(message)
        self.sources = sources or []


class NoPreciseData(PriceEngineError):
    """No precise source produced a usable quote."""


class NoHistoryData(PriceEngineError):
    """No historical data could be obtained from any source."""


class InvalidInterval(PriceEngineError):
    status_code = 400
