"""
Logging Setup

Every module logs through the "pricefuse" logger hierarchy:

    from core.logging import logger, get_logger

    logger.info("Application started")            # pricefuse
    log = get_logger(__name__)                     # pricefuse.services.price_service
    log.warning("kraken quote rejected")

Levels used by the price engine:
    DEBUG    - outbound requests/responses, per-source prices, FX details
    INFO     - one summary line per request (sources used, final price)
    WARNING  - a provider failed, a quote was rejected, a fallback kicked in
    ERROR    - an endpoint could not produce a normal response

The level comes from the LOG_LEVEL setting.
"""

import logging
import sys
from typing import Any, Dict, Optional

from core.config import settings


APP_LOGGER_NAME = "pricefuse"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def setup_logging(log_level: str = "INFO", log_format: str = LOG_FORMAT) -> logging.Logger:
    """
    Configure the root handler (stdout) and return the application logger.

    Example:
        >>> logger = setup_logging("DEBUG")
        >>> logger.info("ready")
        2024-01-01 12:00:00 [INFO] pricefuse ready
    """
    logging.basicConfig(
        level=_level(log_level),
        format=log_format,
        datefmt=DATE_FORMAT,
        stream=sys.stdout,
        force=True
    )

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.setLevel(_level(log_level))
    return app_logger


logger = setup_logging(settings.log_level)


def get_logger(name: str) -> logging.Logger:
    """Child logger "pricefuse.<name>" for a module (pass __name__)."""
    return logging.getLogger(f"{APP_LOGGER_NAME}.{name}")


def set_log_level(level: str) -> None:
    """Change the application and root log level at runtime."""
    logger.setLevel(_level(level))
    logging.getLogger().setLevel(_level(level))


# ============================================
# Outbound Call Logging
# ============================================

def log_api_request(provider: str, url: str, params: Optional[Dict[str, Any]] = None) -> None:
    """
    Example:
        >>> log_api_request("kraken", "https://api.kraken.com/0/public/Ticker", {"pair": "XBTUSD"})
        [DEBUG] pricefuse -> kraken https://api.kraken.com/0/public/Ticker {'pair': 'XBTUSD'}
    """
    if params:
        logger.debug(f"-> {provider} {url} {params}")
    else:
        logger.debug(f"-> {provider} {url}")


def log_api_response(provider: str, url: str, status: int, latency_ms: Optional[float] = None) -> None:
    """
    Example:
        >>> log_api_response("kraken", "https://api.kraken.com/0/public/Ticker", 200, 142)
        [DEBUG] pricefuse <- kraken https://api.kraken.com/0/public/Ticker 200 (142ms)
    """
    latency = f" ({latency_ms:.0f}ms)" if latency_ms is not None else ""
    logger.debug(f"<- {provider} {url} {status}{latency}")
