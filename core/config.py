"""
Settings for the price engine, read from the environment or a .env file.

Pydantic Settings validates and converts every value on load.

What lives here:
- Server options (host, port, CORS origins, log level)
- Request defaults (?vs=, ?base=, history point cap)
- Per-variant request deadlines (plain quote, precise quote, history, FX) and retries
- Provider base URLs (overridable for staging mirrors)
- Heuristic tables (weights, ceilings, static FX), overridable as JSON in HEURISTICS

Usage:
    from core.config import settings

    print(settings.quote_timeout)
    print(settings.heuristics.weight_for("kraken"))
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

from core.heuristics import HeuristicTables


class Settings(BaseSettings):
    """
    Application Settings

    Values are automatically loaded from environment variables or .env file.

    Attributes:
        app_host: Host address for FastAPI server
        app_port: Port number for FastAPI server
        environment: Current environment (development, production)
        debug: Enable debug mode with verbose logging
        log_level: Root log level
        cors_origins: Comma-separated allowed CORS origins
        default_vs: Currency used when the request omits ?vs=
        default_base: Asset id used when the request omits ?base=
        request_retries: Retries after the first attempt for every outbound call
        quote_timeout: Per-attempt deadline for plain quotes (seconds)
        precise_timeout: Per-attempt deadline for precise quotes (seconds)
        history_timeout: Per-attempt deadline for history requests (seconds)
        coingecko_history_timeout: Deadline for the slower CoinGecko chart endpoint
        fx_timeout: Per-attempt deadline for FX providers (seconds)
        history_max_limit: Upper bound on points returned by /history
        heuristics: Reliability weights, price ceilings, static FX rates, asset symbols
    """

    # ============================================
    # Application Configuration
    # ============================================

    app_host: str = Field(
        default="0.0.0.0",
        description="FastAPI server host address"
    )

    app_port: int = Field(
        default=8000,
        description="FastAPI server port"
    )

    environment: str = Field(
        default="development",
        description="Application environment (development, production)"
    )

    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins"
    )

    # ============================================
    # Request Defaults
    # ============================================

    default_vs: str = Field(
        default="USD",
        description="Target currency when ?vs= is not given"
    )

    default_base: str = Field(
        default="bitcoin",
        description="Base asset id when ?base= is not given"
    )

    history_max_limit: int = Field(
        default=1000,
        description="Maximum number of history points returned"
    )

    # ============================================
    # Outbound Requests
    # ============================================

    request_retries: int = Field(
        default=2,
        description="Retries after the first attempt (2 retries = 3 attempts)"
    )

    quote_timeout: float = Field(
        default=4.0,
        description="Per-attempt deadline for plain quotes (seconds)"
    )

    precise_timeout: float = Field(
        default=2.0,
        description="Per-attempt deadline for low-latency precise quotes (seconds)"
    )

    history_timeout: float = Field(
        default=6.0,
        description="Per-attempt deadline for kline/close history (seconds)"
    )

    coingecko_history_timeout: float = Field(
        default=8.0,
        description="Per-attempt deadline for CoinGecko market_chart (seconds)"
    )

    fx_timeout: float = Field(
        default=5.0,
        description="Per-attempt deadline for FX providers (seconds)"
    )

    # ============================================
    # Provider Base URLs
    # ============================================

    binance_base_url: str = Field(default="https://api.binance.com")
    kraken_base_url: str = Field(default="https://api.kraken.com")
    bitstamp_base_url: str = Field(default="https://www.bitstamp.net")
    coinbase_base_url: str = Field(default="https://api.exchange.coinbase.com")
    coingecko_base_url: str = Field(default="https://api.coingecko.com/api/v3")
    coindesk_base_url: str = Field(default="https://api.coindesk.com")

    exchangerate_host_url: str = Field(default="https://api.exchangerate.host")
    frankfurter_url: str = Field(default="https://api.frankfurter.app")
    open_er_api_url: str = Field(default="https://open.er-api.com")

    # ============================================
    # Heuristic Tables
    # ============================================

    heuristics: HeuristicTables = Field(
        default_factory=HeuristicTables,
        description="Reliability weights, price ceilings, static FX rates (JSON in env)"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Convert comma-separated CORS origins string to a list.

        Example:
            >>> settings.cors_origins_list
            ['http://localhost:3000', 'http://localhost:5173']
        """
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


# ============================================
# Global Settings Instance
# ============================================

settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration() -> None:
    """
    Validate critical configuration settings on application startup.

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    # logging.py imports config.py, so import lazily
    from core.logging import logger

    if not (1 <= settings.app_port <= 65535):
        raise ValueError(f"Invalid port number: {settings.app_port}. Must be between 1 and 65535")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if settings.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{settings.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    if settings.request_retries < 0:
        raise ValueError(f"REQUEST_RETRIES cannot be negative: {settings.request_retries}")

    timeouts = {
        "QUOTE_TIMEOUT": settings.quote_timeout,
        "PRECISE_TIMEOUT": settings.precise_timeout,
        "HISTORY_TIMEOUT": settings.history_timeout,
        "COINGECKO_HISTORY_TIMEOUT": settings.coingecko_history_timeout,
        "FX_TIMEOUT": settings.fx_timeout,
    }
    for name, value in timeouts.items():
        if value <= 0:
            raise ValueError(f"{name} must be positive, got {value}")

    for provider, weight in settings.heuristics.reliability_weights.items():
        if not (0.5 <= weight <= 1.0):
            raise ValueError(
                f"Reliability weight for '{provider}' must be within [0.5, 1.0], got {weight}"
            )

    logger.info("Configuration validated successfully")
    logger.info(f"Server: {settings.app_host}:{settings.app_port}")
    logger.info(f"Log level: {settings.log_level.upper()}")
    logger.info(f"Retries per call: {settings.request_retries}")
    logger.info(f"Weighted providers: {', '.join(settings.heuristics.reliability_weights)}")
