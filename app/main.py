"""
FastAPI Application - Multi-Provider Crypto Price API

Serves one consolidated price per asset built from several market-data
providers, plus a confidence-scored low-latency variant and merged history.

Providers:
    - Binance, Kraken, Bitstamp, Coinbase (exchanges)
    - CoinGecko, CoinDesk (aggregators)

Usage:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 8000

Docs:
    - Swagger: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
"""

from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import settings, validate_configuration
from core.logging import logger
from core.schemas import (
    ErrorResponse,
    HistoryResponse,
    MultiPricesResponse,
    PrecisePricesResponse,
    PricesResponse,
)
from core.source_manager import SourceManager
from core.utils.time import utc_now_iso
from services.errors import InvalidInterval, NoHistoryData, NoPreciseData, NoUsableQuotes, PriceEngineError
from services.fx_resolver import FxRateResolver
from services.history_service import HistoryService
from services.price_service import PriceService


# ============================================
# Lifespan Management
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    logger.info("=== Application Starting ===")
    try:
        validate_configuration()
        await manager.initialize()
        logger.info("=== Started Successfully ===")
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise

    yield

    logger.info("=== Shutting Down ===")
    await manager.shutdown()
    logger.info("=== Shutdown Complete ===")


# ============================================
# FastAPI Application
# ============================================

app = FastAPI(
    title="PriceFuse Crypto Price API",
    description=(
        "Consolidated cryptocurrency prices from several providers.\n\n"
        "## REST Endpoints\n"
        "- `GET /prices?vs=USD&base=bitcoin` - Reliability-weighted consolidated price\n"
        "- `GET /precise-prices?vs=USD&base=bitcoin` - Low-latency price with confidence score\n"
        "- `GET /history?vs=USD&base=bitcoin&interval=1h&limit=24` - Merged price history\n"
        "- `GET /multi-prices?vs=USD` - Prices, 24h change and market cap for the tracked assets\n"
        "- `GET /sources` - Registered providers and their capabilities\n\n"
        "Quotes not listed in the requested currency are converted from USD "
        "with a live FX rate; every source in a response carries a provenance "
        "tag such as `binance:USDT` or `kraken:USD->EUR`."
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

manager = SourceManager()
fx_resolver = FxRateResolver(manager.http, manager.tables)
price_service = PriceService(manager, fx_resolver)
history_service = HistoryService(manager, fx_resolver)


def error_response(
    status_code: int,
    message: str,
    base: Optional[str] = None,
    vs: Optional[str] = None,
    sources: Optional[List[str]] = None,
) -> JSONResponse:
    """Structured error body: {error, base, vs, sources?, updatedAt}."""
    body = ErrorResponse(error=message, base=base, vs=vs, sources=sources, updated_at=utc_now_iso())
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, exclude_none=True))


# ============================================
# System Endpoints
# ============================================

@app.get("/", tags=["System"])
async def root():
    """API information and registered sources."""
    return {
        "name": "PriceFuse Crypto Price API",
        "version": "1.0.0",
        "status": "operational",
        "docs": "/docs",
        "sources": manager.list_sources()
    }


@app.get("/sources", tags=["System"])
async def list_sources():
    """List all registered sources with capabilities and reliability weight."""
    return {"sources": manager.describe()}


# ============================================
# Price Endpoints
# ============================================

@app.get(
    "/prices",
    response_model=PricesResponse,
    response_model_exclude_none=True,
    tags=["Prices"]
)
async def get_prices(
    vs: str = Query(default=settings.default_vs, description="Target currency (e.g. USD, EUR, XAU)"),
    base: str = Query(default=settings.default_base, description="Asset id (e.g. bitcoin, ethereum)")
):
    """
    Consolidated price of one asset in the requested currency.

    When every provider fails the response is still 200, with price 0 and no sources.

    Examples:
        GET /prices?vs=USD&base=bitcoin
        GET /prices?vs=EUR&base=ethereum
    """
    symbol = manager.tables.symbol_for(base)
    try:
        return await price_service.get_prices(base, vs)
    except NoUsableQuotes as e:
        logger.error(f"Prices {base}/{vs}: {e}")
        return error_response(e.status_code, str(e), symbol, vs.upper(), e.sources)
    except Exception as e:
        logger.error(f"Prices error {base}/{vs}: {e}")
        return error_response(500, "Failed to fetch prices", symbol, vs.upper())


@app.get(
    "/precise-prices",
    response_model=PrecisePricesResponse,
    response_model_exclude_none=True,
    tags=["Prices"]
)
async def get_precise_prices(
    vs: str = Query(default=settings.default_vs, description="Target currency"),
    base: str = Query(default=settings.default_base, description="Asset id")
):
    """
    Low-latency price with per-source and overall confidence scores.

    Example:
        GET /precise-prices?vs=USD&base=bitcoin
    """
    symbol = manager.tables.symbol_for(base)
    try:
        return await price_service.get_precise_prices(base, vs)
    except NoPreciseData as e:
        logger.error(f"Precise prices {base}/{vs}: {e}")
        return error_response(e.status_code, str(e), symbol, vs.upper())
    except Exception as e:
        logger.error(f"Precise prices error {base}/{vs}: {e}")
        return error_response(500, "Failed to fetch precise prices", symbol, vs.upper())


@app.get(
    "/history",
    response_model=HistoryResponse,
    response_model_exclude_none=True,
    tags=["Prices"]
)
async def get_history(
    vs: str = Query(default=settings.default_vs, description="Target currency"),
    base: str = Query(default=settings.default_base, description="Asset id"),
    interval: str = Query(default="1h", description="1m, 5m, 1h, 1d"),
    limit: int = Query(default=24, description="Number of points (0 means 24, capped at 1000)")
):
    """
    Merged price history from CoinGecko and Binance.

    Example:
        GET /history?vs=USD&base=bitcoin&interval=1h&limit=24
    """
    symbol = manager.tables.symbol_for(base)
    try:
        return await history_service.get_history(base, vs, interval, limit)
    except (InvalidInterval, NoHistoryData) as e:
        logger.error(f"History {base}/{vs}/{interval}: {e}")
        return error_response(e.status_code, str(e), symbol, vs.upper())
    except Exception as e:
        logger.error(f"History error {base}/{vs}/{interval}: {e}")
        return error_response(500, "Failed to fetch history", symbol, vs.upper())


@app.get(
    "/multi-prices",
    response_model=MultiPricesResponse,
    response_model_exclude_none=True,
    tags=["Prices"]
)
async def get_multi_prices(
    vs: str = Query(default=settings.default_vs, description="Target currency")
):
    """
    Price, 24h change, 24h volume and market cap for every tracked asset.

    Example:
        GET /multi-prices?vs=USD
    """
    try:
        return await price_service.get_multi_prices(vs)
    except PriceEngineError as e:
        logger.error(f"Multi prices {vs}: {e}")
        return error_response(e.status_code, str(e), vs=vs.upper())
    except Exception as e:
        logger.error(f"Multi prices error {vs}: {e}")
        return error_response(500, "Failed to fetch multi prices", vs=vs.upper())


# ============================================
# Error Handlers
# ============================================

@app.exception_handler(404)
async def not_found_handler(request, exc):
    """Handle 404 errors."""
    return JSONResponse(status_code=404, content={"error": "Not found", "path": str(request.url)})


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    """Handle 500 errors."""
    logger.error(f"Internal error: {exc}")
    return error_response(500, "Internal server error")
