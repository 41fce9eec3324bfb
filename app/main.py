"""
FastAPI Application - bitbank Market Data Tools over HTTP

Exposes the same tools as the MCP server as plain GET endpoints, for agents
and clients that speak HTTP instead of MCP.

Usage:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 8000

Docs:
    - Swagger: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
"""

from contextlib import asynccontextmanager
from typing import Literal, Optional

from fastapi import Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import settings, validate_configuration
from core.logging import logger
from core.schemas import CandleType, ToolResult
from services.market_tools import MarketTools, get_market_tools, tool_catalog


ERROR_STATUS = {
    "user": 400,
    "upstream": 404,
    "transport": 502,
    "internal": 500,
}


# ============================================
# Lifespan Management
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate configuration on startup."""
    logger.info("=== Application Starting ===")
    try:
        validate_configuration()
        logger.info("=== Started Successfully ===")
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise

    yield

    logger.info("=== Shutdown Complete ===")


# ============================================
# FastAPI Application
# ============================================

app = FastAPI(
    title="bitbank Market Data Tools",
    description=(
        "Public market data from bitbank exposed as agent tools.\n\n"
        "## Tool Endpoints\n"
        "- `GET /tools/get_ticker?pair=btc_jpy` - Ticker for one pair\n"
        "- `GET /tools/get_tickers?market=all|jpy` - Tickers for all pairs\n"
        "- `GET /tools/get_tickers_jpy` - Supported JPY pairs (cached 10s)\n"
        "- `GET /tools/get_candles?pair=btc_jpy&type=1hour&date=20240101&limit=200` - OHLCV\n"
        "- `GET /tools/get_orderbook?pair=btc_jpy&topN=20` - Order book, top N levels\n"
        "- `GET /tools/get_depth?pair=btc_jpy&maxLevels=200` - Order book depth\n"
        "- `GET /tools/get_transactions?pair=btc_jpy&limit=100&date=20240101` - Trades\n\n"
        "Every response carries `content` (text summary), `structuredContent` "
        "(normalized records + meta) and `isError`."
    ),
    version="0.2.0",
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


def _respond(result: ToolResult) -> JSONResponse:
    status = 200
    if result.is_error:
        kind = (result.structured or {}).get("error", {}).get("kind", "internal")
        status = ERROR_STATUS.get(kind, 500)
    return JSONResponse(status_code=status, content=result.to_dict())


# ============================================
# System Endpoints
# ============================================

@app.get("/", tags=["System"])
async def root():
    """API information."""
    return {
        "name": "bitbank Market Data Tools",
        "version": "0.2.0",
        "status": "operational",
        "docs": "/docs",
        "upstream": settings.bitbank_base_url,
    }


@app.get("/health", tags=["System"])
async def health_check():
    """Liveness check (does not call bitbank)."""
    return {"status": "healthy"}


@app.get("/tools", tags=["System"])
async def list_tools():
    """List available tools and their parameters."""
    return {"tools": tool_catalog()}


# ============================================
# Tool Endpoints
# ============================================

@app.get("/tools/get_ticker", tags=["Tools"])
async def get_ticker(
    pair: str = Query(..., description="Trading pair (e.g. btc_jpy)"),
    tools: MarketTools = Depends(get_market_tools),
):
    return _respond(await tools.get_ticker(pair))


@app.get("/tools/get_tickers", tags=["Tools"])
async def get_tickers(
    market: Literal["all", "jpy"] = Query(default="all", description="Market filter"),
    tools: MarketTools = Depends(get_market_tools),
):
    return _respond(await tools.get_tickers(market))


@app.get("/tools/get_tickers_jpy", tags=["Tools"])
async def get_tickers_jpy(tools: MarketTools = Depends(get_market_tools)):
    return _respond(await tools.get_tickers_jpy())


@app.get("/tools/get_candles", tags=["Tools"])
async def get_candles(
    pair: str = Query(..., description="Trading pair (e.g. btc_jpy)"),
    type: CandleType = Query(default="1day", description="Candle type/timeframe"),
    date: Optional[str] = Query(default=None, description="YYYY (4hour and coarser) or YYYYMMDD"),
    limit: int = Query(default=200, ge=1, le=1000, description="Number of candles"),
    tools: MarketTools = Depends(get_market_tools),
):
    return _respond(await tools.get_candles(pair, type, date, limit))


@app.get("/tools/get_orderbook", tags=["Tools"])
async def get_orderbook(
    pair: str = Query(..., description="Trading pair (e.g. btc_jpy)"),
    topN: int = Query(default=20, ge=1, le=200, description="Price levels per side"),
    tools: MarketTools = Depends(get_market_tools),
):
    return _respond(await tools.get_orderbook(pair, topN))


@app.get("/tools/get_depth", tags=["Tools"])
async def get_depth(
    pair: str = Query(..., description="Trading pair (e.g. btc_jpy)"),
    maxLevels: int = Query(default=200, ge=1, le=500, description="Maximum price levels per side"),
    tools: MarketTools = Depends(get_market_tools),
):
    return _respond(await tools.get_depth(pair, maxLevels))


@app.get("/tools/get_transactions", tags=["Tools"])
async def get_transactions(
    pair: str = Query(..., description="Trading pair (e.g. btc_jpy)"),
    limit: int = Query(default=100, ge=1, le=1000, description="Number of transactions"),
    date: Optional[str] = Query(default=None, description="YYYYMMDD (optional)"),
    tools: MarketTools = Depends(get_market_tools),
):
    return _respond(await tools.get_transactions(pair, limit, date))
