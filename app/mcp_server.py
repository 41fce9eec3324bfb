"""
MCP Server - bitbank market data tools for agents

Registers every MarketTools method as an MCP tool and serves them over stdio.

Usage:
    python -m app.mcp_server
    python start.py mcp

Each tool returns its text summary under "summary" next to the structured
payload. Failed calls are reported through ToolError so the client sees an
error result carrying the explanation.
"""

from typing import Annotated, Any, Dict, Literal, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field

from core.logging import logger
from core.schemas import CandleType, ToolResult
from services.market_tools import get_market_tools


mcp = FastMCP("bitbank")

PairParam = Annotated[str, Field(description="Trading pair (e.g. btc_jpy, eth_jpy)")]


def _respond(result: ToolResult) -> Dict[str, Any]:
    if result.is_error:
        raise ToolError(result.text)
    return {"summary": result.text, **(result.structured or {})}


@mcp.tool()
async def get_ticker(pair: PairParam) -> Dict[str, Any]:
    """Get ticker data for a trading pair."""
    return _respond(await get_market_tools().get_ticker(pair))


@mcp.tool()
async def get_tickers(
    market: Annotated[Literal["all", "jpy"], Field(description="Market filter: all or jpy")] = "all",
) -> Dict[str, Any]:
    """Get ticker data for all trading pairs."""
    return _respond(await get_market_tools().get_tickers(market))


@mcp.tool()
async def get_tickers_jpy() -> Dict[str, Any]:
    """Get ticker data for supported JPY pairs (cached for a few seconds)."""
    return _respond(await get_market_tools().get_tickers_jpy())


@mcp.tool()
async def get_candles(
    pair: PairParam,
    type: Annotated[CandleType, Field(description="Candle type/timeframe")] = "1day",
    date: Annotated[
        Optional[str],
        Field(description="YYYY for 4hour and coarser, YYYYMMDD for finer types"),
    ] = None,
    limit: Annotated[int, Field(ge=1, le=1000, description="Number of candles to return")] = 200,
) -> Dict[str, Any]:
    """Get candlestick (OHLCV) data for a trading pair, oldest first."""
    return _respond(await get_market_tools().get_candles(pair, type, date, limit))


@mcp.tool()
async def get_orderbook(
    pair: PairParam,
    topN: Annotated[int, Field(ge=1, le=200, description="Number of price levels per side")] = 20,
) -> Dict[str, Any]:
    """Get the order book (bids/asks) for a trading pair."""
    return _respond(await get_market_tools().get_orderbook(pair, topN))


@mcp.tool()
async def get_depth(
    pair: PairParam,
    maxLevels: Annotated[int, Field(ge=1, le=500, description="Maximum price levels per side")] = 200,
) -> Dict[str, Any]:
    """Get full order book depth for a trading pair."""
    return _respond(await get_market_tools().get_depth(pair, maxLevels))


@mcp.tool()
async def get_transactions(
    pair: PairParam,
    limit: Annotated[int, Field(ge=1, le=1000, description="Number of transactions to return")] = 100,
    date: Annotated[Optional[str], Field(description="Date in YYYYMMDD (optional)")] = None,
) -> Dict[str, Any]:
    """Get recent transactions for a trading pair."""
    return _respond(await get_market_tools().get_transactions(pair, limit, date))


def main() -> None:
    logger.info("bitbank MCP server running on stdio")
    mcp.run()


if __name__ == "__main__":
    main()
