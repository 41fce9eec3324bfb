"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Per-endpoint request timeouts for the bitbank public API
- Retry and backoff policy for the resilient fetcher
- Independent cache TTLs for the ticker list endpoints

Usage:
    from core.config import settings

    print(settings.bitbank_base_url)
    print(settings.candles_timeout_ms)
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Application Settings

    Values are automatically loaded from environment variables or .env file.

    Attributes:
        bitbank_base_url: Base URL for the bitbank public REST API
        ticker_timeout_ms: Timeout for /{pair}/ticker (milliseconds)
        tickers_timeout_ms: Timeout for /tickers and /tickers_jpy (milliseconds)
        candles_timeout_ms: Timeout for /{pair}/candlestick (milliseconds)
        depth_timeout_ms: Timeout for /{pair}/depth (milliseconds)
        transactions_timeout_ms: Timeout for /{pair}/transactions (milliseconds)
        request_retries: Retries after the first attempt (2 => 3 attempts)
        retry_backoff_base: First backoff delay in seconds, doubled per attempt
        tickers_jpy_cache_ttl_ms: Freshness window of the JPY tickers cache
        tickers_cache_ttl_ms: Freshness window reserved for the all-tickers endpoint
        display_timezone: Timezone used for human-readable times in summaries
        app_host: Host address for the FastAPI server
        app_port: Port number for the FastAPI server
        log_level: Logging level
    """

    # ============================================
    # bitbank API Configuration
    # ============================================

    bitbank_base_url: str = Field(
        default="https://public.bitbank.cc",
        description="bitbank public API base URL"
    )

    ticker_timeout_ms: int = Field(
        default=5000,
        description="Timeout for single ticker requests (ms)"
    )

    tickers_timeout_ms: int = Field(
        default=5000,
        description="Timeout for ticker list requests (ms)"
    )

    candles_timeout_ms: int = Field(
        default=8000,
        description="Timeout for candlestick requests (ms), largest payloads"
    )

    depth_timeout_ms: int = Field(
        default=3000,
        description="Timeout for order book requests (ms)"
    )

    transactions_timeout_ms: int = Field(
        default=4000,
        description="Timeout for transaction history requests (ms)"
    )

    # ============================================
    # Retry Policy
    # ============================================

    request_retries: int = Field(
        default=2,
        description="Retries after the first attempt (total attempts = retries + 1)"
    )

    retry_backoff_base: float = Field(
        default=0.2,
        description="Backoff before retry i is retry_backoff_base * 2**i seconds"
    )

    # ============================================
    # Caching Configuration
    # ============================================

    tickers_jpy_cache_ttl_ms: int = Field(
        default=10_000,
        description="TTL of the JPY tickers cache (ms)"
    )

    tickers_cache_ttl_ms: int = Field(
        default=3_000,
        description="TTL reserved for the all-tickers endpoint (ms), not wired yet"
    )

    # ============================================
    # Application Configuration
    # ============================================

    display_timezone: str = Field(
        default="Asia/Tokyo",
        description="Timezone for human-readable times in tool summaries"
    )

    app_host: str = Field(
        default="0.0.0.0",
        description="FastAPI server host address"
    )

    app_port: int = Field(
        default=8000,
        description="FastAPI server port"
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
        ValueError: If a setting is out of range
    """
    # logging.py imports config.py, so the logger can't be imported at module level
    from core.logging import logger

    if not settings.bitbank_base_url.startswith("http"):
        raise ValueError(f"Invalid BITBANK_BASE_URL: '{settings.bitbank_base_url}'")

    timeouts = {
        "TICKER_TIMEOUT_MS": settings.ticker_timeout_ms,
        "TICKERS_TIMEOUT_MS": settings.tickers_timeout_ms,
        "CANDLES_TIMEOUT_MS": settings.candles_timeout_ms,
        "DEPTH_TIMEOUT_MS": settings.depth_timeout_ms,
        "TRANSACTIONS_TIMEOUT_MS": settings.transactions_timeout_ms,
    }
    for name, value in timeouts.items():
        if value <= 0:
            raise ValueError(f"{name} must be positive, got {value}")

    if settings.request_retries < 0:
        raise ValueError(f"REQUEST_RETRIES cannot be negative: {settings.request_retries}")

    if settings.retry_backoff_base < 0:
        raise ValueError(f"RETRY_BACKOFF_BASE cannot be negative: {settings.retry_backoff_base}")

    if settings.tickers_jpy_cache_ttl_ms < 0 or settings.tickers_cache_ttl_ms < 0:
        raise ValueError("Cache TTLs cannot be negative")

    if not (1 <= settings.app_port <= 65535):
        raise ValueError(f"Invalid port number: {settings.app_port}. Must be between 1 and 65535")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if settings.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{settings.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"bitbank API: {settings.bitbank_base_url}")
    logger.info(
        f"Retries: {settings.request_retries} "
        f"(backoff base {settings.retry_backoff_base:.2f}s)"
    )
    logger.info(f"JPY tickers cache TTL: {settings.tickers_jpy_cache_ttl_ms}ms")
    logger.info(f"Log level: {settings.log_level.upper()}")
