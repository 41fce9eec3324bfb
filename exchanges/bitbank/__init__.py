"""
bitbank Exchange Connector

Public (unauthenticated) market data from https://public.bitbank.cc.

Structure:
    exchanges/bitbank/
    ├── __init__.py          # This file
    ├── api_client.py        # REST client with timeout/retry and envelope check
    └── normalizers.py       # Pure payload -> schema transforms
"""

from .api_client import BitbankAPIClient, FetchState, unwrap_envelope

__all__ = ["BitbankAPIClient", "FetchState", "unwrap_envelope"]
