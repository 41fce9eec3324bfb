"""
Test Suite

Structure:
- tests/unit/: Tests for individual components (pairs, fetcher, normalizers,
  cache, tools, HTTP and MCP adapters). No test touches the network; the
  bitbank client is replaced by fakes.

Uses pytest with pytest-asyncio for testing async functionality.
"""
