"""
Storage Package

In-memory caching only; nothing is persisted.

- cache.py: single-slot time-to-live cache for the JPY tickers endpoint
"""
