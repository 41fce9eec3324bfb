"""
Core Package

Exchange-agnostic building blocks:
- config / logging: settings and the shared logger
- errors: UserError / UpstreamDataError / TransportError taxonomy
- pairs: trading pair normalization and allow-list
- schemas: Pydantic models for normalized market data and tool results
"""
