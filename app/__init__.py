"""
Application Package

Transports for the market data tools:
- main.py: FastAPI HTTP endpoints
- mcp_server.py: MCP server over stdio
"""
