#!/usr/bin/env python3
"""
Start script

    python start.py        # HTTP API via uvicorn (PORT env, default APP_PORT)
    python start.py mcp    # MCP server over stdio
"""
import os
import sys

if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "mcp":
        from app.mcp_server import main
        main()
        sys.exit(0)

    from core.config import settings

    port = int(os.getenv("PORT", settings.app_port))

    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.app_host,
        port=port,
        log_level=settings.log_level.lower()
    )
