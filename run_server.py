#!/usr/bin/env python3
"""Development server runner for the land claim API.

Territories are kept in memory unless LANDCLAIM_STORE_PATH names a JSON file.
"""

import argparse

import uvicorn


def main():
    parser = argparse.ArgumentParser(description="Run the land claim API server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=9000, help="Port (default: 9000)")
    parser.add_argument(
        "--no-reload", action="store_true", help="Disable auto-reload on code changes"
    )
    args = parser.parse_args()

    uvicorn.run(
        "landclaim.server.main:app",
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
