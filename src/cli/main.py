from __future__ import annotations

import argparse
import logging
from typing import List, Optional

import uvicorn


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve the chess position HTTP API")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument(
        "--log-level",
        type=str.lower,
        default="info",
        choices=["critical", "error", "warning", "info", "debug"],
        help="Log level for the app and uvicorn (default: info)",
    )
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    # Configured before the factory runs, so its basicConfig call is a no-op
    logging.basicConfig(level=args.log_level.upper())
    uvicorn.run(
        "src.protocol.http.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
