"""CLI entrypoint for the Dispute Engine.

Usage:
    dispute-engine                    # Serve the HTTP API
    dispute-engine --port 8080        # Serve on another port
"""

from __future__ import annotations

import argparse
import logging
import sys

import uvicorn

from dispute_engine import __version__
from dispute_engine.config import settings


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    parser = argparse.ArgumentParser(description="Dispute Engine")
    parser.add_argument(
        "--host",
        default=settings.host,
        help=f"HTTP listener host (default: {settings.host})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"HTTP listener port (default: {settings.port})",
    )
    args = parser.parse_args()

    if not settings.owner_identity:
        print("ERROR: DISPUTE_ENGINE_OWNER must be set", file=sys.stderr)
        sys.exit(1)

    print(f"Dispute Engine v{__version__}")
    print(f"   Owner:        {settings.owner_identity}")
    print(f"   Custody:      {settings.custody_account}")
    print(f"   Appeal window: {settings.appeal_window} blocks")
    print(f"   Dev ledger:   {'on' if settings.dev_ledger_enabled else 'off'}")
    print(f"   Listening:    http://{args.host}:{args.port}")
    print()

    uvicorn.run(
        "dispute_engine.api:app",
        host=args.host,
        port=args.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
