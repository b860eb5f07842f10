#!/usr/bin/env python3
"""Run the B3 gateway HTTP server."""

import argparse
import os
import sys

import uvicorn

from b3_gateway.app import create_app
from b3_gateway.lib.config import GatewayConfig
from b3_gateway.lib.logging_config import LOGGER


def main(argv: list[str] | None = None) -> int:
    """Load configuration and serve the gateway until interrupted.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(description="Run the B3 mTLS/OAuth2 gateway")
    parser.add_argument(
        "--host",
        default=os.environ.get("HOST", "0.0.0.0"),
        help="Interface to bind (default: $HOST or 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("PORT", "3000")),
        help="Port to listen on (default: $PORT or 3000)",
    )
    args = parser.parse_args(argv)

    try:
        config = GatewayConfig.from_env()
    except ValueError as e:
        LOGGER.error("Invalid configuration: %s", e)
        return 1

    LOGGER.info(
        "Starting gateway on %s:%d (environment=%s, token_strategy=%s)",
        args.host,
        args.port,
        config.environment,
        config.token_strategy,
    )
    uvicorn.run(create_app(config), host=args.host, port=args.port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
