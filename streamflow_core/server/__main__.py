"""
Server Entrypoint
=================
Run the long-lived proxy with uvicorn.

Usage:
    python -m streamflow_core.server --port 4001
"""

import argparse
from typing import List, Optional

import uvicorn

from ..config import ProxyConfig
from ..logs import setup_logging
from .app import create_app


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="streamflow-server",
        description="Signed, time-limited, byte-range streaming proxy.",
    )
    parser.add_argument("--host", help="Bind address (default: $HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Listen port (default: $PORT or 4001)")
    args = parser.parse_args(argv)

    config = ProxyConfig.from_env()
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port

    setup_logging(config.service_name, config.log_level, config.log_json)

    # Bind failures propagate and end the process
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_config=None,
        timeout_keep_alive=60,
    )


if __name__ == "__main__":
    main()
