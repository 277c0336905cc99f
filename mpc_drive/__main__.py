"""
Main entry point when running the mpc_drive module with python -m.
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from .config import WS_HOST, WS_PORT, ServerConfig, load_profile
from .server import main as serve, setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Receding-horizon trajectory controller for the driving simulator"
    )
    parser.add_argument("--host", default=WS_HOST, help=f"Interface to bind (default: {WS_HOST})")
    parser.add_argument("--port", type=int, default=WS_PORT, help=f"Port to listen on (default: {WS_PORT})")
    parser.add_argument("--profile", default=None, help="YAML vehicle profile (default: built-in parameters)")
    parser.add_argument("--record", action="store_true", help="Record each session to CSV under results/")
    parser.add_argument("--output-dir", default=".", help="Base directory for recorded runs (default: .)")
    parser.add_argument(
        "--no-delay", action="store_true", help="Reply immediately instead of emulating actuation delay"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    controller_config = load_profile(args.profile)
    server_config = ServerConfig(
        host=args.host,
        port=args.port,
        record=args.record,
        output_dir=args.output_dir,
    )
    if args.no_delay:
        server_config = replace(server_config, actuation_delay=0.0)

    try:
        asyncio.run(serve(controller_config, server_config))
    except KeyboardInterrupt:
        logger.info("\nExiting...")
        sys.exit(0)


if __name__ == "__main__":
    main()
