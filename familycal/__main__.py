"""Command-line entry for familycal.

Usage:
    python -m familycal
    python -m familycal --config familycal.yaml --debug
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from familycal.app import run_app
from familycal.core.config import Config
from familycal.core.exceptions import ConfigError
from familycal.core.logging_setup import configure_logging

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the familycal CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="familycal",
        description="familycal - multi-calendar day/week/month touch display",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m familycal                            # Configure from FAMILYCAL_* env and .env
  python -m familycal --config familycal.yaml    # Overlay a YAML config file
  python -m familycal --env-file /etc/familycal.env --debug
        """,
    )

    parser.add_argument(
        "--config",
        type=Path,
        metavar="FILE",
        help="YAML config file laid over the environment (or FAMILYCAL_CONFIG_FILE)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        metavar="FILE",
        help="Path to a .env file (default: .env in the working directory)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (or set FAMILYCAL_DEBUG=1)",
    )

    return parser


def load_config(config_file: Optional[Path], env_file: Optional[Path]) -> Config:
    """Load and validate configuration.

    Raises:
        ConfigError: If the configuration is invalid
    """
    if config_file is not None:
        os.environ["FAMILYCAL_CONFIG_FILE"] = str(config_file)
    config = Config.from_env(env_file)
    config.validate()
    return config


def main(argv: Optional[list[str]] = None) -> int:
    """Run the familycal CLI.

    Returns:
        Process exit code
    """
    args = _create_parser().parse_args(argv)

    try:
        config = load_config(args.config, args.env_file)
    except ConfigError as e:
        configure_logging(debug=args.debug or None)
        logger.error("Invalid configuration: %s", e)
        return 2

    configure_logging(config.log_level, debug=args.debug or None)
    logger.info("Logging configured: level=%s", config.log_level)

    try:
        asyncio.run(run_app(config))
    except Exception:
        logger.exception("Fatal error")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
