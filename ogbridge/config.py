"""
Configuration management via environment variables and CLI arguments.

Environment variables (primary for K8s/Docker):
  OG_USERNAME        - OurGroceries account email (required)
  OG_PASSWORD        - OurGroceries account password (required)
  OG_API_KEY         - Key callers must present; empty disables the check
  OG_HOST            - Bind host
  OG_PORT            - Bind port
  ANTHROPIC_API_KEY  - Enables meal plan ingredient suggestions
  OG_DEBUG           - Enable debug logging (any value = true)
"""

from __future__ import annotations
import argparse
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Optional, Sequence

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3456

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
QUIET_LOGGERS = ("urllib3", "werkzeug", "anthropic", "httpx")


@dataclass(frozen=True)
class Config:
    """Runtime configuration for the bridge server."""

    username: str
    password: str = field(repr=False)
    api_key: str = field(default="", repr=False)
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    anthropic_api_key: str = field(default="", repr=False)
    debug: bool = False

    def __post_init__(self) -> None:
        if not self.username or not self.password:
            raise ValueError("OurGroceries username and password are required")

    @classmethod
    def from_env_and_cli(cls, argv: Optional[Sequence[str]] = None) -> "Config":
        """
        Build config from environment variables with CLI overrides.

        Environment variables provide defaults, CLI arguments override them.
        """
        parser = _create_parser()
        args = parser.parse_args(argv)

        username = args.username or os.environ.get('OG_USERNAME', '')
        password = args.password or os.environ.get('OG_PASSWORD', '')

        if not username or not password:
            logging.error(
                "\n\nOG_USERNAME and OG_PASSWORD env vars are required "
                "(or pass --username and --password).\n"
            )
            sys.exit(1)

        return cls(
            username=username,
            password=password,
            api_key=args.api_key if args.api_key is not None else os.environ.get('OG_API_KEY', ''),
            host=args.host or os.environ.get('OG_HOST', DEFAULT_HOST),
            port=args.port if args.port is not None else int(os.environ.get('OG_PORT', str(DEFAULT_PORT))),
            anthropic_api_key=os.environ.get('ANTHROPIC_API_KEY', ''),
            debug=args.debug or bool(os.environ.get('OG_DEBUG')),
        )


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser with all supported options."""
    parser = argparse.ArgumentParser(
        prog='ogbridge',
        description='HTTP bridge for OurGroceries shopping lists',
    )

    parser.add_argument(
        '-u', '--username',
        help='OurGroceries account email (or set OG_USERNAME env var)',
        default=None,
        type=str
    )
    parser.add_argument(
        '-p', '--password',
        help='OurGroceries account password (or set OG_PASSWORD env var)',
        default=None,
        type=str
    )
    parser.add_argument(
        '-k', '--api-key',
        help='Key callers must send as X-API-Key or ?key= (or set OG_API_KEY)',
        default=None,
        type=str
    )
    parser.add_argument(
        '--host',
        help=f'Bind host (default: {DEFAULT_HOST})',
        default=None,
        type=str
    )
    parser.add_argument(
        '--port',
        help=f'Bind port (default: {DEFAULT_PORT})',
        default=None,
        type=int
    )
    parser.add_argument(
        '--debug',
        help='Enable debug logging',
        action='store_true'
    )

    return parser


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for the bridge.

    Args:
        debug: If True, log at DEBUG, including the HTTP libraries
    """
    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        handlers=[logging.StreamHandler()],
    )

    # Request-level chatter from the HTTP stack only in debug mode
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(level if debug else logging.WARNING)
