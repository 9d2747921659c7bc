"""Command-line entry for ics_availability."""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn

from . import run_server


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the ics_availability CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="ics_availability",
        description="Free/busy availability API backed by a remote iCal feed",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m ics_availability                          # Serve on 0.0.0.0:8080
  python -m ics_availability --port 3000              # Serve on port 3000
  python -m ics_availability --config settings.yaml   # Read a YAML config file
        """,
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="YAML configuration file (default: ICS_AVAILABILITY_CONFIG env var)",
    )
    parser.add_argument(
        "--host",
        metavar="HOST",
        help="Interface to bind (default: 0.0.0.0, or ICS_AVAILABILITY_WEB_HOST)",
    )
    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port number for the web server (default: 8080, or ICS_AVAILABILITY_WEB_PORT)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    return parser


def main() -> NoReturn:
    """Run the ics_availability CLI."""
    parser = _create_parser()
    args = parser.parse_args()

    run_server(args)
    sys.exit(0)


if __name__ == "__main__":
    main()
