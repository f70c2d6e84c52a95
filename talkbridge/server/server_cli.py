"""
Relay CLI argument parser construction.

This module owns relay-specific argument-parser definition so runtime policy
code remains focused on execution behavior rather than CLI schema setup.
"""

from __future__ import annotations

import argparse

from talkbridge import __version__

__all__ = [
    "arguments_parse",
    "parser_create",
    "coreArgs_populate",
    "logLevelArgs_populate",
]


def arguments_parse(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse relay command-line arguments.

    Args:
        argv:
            Optional argument list (defaults to `sys.argv[1:]`).

    Returns:
        Parsed argparse namespace for relay startup.
    """
    parser: argparse.ArgumentParser = parser_create()
    return parser.parse_args(argv)


def parser_create() -> argparse.ArgumentParser:
    """
    Create fully populated relay argument parser.

    Returns:
        Configured argument parser.
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="talkbridge relay - syncs transcript and buffer between mobile and desktop"
    )
    parser.add_argument("--version", action="version", version=f"talkbridge {__version__}")
    coreArgs_populate(parser)
    logLevelArgs_populate(parser)
    return parser


def coreArgs_populate(parser: argparse.ArgumentParser) -> None:
    """
    Populate core relay arguments.

    Args:
        parser: Target argument parser.
    """
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config file (default: search standard locations)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host address to bind to (overrides config)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (overrides config and PORT)",
    )


def logLevelArgs_populate(parser: argparse.ArgumentParser) -> None:
    """
    Populate log-level override flags.

    Args:
        parser: Target argument parser.
    """
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config)",
    )
