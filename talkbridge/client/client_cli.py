"""
Client CLI parsing and server-address validation policies.

This module contains only argument parsing and relay address parsing logic
for the sync client runtime.
"""

from __future__ import annotations

import argparse

from talkbridge import __version__

__all__ = ["arguments_parse", "serverAddress_parse"]


def arguments_parse(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse client command-line arguments.

    Args:
        argv:
            Optional argument list (defaults to `sys.argv[1:]`).

    Returns:
        Parsed client CLI namespace.
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="talkbridge client - console endpoint for the shared session"
    )

    parser.add_argument("--version", action="version", version=f"talkbridge {__version__}")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config file (default: search standard locations)",
    )
    parser.add_argument(
        "--server",
        type=str,
        default=None,
        help="Relay address to connect to (overrides config, e.g., 192.168.1.100:3001)",
    )
    parser.add_argument(
        "--role",
        type=str,
        choices=["mobile", "desktop"],
        default=None,
        help="Role to register with (overrides config)",
    )
    parser.add_argument(
        "--mode",
        type=str,
        choices=["usb", "lan"],
        default=None,
        help="Transport mode reported by a mobile endpoint (overrides config)",
    )
    parser.add_argument(
        "--auto-fill",
        action="store_true",
        dest="auto_fill",
        help="Append final transcript text to the shared buffer",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config)",
    )
    return parser.parse_args(argv)


def serverAddress_parse(server: str) -> tuple[str, int]:
    """
    Parse relay address into host and port.

    Accepts `host:port` and `http://host:port` (the form shown in the relay
    banner).

    Args:
        server:
            Relay address string.

    Returns:
        Tuple of `(host, port)`.

    Raises:
        ValueError:
            Raised when address format is invalid.
    """
    address: str = server.strip()
    for scheme in ("http://", "https://"):
        if address.startswith(scheme):
            address = address[len(scheme):]
    address = address.rstrip("/")

    if ":" not in address:
        raise ValueError("Server address must be in format host:port")

    host, port_str = address.rsplit(":", 1)
    try:
        port = int(port_str)
    except ValueError as exc:
        raise ValueError(f"Invalid port number: {port_str}") from exc
    return host, port
