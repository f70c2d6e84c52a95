"""talkbridge unified command-line interface"""

import argparse
import sys
from typing import NoReturn, Optional

from talkbridge import __version__


def arguments_parse(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments

    Args:
        argv: Optional argument list (defaults to sys.argv[1:])

    Returns:
        Parsed CLI arguments.
    """
    parser = argparse.ArgumentParser(
        prog="talkbridge",
        description="Sync live dictation and a shared text buffer between phone and desktop",
    )

    parser.add_argument("--version", action="version", version=f"talkbridge {__version__}")

    # Mode selection: --server means client mode (connect to a relay),
    # --supervise runs the relay under the desktop supervisor,
    # neither runs the relay in the foreground
    parser.add_argument(
        "--server",
        type=str,
        metavar="HOST:PORT",
        default=None,
        help="Connect to relay at HOST:PORT (client mode). If omitted, run as relay.",
    )

    parser.add_argument(
        "--supervise",
        action="store_true",
        help="Run the relay as a supervised child process with a status console",
    )

    # Common options
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config file (default: search standard locations)",
    )

    # Relay options
    parser.add_argument(
        "--host", type=str, default=None, help="[Relay] Host address to bind to (overrides config)"
    )

    parser.add_argument(
        "--port", type=int, default=None, help="[Relay] Port to listen on (overrides config)"
    )

    parser.add_argument(
        "--run-mode",
        type=str,
        default=None,
        dest="run_mode",
        choices=["auto", "development", "packaged"],
        help="[Supervisor] How to launch the relay (overrides config)",
    )

    # Client options
    parser.add_argument(
        "--role",
        type=str,
        choices=["mobile", "desktop"],
        default=None,
        help="[Client] Role to register with (overrides config)",
    )

    parser.add_argument(
        "--mode",
        type=str,
        choices=["lan", "usb", "unknown"],
        default=None,
        help="[Client] Transport mode reported by a mobile endpoint (overrides config)",
    )

    parser.add_argument(
        "--auto-fill",
        action="store_true",
        dest="auto_fill",
        help="[Client] Append final transcript chunks to the shared buffer",
    )

    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging (overrides config)"
    )

    parser.add_argument(
        "--info", action="store_true", help="Enable info logging (overrides config)"
    )

    parser.add_argument(
        "--warning", action="store_true", help="Enable warning logging (overrides config)"
    )

    parser.add_argument(
        "--error", action="store_true", help="Enable error logging (overrides config)"
    )

    parser.add_argument(
        "--critical", action="store_true", help="Enable critical logging (overrides config)"
    )

    return parser.parse_args(argv)


def main() -> NoReturn:
    """Main entry point for unified talkbridge command"""
    args = arguments_parse()

    log_level_override: str | None = logLevelOverride_get(args)

    try:
        argsWithLogLevel_apply(args, log_level_override)
        if clientMode_isEnabled(args):
            clientMode_run(args)
        elif args.supervise:
            supervisorMode_run(args)
        else:
            relayMode_run(args)
        sys.exit(0)

    except KeyboardInterrupt:
        print("\nShutting down...")
        sys.exit(0)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def logLevelOverride_get(args: argparse.Namespace) -> str | None:
    """
    Resolve explicit log level override flags.

    Args:
        args: Parsed CLI args.

    Returns:
        Selected log level or None.
    """
    if args.critical:
        return "CRITICAL"
    if args.error:
        return "ERROR"
    if args.warning:
        return "WARNING"
    if args.info:
        return "INFO"
    if args.debug:
        return "DEBUG"
    return None


def argsWithLogLevel_apply(args: argparse.Namespace, log_level: str | None) -> None:
    """
    Apply optional log level override to args.

    Args:
        args: Parsed CLI args.
        log_level: Optional log level string.
    """
    setattr(args, "log_level", log_level)


def clientMode_isEnabled(args: argparse.Namespace) -> bool:
    """
    Determine whether CLI should run client mode.

    Args:
        args: Parsed CLI args.

    Returns:
        True when client mode should run.
    """
    return bool(args.server)


def clientMode_run(args: argparse.Namespace) -> None:
    """Run client mode entrypoint."""
    from talkbridge.client.main import client_run

    client_run(args)


def supervisorMode_run(args: argparse.Namespace) -> None:
    """Run supervisor mode entrypoint."""
    from talkbridge.supervisor.main import supervise_run

    supervise_run(args)


def relayMode_run(args: argparse.Namespace) -> None:
    """Run relay mode entrypoint."""
    from talkbridge.server.main import server_run

    server_run(args)


if __name__ == "__main__":
    main()
