"""Client bootstrap helpers for config, logging, and session wiring."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable

from talkbridge.client.network import ClientNetwork
from talkbridge.client.sync import SyncSession
from talkbridge.common.config import Config, ConfigLoader
from talkbridge.common.settings import settings
from talkbridge.common.types import ClientRole, TransportMode

logger = logging.getLogger(__name__)


def configWithSettings_load(args: argparse.Namespace) -> Config:
    """
    Load client config and initialize settings.

    Args:
        args: Parsed CLI args.

    Returns:
        Loaded config.
    """
    config_path: Path | None = Path(args.config) if args.config else None
    try:
        config: Config = ConfigLoader.configWithOverrides_load(
            file_path=config_path,
            server_address=getattr(args, "server", None),
            role=getattr(args, "role", None),
            mode=getattr(args, "mode", None),
            auto_fill=getattr(args, "auto_fill", False),
        )
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Create a config.yml file or specify path with --config", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)
    settings.initialize(config)
    return config


def loggingWithConfig_setup(
    args: argparse.Namespace,
    config: Config,
    logging_setup_func: Callable[[str, str, str | None], None],
) -> None:
    """
    Setup client logging from config and optional CLI override.

    Args:
        args: Parsed CLI args.
        config: Loaded config.
        logging_setup_func: Logging setup callback.
    """
    log_level: str = getattr(args, "log_level", None) or config.logging.level
    logging_setup_func(log_level, config.logging.format, config.logging.file)


def serverAddressWithConfig_parse(
    config: Config,
    server_address_parse_func: Callable[[str], tuple[str, int]],
) -> tuple[str, int]:
    """
    Parse and validate relay address from config.

    Args:
        config: Loaded config.
        server_address_parse_func: Address parsing callback.

    Returns:
        Host and port tuple.
    """
    try:
        return server_address_parse_func(config.client.server_address)
    except ValueError as e:
        logger.error(f"Invalid server address: {e}")
        sys.exit(1)


def identity_resolve(config: Config) -> tuple[ClientRole, TransportMode]:
    """
    Resolve role and transport mode from config.

    Args:
        config: Loaded config.

    Returns:
        Role and mode; mode is `UNKNOWN` for desktop endpoints.
    """
    try:
        role = ClientRole(config.client.role)
    except ValueError:
        logger.error(f"Unsupported role '{config.client.role}'. Supported: mobile, desktop.")
        sys.exit(1)
    if role != ClientRole.MOBILE:
        return role, TransportMode.UNKNOWN
    try:
        return role, TransportMode(config.client.mode)
    except ValueError:
        logger.warning(f"Unsupported mode '{config.client.mode}', reporting unknown")
        return role, TransportMode.UNKNOWN


def networkAndSession_create(
    config: Config,
    host: str,
    port: int,
) -> tuple[ClientNetwork, SyncSession]:
    """
    Create transport and sync session.

    Args:
        config: Loaded config.
        host: Relay host.
        port: Relay port.

    Returns:
        Unconnected network and a detached session.
    """
    network = ClientNetwork(
        host=host,
        port=port,
        reconnect_enabled=config.client.reconnect.enabled,
        reconnect_max_attempts=config.client.reconnect.max_attempts,
        reconnect_delay=config.client.reconnect.delay_seconds,
    )
    role, _ = identity_resolve(config)
    session = SyncSession(role=role, auto_fill=config.client.auto_fill)
    return network, session
