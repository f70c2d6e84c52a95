"""Relay bootstrap helpers for config, logging, and startup banner."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable

from talkbridge.common.config import Config, ConfigLoader
from talkbridge.common.lan import lanAddresses_get
from talkbridge.common.settings import settings

logger = logging.getLogger(__name__)

BANNER_WIDTH = 50


def configWithSettings_load(args: argparse.Namespace) -> Config:
    """
    Load configuration and initialize settings singleton.

    Args:
        args: Parsed relay CLI args.

    Returns:
        Loaded config.
    """
    config_path: Path | None = Path(args.config) if args.config else None
    try:
        config: Config = ConfigLoader.configWithOverrides_load(
            file_path=config_path,
            host=getattr(args, "host", None),
            port=getattr(args, "port", None),
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
    Setup logging from config and CLI override.

    Args:
        args: Parsed CLI args.
        config: Loaded config.
        logging_setup_func: Logging setup callback.
    """
    log_level: str = getattr(args, "log_level", None) or config.logging.level
    logging_setup_func(log_level, config.logging.format, config.logging.file)


def bannerLines_build(port: int, marker: str, lan_addresses: list[str]) -> list[str]:
    """
    Build the startup banner.

    The marker line is what the desktop supervisor watches for.

    Args:
        port: Bound relay port.
        marker: Startup marker text.
        lan_addresses: LAN addresses to advertise.

    Returns:
        Banner lines in print order.
    """
    lines: list[str] = ["=" * BANNER_WIDTH, f"  {marker}", "=" * BANNER_WIDTH]
    lines.append(f"  Local:  http://localhost:{port}")
    for address in lan_addresses:
        lines.append(f"  LAN:    http://{address}:{port}")
    lines.append("  Enter a LAN address above in the mobile app settings")
    lines.append("=" * BANNER_WIDTH)
    return lines


def banner_log(port: int, config: Config) -> None:
    """
    Log the startup banner and the STT adapter debug state.

    Args:
        port: Bound relay port.
        config: Loaded config.
    """
    for line in bannerLines_build(port, config.supervisor.startup_marker, lanAddresses_get()):
        logger.info(line)
    logger.info("STT adapter debug logging: %s", "on" if config.stt.debug else "off")
