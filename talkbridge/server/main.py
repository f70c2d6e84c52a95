"""talkbridge relay main entry point"""

import argparse
import logging
import signal
import sys
from typing import NoReturn, Optional

from talkbridge.common.config import Config
from talkbridge.server.bootstrap import banner_log, configWithSettings_load, loggingWithConfig_setup
from talkbridge.server.network import ServerNetwork
from talkbridge.server.relay import RelayService
from talkbridge.server.server_cli import arguments_parse
from talkbridge.server.server_logging import logging_setup

logger = logging.getLogger(__name__)


def relay_create(config: Config) -> RelayService:
    """
    Build the relay service and its network from config

    Args:
        config: Loaded config

    Returns:
        Relay wired to an unstarted ServerNetwork
    """
    network = ServerNetwork(
        host=config.server.host,
        port=config.server.port,
        max_clients=config.server.max_clients,
    )
    return RelayService(network)


def relayLoop_run(relay: RelayService, poll_interval_ms: int) -> None:
    """
    Service sockets until the network is stopped

    Args:
        relay: Started relay service
        poll_interval_ms: Maximum select wait per iteration
    """
    timeout = poll_interval_ms / 1000.0
    network = relay.network
    while network.is_running:
        network.events_poll(relay.clientMessage_handle, timeout)


def terminationHandler_install(network: ServerNetwork) -> None:
    """Stop the loop cleanly on SIGTERM"""

    def handler(signum: int, frame: Optional[object]) -> None:
        logger.info(f"Received signal {signum}, shutting down")
        network.is_running = False

    signal.signal(signal.SIGTERM, handler)


def server_run(args: argparse.Namespace) -> NoReturn:
    """
    Run the relay until interrupted

    Args:
        args: Parsed relay CLI args
    """
    config = configWithSettings_load(args)
    loggingWithConfig_setup(args, config, logging_setup)

    relay = relay_create(config)
    try:
        relay.network.server_start()
    except OSError as e:
        logger.error(f"Cannot listen on {config.server.host}:{config.server.port}: {e}")
        sys.exit(1)

    terminationHandler_install(relay.network)
    banner_log(relay.network.port, config)

    try:
        relayLoop_run(relay, config.server.poll_interval_ms)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        relay.network.server_stop()

    sys.exit(0)


def main() -> NoReturn:
    """Entry point for the talkbridge-relay script"""
    server_run(arguments_parse())


if __name__ == "__main__":
    main()
