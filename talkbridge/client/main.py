"""talkbridge client main entry point"""

import argparse
import logging
import queue
import sys
from typing import NoReturn

from talkbridge.client.bootstrap import (
    configWithSettings_load,
    identity_resolve,
    loggingWithConfig_setup,
    networkAndSession_create,
    serverAddressWithConfig_parse,
)
from talkbridge.client.client_cli import arguments_parse, serverAddress_parse
from talkbridge.client.client_dispatch import serverMessage_handle
from talkbridge.client.client_logging import logging_setup
from talkbridge.client.console import consoleCommand_apply, stdinReader_start
from talkbridge.client.network import ClientNetwork
from talkbridge.client.sync import SyncSession
from talkbridge.common.settings import settings

logger = logging.getLogger(__name__)


def consoleLines_drain(lines: "queue.Queue[str | None]", session: SyncSession) -> bool:
    """
    Apply every queued console line

    Args:
        lines: Queue fed by the stdin reader
        session: Local sync session

    Returns:
        False once stdin reached end of input
    """
    while True:
        try:
            line = lines.get_nowait()
        except queue.Empty:
            return True
        if line is None:
            return False
        output = consoleCommand_apply(line, session)
        if output:
            print(output)


def relayMessages_process(network: ClientNetwork, session: SyncSession, timeout: float) -> bool:
    """
    Receive and dispatch relay messages, reconnecting on transport loss

    Args:
        network: Client transport
        session: Local sync session
        timeout: Maximum wait for data

    Returns:
        False when the connection is lost for good
    """
    try:
        messages = network.messages_receive(timeout)
    except ConnectionError as e:
        logger.warning(f"Connection lost: {e}")
        session.connection_lost()
        if not network.reconnection_attempt():
            return False
        session.sender = network.message_send
        return True

    for message in messages:
        serverMessage_handle(message, session)
    return True


def client_run(args: argparse.Namespace) -> NoReturn:
    """
    Run a console sync client until stdin closes or the relay is gone

    Args:
        args: Parsed client CLI args
    """
    config = configWithSettings_load(args)
    loggingWithConfig_setup(args, config, logging_setup)

    host, port = serverAddressWithConfig_parse(config, serverAddress_parse)
    role, mode = identity_resolve(config)
    network, session = networkAndSession_create(config, host, port)

    try:
        network.connection_establish(role=role, mode=mode)
    except ConnectionError as e:
        logger.error(str(e))
        sys.exit(1)
    session.sender = network.message_send

    lines = stdinReader_start()
    try:
        while True:
            if not relayMessages_process(network, session, settings.CLIENT_POLL_INTERVAL_SEC):
                logger.error("Relay unreachable, giving up")
                sys.exit(1)
            if not consoleLines_drain(lines, session):
                break
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        network.connection_close()

    sys.exit(0)


def main() -> NoReturn:
    """Entry point for running the client module directly"""
    client_run(arguments_parse())


if __name__ == "__main__":
    main()
