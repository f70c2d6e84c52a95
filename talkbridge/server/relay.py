"""
Relay service: registration, fan-out and aggregate status.

This module owns the connection registry and decides what each inbound event
does. All handlers run on the network poll thread, so one inbound event is
one registry-mutation-and-broadcast turn.
"""

from __future__ import annotations

import logging

from talkbridge.common.types import AggregateStatus, RegisterRequest
from talkbridge.protocol.message import (
    RELAYED_TYPES,
    Message,
    MessageBuilder,
    MessageParser,
    MessageType,
)
from talkbridge.server.network import ClientConnection, ServerNetwork
from talkbridge.server.registry import ConnectionRegistry

logger = logging.getLogger(__name__)

__all__ = ["RelayService"]


class RelayService:
    """Connects the transport to the registry and routes events."""

    def __init__(self, network: ServerNetwork, registry: ConnectionRegistry | None = None) -> None:
        """
        Wire the relay to a server network.

        Args:
            network:
                Transport that accepts connections and delivers messages.
            registry:
                Connection table, created when omitted.
        """
        self.network: ServerNetwork = network
        self.registry: ConnectionRegistry = registry or ConnectionRegistry()
        network.on_connect = self.clientConnected_handle
        network.on_disconnect = self.clientDisconnected_handle

    def clientConnected_handle(self, client: ClientConnection) -> None:
        """
        Record a new, still unregistered connection.

        Args:
            client:
                Newly accepted connection.
        """
        self.registry.connection_add(client.connection_id)

    def clientDisconnected_handle(self, client: ClientConnection) -> None:
        """
        Forget a closed connection and publish the new aggregate status.

        Args:
            client:
                Connection that went away.
        """
        self.registry.connection_remove(client.connection_id)
        if client.is_http_probe:
            return
        self.status_broadcast()

    def clientMessage_handle(self, client: ClientConnection, message: Message) -> None:
        """
        Process one inbound message.

        Args:
            client:
                Originating connection.
            message:
                Decoded inbound message.
        """
        if message.msg_type == MessageType.REGISTER:
            self.registerMessage_handle(client, message)
            return
        if message.msg_type in RELAYED_TYPES:
            self.message_relay(client, message)
            return

        logger.warning(
            "Ignoring %s from %s: not a client event",
            message.msg_type.value,
            client.connection_id,
        )

    def registerMessage_handle(self, client: ClientConnection, message: Message) -> None:
        """
        Register a connection's role and mode.

        An invalid payload leaves the connection as it was.

        Args:
            client:
                Originating connection.
            message:
                Register message.
        """
        request: RegisterRequest | None = MessageParser.registration_parse(message)
        if request is None:
            logger.warning(
                "Ignoring malformed registration from %s: %r",
                client.connection_id,
                message.payload,
            )
            return

        self.registry.connection_upsert(client.connection_id, request.role, request.mode)
        logger.info(
            "Registered %s -> %s (%s)",
            client.connection_id,
            request.role.value,
            request.mode.value,
        )
        self.status_broadcast()

    def message_relay(self, sender: ClientConnection, message: Message) -> int:
        """
        Forward an event verbatim to every other connection.

        Args:
            sender:
                Originating connection, excluded from delivery.
            message:
                Event to forward.

        Returns:
            Number of recipients the event was queued for.
        """
        delivered: int = self.network.messageToOthers_broadcast(message, sender)
        logger.debug(
            "Relayed %s from %s to %s peer(s)",
            message.msg_type.value,
            sender.connection_id,
            delivered,
        )
        return delivered

    def status_broadcast(self) -> AggregateStatus:
        """
        Recompute the aggregate status and push it to every connection.

        Returns:
            The status that was broadcast.
        """
        status: AggregateStatus = self.registry.status_get()
        logger.info(
            "Online: mobile=%s, desktop=%s, total=%s, mobileMode=%s",
            status.mobile,
            status.desktop,
            self.network.clients_count(),
            status.mobile_mode.value,
        )
        self.network.messageToAll_broadcast(MessageBuilder.connectionStatusMessage_create(status))
        return status
