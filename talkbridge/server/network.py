"""TCP server for talkbridge event broadcasting"""

import codecs
import itertools
import json
import logging
import select
import socket
from typing import Callable, List, Optional

from talkbridge.common.settings import settings
from talkbridge.protocol.message import Message

logger = logging.getLogger(__name__)

HTTP_PROBE_PREFIX = "GET "

_connection_ids = itertools.count(1)


def connectionId_next() -> str:
    """Allocate a process-unique connection id"""
    return f"conn-{next(_connection_ids)}"


class ClientConnection:
    """Represents a connected client"""

    def __init__(
        self,
        client_socket: socket.socket,
        address: tuple[str, int],
        connection_id: Optional[str] = None,
    ) -> None:
        """
        Initialize client connection

        Args:
            client_socket: Client socket
            address: Client address (host, port)
            connection_id: Opaque id, allocated when omitted
        """
        self.socket: socket.socket = client_socket
        self.address: tuple[str, int] = address
        self.connection_id: str = connection_id or connectionId_next()
        self.buffer: str = ""
        self.outbox: bytearray = bytearray()
        self.is_http_probe: bool = False
        # Close once the outbox drains
        self.is_closing: bool = False
        self._decoder = codecs.getincrementaldecoder("utf-8")()

    def message_send(self, message: Message) -> bool:
        """
        Queue message for the client and try to write it out

        Args:
            message: Message to send

        Returns:
            False when the message was dropped because the outbox is full

        Raises:
            ConnectionError: If the socket is broken
        """
        data = (message.json_serialize() + "\n").encode("utf-8")
        if len(self.outbox) + len(data) > settings.MAX_OUTBOX_SIZE:
            logger.warning(f"Outbox full for {self.connection_id}, dropping {message.msg_type.value}")
            return False
        self.outbox.extend(data)
        self.outbox_flush()
        return True

    def outbox_flush(self) -> None:
        """
        Write as much queued data as the socket accepts without blocking

        Raises:
            ConnectionError: If the socket is broken
        """
        while self.outbox:
            try:
                sent = self.socket.send(self.outbox)
            except (BlockingIOError, InterruptedError):
                return
            except OSError as e:
                raise ConnectionError(f"Socket error: {e}")
            if sent == 0:
                raise ConnectionError("Connection closed by client")
            del self.outbox[:sent]

    def hasPendingOutput(self) -> bool:
        """Check if queued outbound data remains"""
        return bool(self.outbox)

    def data_receive(self) -> List[Message]:
        """
        Receive data from client and parse into messages

        Returns:
            List of complete messages received

        Raises:
            ConnectionError: If connection is closed or error occurs
        """
        try:
            data = self.socket.recv(settings.RECV_CHUNK_SIZE)
            if not data:
                raise ConnectionError("Connection closed by client")

            decoded = self._decoder.decode(data)

            # Check buffer size to prevent memory exhaustion
            if len(self.buffer) + len(decoded) > settings.MAX_BUFFER_SIZE:
                logger.error(f"Buffer overflow from {self.address}: buffer size would exceed {settings.MAX_BUFFER_SIZE} bytes")
                raise ConnectionError("Buffer size limit exceeded")

            self.buffer += decoded

            if not self.is_http_probe and self.buffer.startswith(HTTP_PROBE_PREFIX):
                self.is_http_probe = True
            if self.is_http_probe:
                return []

            # Parse complete messages (newline-delimited)
            messages: List[Message] = []
            while "\n" in self.buffer:
                line, self.buffer = self.buffer.split("\n", 1)
                if line.strip():
                    try:
                        messages.append(Message.json_deserialize(line))
                    except Exception as e:
                        logger.warning(f"Dropping malformed message from {self.connection_id}: {e}")

            return messages

        except (BlockingIOError, InterruptedError):
            return []
        except (socket.error, UnicodeDecodeError) as e:
            raise ConnectionError(f"Socket error: {e}")

    def httpRequest_isComplete(self) -> bool:
        """Check if a full HTTP request header block has arrived"""
        return self.is_http_probe and ("\r\n\r\n" in self.buffer or "\n\n" in self.buffer)

    def connection_close(self) -> None:
        """Close connection to client"""
        try:
            self.socket.close()
        except Exception as e:
            logger.error(f"Error closing connection to {self.address}: {e}")


class ServerNetwork:
    """TCP server for accepting and managing client connections"""

    def __init__(self, host: str, port: int, max_clients: int = 64) -> None:
        """
        Initialize server network

        Args:
            host: Host address to bind to
            port: Port to listen on (0 picks a free port)
            max_clients: Maximum number of concurrent clients
        """
        self.host: str = host
        self.port: int = port
        self.max_clients: int = max_clients
        self.server_socket: Optional[socket.socket] = None
        self.clients: List[ClientConnection] = []
        self.is_running: bool = False
        self.on_connect: Optional[Callable[[ClientConnection], None]] = None
        self.on_disconnect: Optional[Callable[[ClientConnection], None]] = None

    def server_start(self) -> None:
        """
        Start TCP server and begin listening for connections

        Raises:
            OSError: If unable to bind to address
        """
        self.server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.server_socket.bind((self.host, self.port))
        self.server_socket.listen(self.max_clients)
        self.server_socket.setblocking(False)
        self.port = self.server_socket.getsockname()[1]
        self.is_running = True

        logger.info(f"Server listening on {self.host}:{self.port}")

    def server_stop(self) -> None:
        """Stop server and close all connections"""
        self.is_running = False

        for client in self.clients[:]:
            self.client_disconnect(client)

        if self.server_socket:
            try:
                self.server_socket.close()
            except Exception as e:
                logger.error(f"Error closing server socket: {e}")
            finally:
                self.server_socket = None

        logger.info("Server stopped")

    def events_poll(
        self,
        message_handler: Callable[[ClientConnection, Message], None],
        timeout: float,
    ) -> None:
        """
        Wait up to timeout for socket activity and service it

        Accepts pending connections, reads inbound messages and flushes queued
        outbound data. Every handler call runs on the calling thread.

        Args:
            message_handler: Callback for each received message
            timeout: Maximum wait in seconds
        """
        if not self.server_socket:
            return

        read_sockets = [self.server_socket] + [client.socket for client in self.clients]
        write_sockets = [client.socket for client in self.clients if client.hasPendingOutput()]
        try:
            readable, writable, _ = select.select(read_sockets, write_sockets, [], timeout)
        except (OSError, ValueError) as e:
            logger.error(f"select failed: {e}")
            self.closedClients_prune()
            return

        if self.server_socket in readable:
            self.connections_accept()

        for client in self.clients[:]:
            if client.socket in writable:
                self.clientOutput_flush(client)
            if client in self.clients and client.socket in readable:
                self.clientData_receive(client, message_handler)

    def connections_accept(self) -> None:
        """Accept one pending client connection (non-blocking)"""
        if not self.server_socket:
            return

        try:
            client_socket, address = self.server_socket.accept()
        except (BlockingIOError, InterruptedError):
            return
        except OSError as e:
            logger.error(f"Error accepting connection: {e}")
            return

        client_socket.setblocking(False)

        if len(self.clients) >= self.max_clients:
            logger.warning(f"Max clients reached, rejecting {address}")
            client_socket.close()
            return

        client = ClientConnection(client_socket, address)
        self.clients.append(client)
        logger.info(f"Client connected: {client.connection_id} from {address}")

        if self.on_connect is not None:
            self.on_connect(client)

    def client_disconnect(self, client: ClientConnection) -> None:
        """
        Disconnect a client

        Args:
            client: Client to disconnect
        """
        if client not in self.clients:
            return
        self.clients.remove(client)
        client.connection_close()
        if client.is_http_probe:
            logger.debug(f"Health probe closed: {client.connection_id}")
        else:
            logger.info(f"Client disconnected: {client.connection_id}")

        if self.on_disconnect is not None:
            self.on_disconnect(client)

    def closedClients_prune(self) -> None:
        """Drop clients whose sockets were closed underneath us"""
        for client in self.clients[:]:
            if client.socket.fileno() < 0:
                self.client_disconnect(client)

    def clientData_receive(
        self,
        client: ClientConnection,
        message_handler: Callable[[ClientConnection, Message], None],
    ) -> None:
        """
        Receive data from one readable client

        Args:
            client: Client with pending input
            message_handler: Callback function for handling received messages
        """
        try:
            messages = client.data_receive()
        except ConnectionError as e:
            logger.debug(f"Client {client.connection_id} connection error: {e}")
            self.client_disconnect(client)
            return

        if client.is_closing:
            return
        if client.httpRequest_isComplete():
            self.healthProbe_answer(client)
            return

        for message in messages:
            if client not in self.clients:
                return
            try:
                message_handler(client, message)
            except Exception as e:
                logger.error(f"Error handling {message.msg_type.value} from {client.connection_id}: {e}")

    def clientOutput_flush(self, client: ClientConnection) -> None:
        """Flush queued output, disconnecting on a broken socket"""
        try:
            client.outbox_flush()
        except ConnectionError as e:
            logger.warning(f"Client {client.connection_id} write error: {e}")
            self.client_disconnect(client)
            return
        if client.is_closing and not client.hasPendingOutput():
            self.client_disconnect(client)

    def healthProbe_answer(self, client: ClientConnection) -> None:
        """
        Queue the liveness document for an HTTP GET

        The response goes out through the outbox like any other write and the
        connection is closed once it has drained.

        Args:
            client: Connection that sent an HTTP request
        """
        body = json.dumps({"status": "ok", "connectionCount": self.clients_count()})
        response = (
            "HTTP/1.1 200 OK\r\n"
            "Content-Type: application/json\r\n"
            f"Content-Length: {len(body.encode('utf-8'))}\r\n"
            "Connection: close\r\n"
            "\r\n"
            f"{body}"
        )
        client.outbox.extend(response.encode("utf-8"))
        client.is_closing = True
        self.clientOutput_flush(client)

    def message_send(self, client: ClientConnection, message: Message) -> bool:
        """
        Send message to one client, dropping it on transport failure

        Args:
            client: Recipient
            message: Message to send

        Returns:
            True if the message was queued for the recipient
        """
        try:
            return client.message_send(message)
        except ConnectionError as e:
            logger.warning(f"Error sending to {client.connection_id}: {e}")
            self.client_disconnect(client)
            return False

    def messageToAll_broadcast(self, message: Message) -> None:
        """
        Broadcast message to all connected clients

        Args:
            message: Message to broadcast
        """
        for client in self.clients[:]:
            if client.is_http_probe or client not in self.clients:
                continue
            self.message_send(client, message)

    def messageToOthers_broadcast(self, message: Message, sender: ClientConnection) -> int:
        """
        Broadcast message to every client except the sender

        Args:
            message: Message to broadcast
            sender: Originating client, never a recipient

        Returns:
            Number of recipients the message was queued for
        """
        delivered = 0
        for client in self.clients[:]:
            if client is sender or client.is_http_probe or client not in self.clients:
                continue
            if self.message_send(client, message):
                delivered += 1
        return delivered

    def clients_count(self) -> int:
        """
        Get number of connected clients

        Returns:
            Number of connected clients, health probes excluded
        """
        return sum(1 for client in self.clients if not client.is_http_probe)
