"""
Relay connection for a sync client.

A client registers its role (and, for a phone, its transport mode) each time
the socket comes up, so the relay's aggregate status recovers by itself after
a reconnect. Writes are short blocking sends; reads are polled with `select`.
"""

from __future__ import annotations

import codecs
import logging
import select
import socket
import time

from talkbridge.common.settings import settings
from talkbridge.common.types import ClientRole, TransportMode
from talkbridge.protocol.message import Message, MessageBuilder

logger = logging.getLogger(__name__)

SEND_TIMEOUT_SEC = 5.0


class ClientNetwork:
    """TCP link from a phone or desktop endpoint to the relay"""

    def __init__(
        self,
        host: str,
        port: int,
        reconnect_enabled: bool = True,
        reconnect_max_attempts: int = 5,
        reconnect_delay: float = 1.0,
    ) -> None:
        """
        Args:
            host:
                Relay host.
            port:
                Relay port.
            reconnect_enabled:
                Retry after a failed connect and after a lost connection.
            reconnect_max_attempts:
                Connect attempts per (re)connect cycle.
            reconnect_delay:
                Pause between attempts in seconds.
        """
        self.host: str = host
        self.port: int = port
        self.reconnect_enabled: bool = reconnect_enabled
        self.reconnect_max_attempts: int = reconnect_max_attempts
        self.reconnect_delay: float = reconnect_delay

        self.socket: socket.socket | None = None
        self.buffer: str = ""
        self.is_connected: bool = False
        self._decoder = codecs.getincrementaldecoder("utf-8")()

        # Identity replayed on every connect
        self._role: ClientRole = ClientRole.DESKTOP
        self._mode: TransportMode | None = None

    def connection_establish(
        self,
        role: ClientRole | None = None,
        mode: TransportMode | None = None,
    ) -> None:
        """
        Connect to the relay and register.

        Args:
            role:
                Role to register with. Remembered for reconnects.
            mode:
                Transport mode a phone reports. Remembered for reconnects.

        Raises:
            ConnectionError:
                When every attempt fails.
        """
        if role is not None:
            self._role = role
        if mode is not None:
            self._mode = mode

        attempts = self.reconnect_max_attempts if self.reconnect_enabled else 1
        for attempt in range(1, attempts + 1):
            try:
                self.socket_open()
                self.message_send(MessageBuilder.registerMessage_create(self._role, self._mode))
                return
            except OSError as exc:
                logger.warning("Connection attempt %s/%s failed: %s", attempt, attempts, exc)
                self.socket_discard()
                if attempt < attempts:
                    time.sleep(self.reconnect_delay)

        raise ConnectionError(f"Failed to connect to {self.host}:{self.port} after {attempts} attempts")

    def socket_open(self) -> None:
        """Open a fresh socket with empty framing state"""
        self.socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.socket.connect((self.host, self.port))
        self.socket.setblocking(False)
        self.buffer = ""
        self._decoder.reset()
        self.is_connected = True
        logger.info("Connected to relay %s:%s", self.host, self.port)

    def socket_discard(self) -> None:
        # Called on the failure path, the socket is already unusable
        self.is_connected = False
        if self.socket is None:
            return
        try:
            self.socket.close()
        except OSError:
            pass
        self.socket = None

    def connection_close(self) -> None:
        """Close the relay connection. Safe to call more than once."""
        self.is_connected = False
        if self.socket is not None:
            try:
                self.socket.close()
            except OSError as exc:
                logger.error("Error closing socket: %s", exc)
            finally:
                self.socket = None
        logger.info("Connection closed")

    def message_send(self, message: Message) -> None:
        """
        Write one message to the relay.

        Raises:
            ConnectionError:
                When not connected or the write fails.
        """
        if not self.connectionStatus_check():
            raise ConnectionError("Not connected to relay")

        data: bytes = (message.json_serialize() + "\n").encode("utf-8")
        try:
            self.socket.settimeout(SEND_TIMEOUT_SEC)
            self.socket.sendall(data)
        except OSError as exc:
            self.is_connected = False
            raise ConnectionError(f"Failed to send {message.msg_type.value}: {exc}") from exc
        finally:
            if self.socket is not None:
                self.socket.setblocking(False)

    def messages_receive(self, timeout: float = 0.0) -> list[Message]:
        """
        Wait up to timeout for relay data and return complete messages.

        Raises:
            ConnectionError:
                When the relay closes the socket, the read fails or the
                inbound buffer grows past its cap.
        """
        if not self.connectionStatus_check():
            raise ConnectionError("Not connected to relay")

        try:
            readable, _, _ = select.select([self.socket], [], [], timeout)
            if not readable:
                return []
            data: bytes = self.socket.recv(settings.RECV_CHUNK_SIZE)
            decoded: str = self._decoder.decode(data)
        except (BlockingIOError, InterruptedError):
            return []
        except (OSError, UnicodeDecodeError) as exc:
            self.is_connected = False
            raise ConnectionError(f"Socket error: {exc}") from exc

        if not data:
            self.is_connected = False
            raise ConnectionError("Connection closed by relay")
        if len(self.buffer) + len(decoded) > settings.MAX_BUFFER_SIZE:
            logger.error("Inbound buffer would exceed %s bytes", settings.MAX_BUFFER_SIZE)
            self.is_connected = False
            raise ConnectionError("Buffer size limit exceeded")

        self.buffer += decoded
        return self.bufferMessages_parse()

    def bufferMessages_parse(self) -> list[Message]:
        """Split complete lines off the buffer. Malformed lines are logged and dropped."""
        messages: list[Message] = []
        while "\n" in self.buffer:
            line, self.buffer = self.buffer.split("\n", 1)
            if not line.strip():
                continue
            try:
                messages.append(Message.json_deserialize(line))
            except Exception as exc:
                logger.error("Failed to parse relay message: %s", exc)
        return messages

    def reconnection_attempt(self) -> bool:
        """
        Reconnect after a lost connection and register again.

        Returns:
            False when reconnect is disabled or every attempt failed.
        """
        if not self.reconnect_enabled:
            return False

        logger.info("Reconnecting to relay %s:%s", self.host, self.port)
        self.connection_close()
        try:
            self.connection_establish()
        except ConnectionError as exc:
            logger.error("Reconnection failed: %s", exc)
            return False
        return True

    def connectionStatus_check(self) -> bool:
        return self.is_connected and self.socket is not None
