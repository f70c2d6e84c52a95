"""Loopback tests: real relay socket, real client transports"""

import json
import socket
import threading
import time
from typing import Callable, List

import pytest

from talkbridge.client.network import ClientNetwork
from talkbridge.common.types import ClientRole, TranscriptChunk, TransportMode
from talkbridge.protocol.message import Message, MessageBuilder, MessageType
from talkbridge.server.main import relayLoop_run
from talkbridge.server.network import ServerNetwork
from talkbridge.server.relay import RelayService

pytestmark = pytest.mark.integration


@pytest.fixture
def relay():
    """Relay on an ephemeral loopback port, serviced on a background thread"""
    network = ServerNetwork("127.0.0.1", 0)
    service = RelayService(network)
    network.server_start()
    thread = threading.Thread(target=relayLoop_run, args=(service, 10), daemon=True)
    thread.start()
    yield service
    network.is_running = False
    thread.join(timeout=2.0)
    network.server_stop()


def client_connect(relay: RelayService, role: ClientRole, mode: TransportMode = None) -> ClientNetwork:
    client = ClientNetwork("127.0.0.1", relay.network.port, reconnect_enabled=False)
    client.connection_establish(role=role, mode=mode)
    return client


def messages_collect(
    client: ClientNetwork,
    done: Callable[[List[Message]], bool],
    timeout: float = 3.0,
) -> List[Message]:
    """Read until the predicate holds or the deadline passes"""
    received: List[Message] = []
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline and not done(received):
        received.extend(client.messages_receive(0.05))
    return received


def latest_status(messages: List[Message]):
    statuses = [m.payload for m in messages if m.msg_type == MessageType.CONNECTION_STATUS]
    return statuses[-1] if statuses else None


class TestRelayLoopback:
    """End-to-end relay behavior over TCP"""

    def test_registration_and_fan_out(self, relay):
        """Test status reaches both ends and events skip the sender"""
        mobile = client_connect(relay, ClientRole.MOBILE, TransportMode.USB)
        messages_collect(mobile, lambda got: latest_status(got) is not None)
        desktop = client_connect(relay, ClientRole.DESKTOP)

        expected = {"mobile": 1, "desktop": 1, "mobileMode": "usb"}
        desktop_got = messages_collect(desktop, lambda got: latest_status(got) == expected)
        mobile_got = messages_collect(mobile, lambda got: latest_status(got) == expected)
        assert latest_status(desktop_got) == expected
        assert latest_status(mobile_got) == expected

        mobile.message_send(
            MessageBuilder.transcriptChunkMessage_create(TranscriptChunk("hello", is_final=False))
        )
        chunks = messages_collect(
            desktop, lambda got: any(m.msg_type == MessageType.TRANSCRIPT_CHUNK for m in got)
        )
        chunk = [m for m in chunks if m.msg_type == MessageType.TRANSCRIPT_CHUNK][0]
        assert chunk.payload == {"text": "hello", "isFinal": False}

        echoed = messages_collect(mobile, lambda got: False, timeout=0.3)
        assert not any(m.msg_type == MessageType.TRANSCRIPT_CHUNK for m in echoed)

        mobile.connection_close()
        desktop.connection_close()

    def test_disconnect_updates_status(self, relay):
        """Test the remaining peer learns about the departure"""
        mobile = client_connect(relay, ClientRole.MOBILE, TransportMode.LAN)
        desktop = client_connect(relay, ClientRole.DESKTOP)
        both = {"mobile": 1, "desktop": 1, "mobileMode": "lan"}
        messages_collect(mobile, lambda got: latest_status(got) == both)

        desktop.connection_close()

        alone = {"mobile": 1, "desktop": 0, "mobileMode": "lan"}
        got = messages_collect(mobile, lambda got: latest_status(got) == alone)
        assert latest_status(got) == alone
        mobile.connection_close()

    def test_unicode_buffer_update(self, relay):
        """Test multi-byte text crosses the relay intact"""
        sender = client_connect(relay, ClientRole.DESKTOP)
        receiver = client_connect(relay, ClientRole.MOBILE)
        text = "naïve café ☕ 日本語"

        sender.message_send(MessageBuilder.bufferUpdateMessage_create(text))

        got = messages_collect(
            receiver, lambda got: any(m.msg_type == MessageType.BUFFER_UPDATE for m in got)
        )
        update = [m for m in got if m.msg_type == MessageType.BUFFER_UPDATE][0]
        assert update.payload == {"content": text}
        sender.connection_close()
        receiver.connection_close()

    def test_health_probe(self, relay):
        """Test GET on the relay port answers with liveness JSON"""
        member = client_connect(relay, ClientRole.DESKTOP)
        messages_collect(member, lambda got: latest_status(got) is not None)

        with socket.create_connection(("127.0.0.1", relay.network.port), timeout=3.0) as probe:
            probe.sendall(b"GET /health HTTP/1.1\r\nHost: localhost\r\n\r\n")
            response = b""
            while True:
                chunk = probe.recv(4096)
                if not chunk:
                    break
                response += chunk

        head, body = response.decode("utf-8").split("\r\n\r\n", 1)
        assert head.startswith("HTTP/1.1 200 OK")
        assert json.loads(body) == {"status": "ok", "connectionCount": 1}

        quiet = messages_collect(member, lambda got: False, timeout=0.3)
        assert latest_status(quiet) is None
        member.connection_close()
