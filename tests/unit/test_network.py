"""Unit tests for relay TCP connection handling"""

import json
from unittest.mock import MagicMock, Mock

import pytest

from talkbridge.common.settings import settings
from talkbridge.protocol.message import Message, MessageBuilder, MessageType
from talkbridge.server.network import ClientConnection, ServerNetwork, connectionId_next


def mock_socket(*chunks: bytes) -> MagicMock:
    """Socket whose recv yields the given chunks in order"""
    sock = MagicMock()
    sock.recv.side_effect = list(chunks)
    sock.send.side_effect = lambda data: len(data)
    sock.fileno.return_value = 10
    return sock


class TestConnectionIds:
    """Test connection id allocation"""

    def test_ids_are_unique(self):
        """Test consecutive ids never repeat"""
        assert connectionId_next() != connectionId_next()

    def test_connection_gets_id(self):
        """Test id is allocated when omitted"""
        client = ClientConnection(mock_socket(), ("127.0.0.1", 1))

        assert client.connection_id.startswith("conn-")


class TestClientConnectionReceive:
    """Test inbound framing"""

    def test_complete_line_parsed(self):
        """Test a full line yields one message"""
        line = MessageBuilder.bufferUpdateMessage_create("hi").json_serialize() + "\n"
        client = ClientConnection(mock_socket(line.encode("utf-8")), ("h", 1))

        messages = client.data_receive()

        assert [m.msg_type for m in messages] == [MessageType.BUFFER_UPDATE]
        assert client.buffer == ""

    def test_partial_line_buffered(self):
        """Test a line split across reads is reassembled"""
        line = MessageBuilder.transcriptClearMessage_create().json_serialize() + "\n"
        raw = line.encode("utf-8")
        client = ClientConnection(mock_socket(raw[:5], raw[5:]), ("h", 1))

        assert client.data_receive() == []
        assert len(client.data_receive()) == 1

    def test_multibyte_character_split_across_reads(self):
        """Test UTF-8 sequences cut by the read boundary survive"""
        line = MessageBuilder.bufferUpdateMessage_create("ü").json_serialize() + "\n"
        raw = line.encode("utf-8")
        cut = raw.index("ü".encode("utf-8")) + 1
        client = ClientConnection(mock_socket(raw[:cut], raw[cut:]), ("h", 1))

        client.data_receive()
        messages = client.data_receive()

        assert messages[0].payload == {"content": "ü"}

    def test_malformed_line_dropped(self, caplog):
        """Test a bad line is skipped without killing the connection"""
        good = MessageBuilder.transcriptClearMessage_create().json_serialize()
        client = ClientConnection(mock_socket(f"garbage\n{good}\n".encode("utf-8")), ("h", 1))

        messages = client.data_receive()

        assert len(messages) == 1
        assert "Dropping malformed message" in caplog.text

    def test_closed_socket_raises(self):
        """Test EOF surfaces as ConnectionError"""
        client = ClientConnection(mock_socket(b""), ("h", 1))

        with pytest.raises(ConnectionError):
            client.data_receive()

    def test_http_probe_detected(self):
        """Test a GET request marks the connection as a probe"""
        client = ClientConnection(mock_socket(b"GET /health HTTP/1.1\r\nHost: x\r\n\r\n"), ("h", 1))

        assert client.data_receive() == []
        assert client.is_http_probe
        assert client.httpRequest_isComplete()

    def test_buffer_overflow_raises(self, monkeypatch):
        """Test oversized unterminated input disconnects"""
        monkeypatch.setattr(type(settings), "MAX_BUFFER_SIZE", 8)
        client = ClientConnection(mock_socket(b"0123456789"), ("h", 1))

        with pytest.raises(ConnectionError, match="Buffer size limit"):
            client.data_receive()


class TestClientConnectionSend:
    """Test outbound queueing"""

    def test_message_written_with_newline(self):
        """Test message is framed and flushed"""
        written = bytearray()
        sock = mock_socket()

        def send(data):
            written.extend(data)
            return len(data)

        sock.send.side_effect = send
        client = ClientConnection(sock, ("h", 1))

        assert client.message_send(MessageBuilder.transcriptClearMessage_create())

        assert bytes(written).endswith(b"\n")
        assert json.loads(bytes(written))["msg_type"] == "transcriptClear"
        assert not client.hasPendingOutput()

    def test_blocked_socket_keeps_outbox(self):
        """Test unsent bytes stay queued for the next writable event"""
        sock = mock_socket()
        sock.send.side_effect = BlockingIOError()
        client = ClientConnection(sock, ("h", 1))

        assert client.message_send(MessageBuilder.transcriptClearMessage_create())
        assert client.hasPendingOutput()

    def test_full_outbox_drops_message(self, monkeypatch):
        """Test message exceeding the outbox cap is dropped for this recipient"""
        monkeypatch.setattr(type(settings), "MAX_OUTBOX_SIZE", 64)
        sock = mock_socket()
        sock.send.side_effect = BlockingIOError()
        client = ClientConnection(sock, ("h", 1))

        assert not client.message_send(MessageBuilder.bufferUpdateMessage_create("x" * 100))
        assert not client.hasPendingOutput()

    def test_broken_socket_raises(self):
        """Test hard write errors surface as ConnectionError"""
        sock = mock_socket()
        sock.send.side_effect = OSError("broken pipe")
        client = ClientConnection(sock, ("h", 1))

        with pytest.raises(ConnectionError):
            client.message_send(MessageBuilder.transcriptClearMessage_create())


class TestServerNetwork:
    """Test client list management"""

    def test_disconnect_fires_callback_once(self):
        """Test on_disconnect runs once and the client is closed"""
        network = ServerNetwork("127.0.0.1", 0)
        client = ClientConnection(mock_socket(), ("h", 1))
        network.clients.append(client)
        network.on_disconnect = Mock()

        network.client_disconnect(client)
        network.client_disconnect(client)

        network.on_disconnect.assert_called_once_with(client)
        client.socket.close.assert_called_once()

    def test_send_failure_disconnects_recipient(self):
        """Test broken recipient is dropped, others unaffected"""
        network = ServerNetwork("127.0.0.1", 0)
        broken_sock = mock_socket()
        broken_sock.send.side_effect = OSError("reset")
        broken = ClientConnection(broken_sock, ("h", 1))
        healthy = ClientConnection(mock_socket(), ("h", 2))
        sender = ClientConnection(mock_socket(), ("h", 3))
        network.clients.extend([broken, healthy, sender])

        delivered = network.messageToOthers_broadcast(
            MessageBuilder.transcriptClearMessage_create(), sender
        )

        assert delivered == 1
        assert broken not in network.clients
        assert healthy in network.clients

    def test_health_probe_answered(self):
        """Test probe receives JSON liveness and is closed"""
        network = ServerNetwork("127.0.0.1", 0)
        network.on_disconnect = Mock()
        member = ClientConnection(mock_socket(), ("h", 1))
        probe_sock = mock_socket(b"GET / HTTP/1.1\r\n\r\n")
        written = bytearray()
        probe_sock.send.side_effect = lambda data: written.extend(data) or len(data)
        probe = ClientConnection(probe_sock, ("h", 2))
        network.clients.extend([member, probe])
        handler = Mock()

        network.clientData_receive(probe, handler)

        probe_sock.sendall.assert_not_called()
        probe_sock.settimeout.assert_not_called()
        response = written.decode("utf-8")
        assert response.startswith("HTTP/1.1 200 OK")
        body = json.loads(response.split("\r\n\r\n", 1)[1])
        assert body == {"status": "ok", "connectionCount": 1}
        assert probe not in network.clients
        handler.assert_not_called()

    def test_health_response_waits_for_writable_socket(self):
        """Test a full socket send buffer keeps the probe open until the response drains"""
        network = ServerNetwork("127.0.0.1", 0)
        probe_sock = mock_socket(b"GET / HTTP/1.1\r\n\r\n")
        written = bytearray()

        def send_partial(data):
            if written:
                raise BlockingIOError()
            written.extend(data[:10])
            return 10

        probe_sock.send.side_effect = send_partial
        probe = ClientConnection(probe_sock, ("h", 2))
        network.clients.append(probe)

        network.clientData_receive(probe, Mock())

        assert probe in network.clients
        assert probe.is_closing
        assert probe.hasPendingOutput()

        probe_sock.send.side_effect = lambda data: written.extend(data) or len(data)
        network.clientOutput_flush(probe)

        assert probe not in network.clients
        assert written.decode("utf-8").startswith("HTTP/1.1 200 OK")
        assert written.decode("utf-8").endswith('"connectionCount": 0}')

    def test_handler_error_does_not_disconnect(self, caplog):
        """Test a failing handler only logs"""
        network = ServerNetwork("127.0.0.1", 0)
        line = MessageBuilder.transcriptClearMessage_create().json_serialize() + "\n"
        client = ClientConnection(mock_socket(line.encode("utf-8")), ("h", 1))
        network.clients.append(client)

        network.clientData_receive(client, Mock(side_effect=RuntimeError("boom")))

        assert client in network.clients
        assert "boom" in caplog.text

    def test_clients_count_excludes_probes(self):
        """Test probes are not counted as connections"""
        network = ServerNetwork("127.0.0.1", 0)
        probe = ClientConnection(mock_socket(), ("h", 1))
        probe.is_http_probe = True
        network.clients.extend([probe, ClientConnection(mock_socket(), ("h", 2))])

        assert network.clients_count() == 1

    def test_broadcast_to_all_skips_probes(self):
        """Test probes are excluded from broadcast"""
        network = ServerNetwork("127.0.0.1", 0)
        probe_sock = mock_socket()
        probe = ClientConnection(probe_sock, ("h", 1))
        probe.is_http_probe = True
        network.clients.append(probe)

        network.messageToAll_broadcast(Message(MessageType.TRANSCRIPT_CLEAR, {}))

        probe_sock.send.assert_not_called()
