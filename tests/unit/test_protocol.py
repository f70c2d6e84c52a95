"""Unit tests for protocol message serialization and parsing"""

import json

import pytest

from talkbridge.common.types import (
    AggregateStatus,
    ClientRole,
    RegisterRequest,
    TranscriptChunk,
    TransportMode,
)
from talkbridge.protocol.message import (
    RELAYED_TYPES,
    Message,
    MessageBuilder,
    MessageParser,
    MessageType,
)


class TestMessageSerialization:
    """Test Message JSON serialization"""

    def test_serialize_deserialize_round_trip(self):
        """Test message can be serialized and deserialized"""
        msg = Message(msg_type=MessageType.BUFFER_UPDATE, payload={"content": "hello"})

        restored = Message.json_deserialize(msg.json_serialize())

        assert restored.msg_type == msg.msg_type
        assert restored.payload == msg.payload

    def test_serialize_is_single_line(self):
        """Test envelope never contains a raw newline, even for multi-line content"""
        msg = MessageBuilder.bufferUpdateMessage_create("line one\nline two")

        assert "\n" not in msg.json_serialize()

    def test_serialize_keeps_non_ascii(self):
        """Test unicode text is written as-is"""
        msg = MessageBuilder.bufferUpdateMessage_create("grüße 你好")

        assert "grüße 你好" in msg.json_serialize()

    def test_serialize_contains_msg_type(self):
        """Test serialized message contains msg_type field"""
        msg = MessageBuilder.transcriptClearMessage_create()

        assert json.loads(msg.json_serialize())["msg_type"] == "transcriptClear"

    def test_deserialize_string_payload(self):
        """Test non-object payloads survive decoding"""
        msg = Message.json_deserialize('{"msg_type": "register", "payload": "mobile"}')

        assert msg.payload == "mobile"

    def test_deserialize_missing_payload_defaults_to_empty(self):
        """Test envelope without payload decodes to an empty object"""
        msg = Message.json_deserialize('{"msg_type": "transcriptClear"}')

        assert msg.payload == {}

    def test_deserialize_unknown_type_raises(self):
        """Test unknown message type is rejected"""
        with pytest.raises(ValueError):
            Message.json_deserialize('{"msg_type": "nope", "payload": {}}')

    def test_deserialize_non_object_raises(self):
        """Test array envelope is rejected"""
        with pytest.raises(ValueError, match="JSON object"):
            Message.json_deserialize("[1, 2]")

    def test_deserialize_invalid_json_raises(self):
        """Test garbage is rejected"""
        with pytest.raises(ValueError):
            Message.json_deserialize("{not json")


class TestMessageBuilder:
    """Test MessageBuilder creates correct messages"""

    def test_register_mobile_includes_mode(self):
        """Test mobile registration carries mode"""
        msg = MessageBuilder.registerMessage_create(ClientRole.MOBILE, TransportMode.USB)

        assert msg.msg_type == MessageType.REGISTER
        assert msg.payload == {"role": "mobile", "mode": "usb"}

    def test_register_desktop_omits_mode(self):
        """Test desktop registration never sends a mode"""
        msg = MessageBuilder.registerMessage_create(ClientRole.DESKTOP, TransportMode.LAN)

        assert msg.payload == {"role": "desktop"}

    def test_transcript_chunk_wire_keys(self):
        """Test transcript chunk uses camelCase wire keys"""
        chunk = TranscriptChunk(text="hi", is_final=True, session_id="s1")
        msg = MessageBuilder.transcriptChunkMessage_create(chunk)

        assert msg.msg_type == MessageType.TRANSCRIPT_CHUNK
        assert msg.payload == {"text": "hi", "isFinal": True, "sessionId": "s1"}

    def test_transcript_chunk_without_session(self):
        """Test session id is optional"""
        msg = MessageBuilder.transcriptChunkMessage_create(TranscriptChunk(text="hi"))

        assert "sessionId" not in msg.payload
        assert msg.payload["isFinal"] is False

    def test_connection_status_payload(self):
        """Test status payload shape"""
        status = AggregateStatus(mobile=1, desktop=2, mobile_mode=TransportMode.LAN)
        msg = MessageBuilder.connectionStatusMessage_create(status)

        assert msg.msg_type == MessageType.CONNECTION_STATUS
        assert msg.payload == {"mobile": 1, "desktop": 2, "mobileMode": "lan"}

    def test_relayed_types(self):
        """Test only client events are relayed"""
        assert RELAYED_TYPES == {
            MessageType.TRANSCRIPT_CHUNK,
            MessageType.TRANSCRIPT_CLEAR,
            MessageType.BUFFER_UPDATE,
        }


class TestRegistrationParsing:
    """Test registration payload normalization"""

    def test_bare_string_role(self):
        """Test legacy string payload"""
        msg = Message(MessageType.REGISTER, "mobile")

        assert MessageParser.registration_parse(msg) == RegisterRequest(ClientRole.MOBILE)

    def test_role_object(self):
        """Test current object form"""
        msg = Message(MessageType.REGISTER, {"role": "mobile", "mode": "usb"})

        assert MessageParser.registration_parse(msg) == RegisterRequest(
            ClientRole.MOBILE, TransportMode.USB
        )

    def test_type_object(self):
        """Test older object form keyed by type"""
        msg = Message(MessageType.REGISTER, {"type": "desktop"})

        assert MessageParser.registration_parse(msg) == RegisterRequest(ClientRole.DESKTOP)

    def test_desktop_mode_ignored(self):
        """Test desktop never keeps a mode"""
        msg = Message(MessageType.REGISTER, {"role": "desktop", "mode": "usb"})

        request = MessageParser.registration_parse(msg)

        assert request is not None
        assert request.mode == TransportMode.UNKNOWN

    def test_unknown_mode_becomes_unknown(self):
        """Test unsupported mode value is normalized"""
        msg = Message(MessageType.REGISTER, {"role": "mobile", "mode": "bluetooth"})

        request = MessageParser.registration_parse(msg)

        assert request is not None
        assert request.mode == TransportMode.UNKNOWN

    @pytest.mark.parametrize("payload", ["tablet", {"role": "tablet"}, {}, None, 42, ["mobile"]])
    def test_invalid_payload_returns_none(self, payload):
        """Test malformed registrations are rejected"""
        assert MessageParser.registration_parse(Message(MessageType.REGISTER, payload)) is None


class TestPayloadParsing:
    """Test typed payload views"""

    def test_transcript_chunk_parse(self):
        """Test transcript chunk parsing"""
        msg = Message(MessageType.TRANSCRIPT_CHUNK, {"text": "a", "isFinal": True, "sessionId": "x"})

        assert MessageParser.transcriptChunk_parse(msg) == TranscriptChunk("a", True, "x")

    def test_transcript_chunk_missing_text_raises(self):
        """Test missing text is rejected"""
        with pytest.raises(ValueError):
            MessageParser.transcriptChunk_parse(Message(MessageType.TRANSCRIPT_CHUNK, {}))

    def test_buffer_content_parse(self):
        """Test buffer content parsing"""
        msg = MessageBuilder.bufferUpdateMessage_create("")

        assert MessageParser.bufferContent_parse(msg) == ""

    def test_buffer_content_non_string_raises(self):
        """Test non-string content is rejected"""
        with pytest.raises(ValueError):
            MessageParser.bufferContent_parse(Message(MessageType.BUFFER_UPDATE, {"content": 3}))

    def test_connection_status_parse(self):
        """Test status parsing tolerates unknown mode"""
        msg = Message(
            MessageType.CONNECTION_STATUS,
            {"mobile": 1, "desktop": 0, "mobileMode": "satellite"},
        )

        status = MessageParser.connectionStatus_parse(msg)

        assert status == AggregateStatus(1, 0, TransportMode.UNKNOWN)
