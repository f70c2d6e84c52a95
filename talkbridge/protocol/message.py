"""Network protocol messages for talkbridge communication"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from talkbridge.common.types import (
    AggregateStatus,
    ClientRole,
    RegisterRequest,
    TranscriptChunk,
    TransportMode,
)


class MessageType(Enum):
    """Types of protocol messages"""

    REGISTER = "register"
    TRANSCRIPT_CHUNK = "transcriptChunk"
    TRANSCRIPT_CLEAR = "transcriptClear"
    BUFFER_UPDATE = "bufferUpdate"
    CONNECTION_STATUS = "connectionStatus"


RELAYED_TYPES = frozenset(
    {
        MessageType.TRANSCRIPT_CHUNK,
        MessageType.TRANSCRIPT_CLEAR,
        MessageType.BUFFER_UPDATE,
    }
)
"""Event kinds the relay fans out verbatim to every other connection"""


@dataclass
class Message:
    """Base protocol message

    The payload is kept as whatever JSON value arrived. Relayed events are
    forwarded untouched; typed views are produced by MessageParser.
    """

    msg_type: MessageType
    payload: Any

    def json_serialize(self) -> str:
        """
        Serialize message to JSON string

        Returns:
            One-line JSON envelope.
        """
        data = {"msg_type": self.msg_type.value, "payload": self.payload}
        return json.dumps(data, ensure_ascii=False)

    @staticmethod
    def json_deserialize(data: str) -> "Message":
        """
        Deserialize message from JSON string

        Args:
            data: JSON string

        Returns:
            Deserialized Message object

        Raises:
            ValueError: If the envelope is not an object or the type is unknown
        """
        parsed = json.loads(data)
        if not isinstance(parsed, dict):
            raise ValueError("Message envelope must be a JSON object")
        msg_type = MessageType(parsed["msg_type"])
        payload = parsed.get("payload", {})
        return Message(msg_type=msg_type, payload=payload)


class MessageBuilder:
    """Builds protocol messages from events and data"""

    @staticmethod
    def registerMessage_create(role: ClientRole, mode: Optional[TransportMode] = None) -> Message:
        """
        Create registration message

        Args:
            role: Declared endpoint role.
            mode: Transport mode, sent only for mobile endpoints.

        Returns:
            Register message.
        """
        payload: Dict[str, Any] = {"role": role.value}
        if role == ClientRole.MOBILE and mode is not None:
            payload["mode"] = mode.value
        return Message(msg_type=MessageType.REGISTER, payload=payload)

    @staticmethod
    def transcriptChunkMessage_create(chunk: TranscriptChunk) -> Message:
        """
        Create transcript chunk message

        Args:
            chunk: Transcript fragment.

        Returns:
            Transcript chunk message.
        """
        payload: Dict[str, Any] = {"text": chunk.text, "isFinal": chunk.is_final}
        if chunk.session_id is not None:
            payload["sessionId"] = chunk.session_id
        return Message(msg_type=MessageType.TRANSCRIPT_CHUNK, payload=payload)

    @staticmethod
    def transcriptClearMessage_create() -> Message:
        """Create transcript clear message"""
        return Message(msg_type=MessageType.TRANSCRIPT_CLEAR, payload={})

    @staticmethod
    def bufferUpdateMessage_create(content: str) -> Message:
        """
        Create shared buffer update message

        Args:
            content: Full buffer content after the edit.

        Returns:
            Buffer update message.
        """
        return Message(msg_type=MessageType.BUFFER_UPDATE, payload={"content": content})

    @staticmethod
    def connectionStatusMessage_create(status: AggregateStatus) -> Message:
        """
        Create aggregate connection status message

        Args:
            status: Snapshot derived from the registry.

        Returns:
            Connection status message.
        """
        return Message(msg_type=MessageType.CONNECTION_STATUS, payload=status.payload_build())


class MessageParser:
    """Parses protocol messages into typed values"""

    @staticmethod
    def registration_parse(msg: Message) -> Optional[RegisterRequest]:
        """
        Normalize a registration payload

        Accepted shapes:
            "mobile"                            legacy bare role
            {"role": "mobile", "mode": "usb"}   current form
            {"type": "mobile", "mode": "usb"}   older object form

        Args:
            msg: Register message

        Returns:
            RegisterRequest, or None when the role is missing or unknown
        """
        payload = msg.payload
        mode_raw: Any = None
        if isinstance(payload, str):
            role_raw: Any = payload
        elif isinstance(payload, dict):
            role_raw = payload.get("role", payload.get("type"))
            mode_raw = payload.get("mode")
        else:
            return None

        try:
            role = ClientRole(role_raw)
        except ValueError:
            return None

        # Only mobile endpoints report a transport mode
        mode = TransportMode.UNKNOWN
        if role == ClientRole.MOBILE and mode_raw is not None:
            try:
                mode = TransportMode(mode_raw)
            except ValueError:
                mode = TransportMode.UNKNOWN

        return RegisterRequest(role=role, mode=mode)

    @staticmethod
    def transcriptChunk_parse(msg: Message) -> TranscriptChunk:
        """
        Parse transcript chunk from message

        Args:
            msg: Protocol message

        Returns:
            TranscriptChunk object

        Raises:
            ValueError: If the payload has no text
        """
        payload = msg.payload
        if not isinstance(payload, dict) or not isinstance(payload.get("text"), str):
            raise ValueError("transcriptChunk payload must contain text")
        session_id = payload.get("sessionId")
        return TranscriptChunk(
            text=payload["text"],
            is_final=bool(payload.get("isFinal", False)),
            session_id=session_id if isinstance(session_id, str) else None,
        )

    @staticmethod
    def bufferContent_parse(msg: Message) -> str:
        """
        Parse shared buffer content from message

        Args:
            msg: Protocol message

        Returns:
            Buffer content

        Raises:
            ValueError: If the payload has no string content
        """
        payload = msg.payload
        if not isinstance(payload, dict) or not isinstance(payload.get("content"), str):
            raise ValueError("bufferUpdate payload must contain content")
        return payload["content"]

    @staticmethod
    def connectionStatus_parse(msg: Message) -> AggregateStatus:
        """
        Parse aggregate status from message

        Args:
            msg: Protocol message

        Returns:
            AggregateStatus object
        """
        payload = msg.payload
        mode_raw = payload.get("mobileMode", TransportMode.UNKNOWN.value)
        try:
            mobile_mode = TransportMode(mode_raw)
        except ValueError:
            mobile_mode = TransportMode.UNKNOWN
        return AggregateStatus(
            mobile=int(payload.get("mobile", 0)),
            desktop=int(payload.get("desktop", 0)),
            mobile_mode=mobile_mode,
        )
