"""
Client-side sync state: shared buffer with echo suppression and transcript.

Both endpoints run the same rules. The shared buffer is last-writer-wins: a
local edit opens a short quiet window during which incoming bufferUpdate
broadcasts are discarded, so a round-tripped or near-simultaneous remote value
cannot clobber text mid-keystroke. Two edits from different ends inside the
same window lose one side. There is no ordering metadata to merge with.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from talkbridge.common.settings import settings
from talkbridge.common.types import AggregateStatus, ClientRole, TranscriptChunk, TransportMode
from talkbridge.protocol.message import Message, MessageBuilder

logger = logging.getLogger(__name__)

__all__ = [
    "EchoGuard",
    "SharedBuffer",
    "TranscriptLog",
    "SyncSession",
]

Clock = Callable[[], float]
Sender = Callable[[Message], None]


class EchoGuard:
    """Deadline flag set by local edits, read on every incoming update."""

    def __init__(self, quiet_window: float | None = None, clock: Clock = time.monotonic) -> None:
        """
        Initialize guard.

        Args:
            quiet_window:
                Suppression window in seconds after each local edit.
            clock:
                Monotonic time source.
        """
        self.quiet_window: float = (
            settings.ECHO_QUIET_WINDOW_SEC if quiet_window is None else quiet_window
        )
        self._clock: Clock = clock
        self._quiet_until: float | None = None

    def localEdit_mark(self) -> None:
        """Open (or extend) the quiet window from now."""
        self._quiet_until = self._clock() + self.quiet_window

    def isSuppressing(self) -> bool:
        """Check whether incoming updates should be discarded right now."""
        if self._quiet_until is None:
            return False
        if self._clock() < self._quiet_until:
            return True
        self._quiet_until = None
        return False


class SharedBuffer:
    """Local copy of the shared text buffer."""

    def __init__(self, guard: EchoGuard | None = None) -> None:
        """
        Initialize an empty buffer.

        Args:
            guard:
                Echo guard, created with default window when omitted.
        """
        self.content: str = ""
        self.guard: EchoGuard = guard or EchoGuard()

    def localEdit_apply(self, content: str) -> Message:
        """
        Apply a local edit and build the update to broadcast.

        Args:
            content:
                Full buffer content after the edit.

        Returns:
            bufferUpdate message carrying the new content.
        """
        self.guard.localEdit_mark()
        self.content = content
        return MessageBuilder.bufferUpdateMessage_create(content)

    def remoteUpdate_apply(self, content: str) -> bool:
        """
        Apply a broadcast value unless a local edit is in progress.

        Args:
            content:
                Content received from the relay.

        Returns:
            `True` when applied, `False` when discarded.
        """
        if self.guard.isSuppressing():
            logger.debug("Discarding remote buffer update during local edit")
            return False
        self.content = content
        return True


class TranscriptLog:
    """Accumulated final text plus one replaceable interim slot."""

    def __init__(self) -> None:
        """Initialize an empty transcript."""
        self.final_text: str = ""
        self.interim_text: str = ""

    def chunk_apply(self, chunk: TranscriptChunk) -> None:
        """
        Apply one transcript chunk.

        Args:
            chunk:
                Final chunks append on a new line and clear the interim
                slot; interim chunks replace the slot.
        """
        if chunk.is_final:
            self.final_text = f"{self.final_text}\n{chunk.text}" if self.final_text else chunk.text
            self.interim_text = ""
        else:
            self.interim_text = chunk.text

    def clear(self) -> None:
        """Empty both the accumulated log and the interim slot."""
        self.final_text = ""
        self.interim_text = ""

    @property
    def display_text(self) -> str:
        """Final text followed by the interim slot on its own line."""
        if not self.interim_text:
            return self.final_text
        if not self.final_text:
            return self.interim_text
        return f"{self.final_text}\n{self.interim_text}"


class SyncSession:
    """
    One endpoint's view of the shared session.

    Local operations update state first and then emit through the sender;
    remote operations are fed by the client dispatcher.
    """

    def __init__(
        self,
        role: ClientRole,
        sender: Sender | None = None,
        auto_fill: bool = False,
        guard: EchoGuard | None = None,
    ) -> None:
        """
        Initialize session state.

        Args:
            role:
                Role of this endpoint.
            sender:
                Callable that writes a message to the relay.
            auto_fill:
                Append each final transcript chunk to the shared buffer.
            guard:
                Echo guard for the shared buffer.
        """
        self.role: ClientRole = role
        self.sender: Sender | None = sender
        self.auto_fill: bool = auto_fill
        self.buffer: SharedBuffer = SharedBuffer(guard)
        self.transcript: TranscriptLog = TranscriptLog()
        self.peer_status: AggregateStatus = AggregateStatus(0, 0, TransportMode.UNKNOWN)

    def _emit(self, message: Message) -> None:
        if self.sender is None:
            logger.debug("Not connected, %s kept local", message.msg_type.value)
            return
        try:
            self.sender(message)
        except ConnectionError as exc:
            logger.warning("Failed to send %s: %s", message.msg_type.value, exc)

    # -- local operations ---------------------------------------------------

    def bufferEdit_apply(self, content: str) -> None:
        """
        Apply a local buffer edit and broadcast it.

        Args:
            content:
                Full buffer content after the edit.
        """
        self._emit(self.buffer.localEdit_apply(content))

    def bufferText_append(self, text: str) -> None:
        """
        Append text to the buffer on a new line as a local edit.

        Args:
            text:
                Text to append.
        """
        current: str = self.buffer.content
        self.bufferEdit_apply(f"{current}\n{text}" if current else text)

    def transcriptResult_submit(
        self,
        text: str,
        is_final: bool,
        session_id: str | None = None,
    ) -> None:
        """
        Record a recognizer result locally and broadcast it.

        Args:
            text:
                Recognized text.
            is_final:
                Whether the recognizer committed this text.
            session_id:
                Recognizer session id, when the engine has one.
        """
        chunk = TranscriptChunk(text=text, is_final=is_final, session_id=session_id)
        self.transcript.chunk_apply(chunk)
        self._emit(MessageBuilder.transcriptChunkMessage_create(chunk))
        if is_final and self.auto_fill:
            self.bufferText_append(text)

    def transcript_clear(self) -> None:
        """Clear the transcript locally and on every peer."""
        self.transcript.clear()
        self._emit(MessageBuilder.transcriptClearMessage_create())

    def transcriptToBuffer_append(self) -> bool:
        """
        Append the accumulated transcript to the shared buffer.

        Returns:
            `False` when there is no transcript text to use.
        """
        text: str = self.transcript.final_text or self.transcript.display_text
        if not text:
            return False
        self.bufferText_append(text)
        return True

    # -- remote operations --------------------------------------------------

    def bufferUpdate_receive(self, content: str) -> bool:
        """Apply a relayed buffer value, subject to echo suppression."""
        return self.buffer.remoteUpdate_apply(content)

    def transcriptChunk_receive(self, chunk: TranscriptChunk) -> None:
        """Apply a relayed transcript chunk."""
        self.transcript.chunk_apply(chunk)

    def transcriptClear_receive(self) -> None:
        """Apply a relayed transcript clear."""
        self.transcript.clear()

    def connectionStatus_receive(self, status: AggregateStatus) -> None:
        """Record the relay's aggregate status."""
        self.peer_status = status

    def connection_lost(self) -> None:
        """Forget peer status and stop emitting until reattached."""
        self.sender = None
        self.peer_status = AggregateStatus(0, 0, TransportMode.UNKNOWN)
