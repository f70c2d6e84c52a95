"""
Console front end for a sync client.

Lines typed on stdin drive the local session:

    :final TEXT     submit a committed transcript chunk
    :interim TEXT   submit a scratch transcript chunk
    :clear          clear the transcript everywhere
    :use            append the transcript to the shared buffer
    :show           print buffer, transcript and peer counts
    anything else   replace the shared buffer with the line
"""

from __future__ import annotations

import queue
import sys
import threading
from typing import TextIO

from talkbridge.client.sync import SyncSession

__all__ = ["consoleCommand_apply", "sessionSummary_format", "stdinReader_start"]


def consoleCommand_apply(line: str, session: SyncSession) -> str | None:
    """
    Apply one console line to the session.

    Args:
        line:
            Raw line without trailing newline.
        session:
            Local sync session.

    Returns:
        Text to show the user, or `None`.
    """
    command, _, argument = line.partition(" ")
    if command == ":final":
        session.transcriptResult_submit(argument, is_final=True)
        return None
    if command == ":interim":
        session.transcriptResult_submit(argument, is_final=False)
        return None
    if command == ":clear":
        session.transcript_clear()
        return None
    if command == ":use":
        if not session.transcriptToBuffer_append():
            return "Transcript is empty"
        return None
    if command == ":show":
        return sessionSummary_format(session)
    if command.startswith(":"):
        return f"Unknown command {command}"

    session.bufferEdit_apply(line)
    return None


def sessionSummary_format(session: SyncSession) -> str:
    """
    Format the visible session state.

    Args:
        session:
            Local sync session.

    Returns:
        Multi-line summary.
    """
    status = session.peer_status
    return "\n".join(
        [
            f"[peers] mobile={status.mobile} desktop={status.desktop} mode={status.mobile_mode.value}",
            "[transcript]",
            session.transcript.display_text,
            "[buffer]",
            session.buffer.content,
        ]
    )


def stdinReader_start(stream: TextIO | None = None) -> "queue.Queue[str | None]":
    """
    Read lines on a daemon thread so the network loop never blocks on input.

    Args:
        stream:
            Input stream (defaults to stdin).

    Returns:
        Queue of lines; `None` marks end of input.
    """
    source: TextIO = stream or sys.stdin
    lines: "queue.Queue[str | None]" = queue.Queue()

    def reader() -> None:
        for raw in source:
            lines.put(raw.rstrip("\r\n"))
        lines.put(None)

    threading.Thread(target=reader, name="console-stdin", daemon=True).start()
    return lines
