"""
Client message-dispatch policies.

This module translates relay messages into sync-session updates. Malformed
payloads are logged and dropped; they never reach the session.
"""

from __future__ import annotations

import logging

from talkbridge.client.sync import SyncSession
from talkbridge.protocol.message import Message, MessageParser, MessageType

logger = logging.getLogger(__name__)

__all__ = [
    "serverMessage_handle",
    "bufferMessage_handle",
    "transcriptMessage_handle",
    "statusMessage_handle",
]


def serverMessage_handle(message: Message, session: SyncSession) -> None:
    """
    Dispatch a single relay message to the proper handler.

    Args:
        message:
            Incoming protocol message.
        session:
            Local sync session.
    """
    if message.msg_type == MessageType.BUFFER_UPDATE:
        bufferMessage_handle(message, session)
        return
    if message.msg_type in (MessageType.TRANSCRIPT_CHUNK, MessageType.TRANSCRIPT_CLEAR):
        transcriptMessage_handle(message, session)
        return
    if message.msg_type == MessageType.CONNECTION_STATUS:
        statusMessage_handle(message, session)
        return

    logger.debug("Ignoring %s from relay", message.msg_type.value)


def bufferMessage_handle(message: Message, session: SyncSession) -> None:
    """
    Handle incoming shared-buffer update.

    Args:
        message:
            bufferUpdate message.
        session:
            Local sync session.
    """
    try:
        content: str = MessageParser.bufferContent_parse(message)
    except ValueError as exc:
        logger.warning("Dropping buffer update: %s", exc)
        return

    if session.bufferUpdate_receive(content):
        logger.debug("Buffer updated (%s chars)", len(content))


def transcriptMessage_handle(message: Message, session: SyncSession) -> None:
    """
    Handle incoming transcript chunk or clear.

    Args:
        message:
            transcriptChunk or transcriptClear message.
        session:
            Local sync session.
    """
    if message.msg_type == MessageType.TRANSCRIPT_CLEAR:
        session.transcriptClear_receive()
        logger.info("Transcript cleared by peer")
        return

    try:
        chunk = MessageParser.transcriptChunk_parse(message)
    except ValueError as exc:
        logger.warning("Dropping transcript chunk: %s", exc)
        return
    session.transcriptChunk_receive(chunk)
    logger.debug("Transcript %s: %s", "final" if chunk.is_final else "interim", chunk.text)


def statusMessage_handle(message: Message, session: SyncSession) -> None:
    """
    Handle aggregate connection status.

    Args:
        message:
            connectionStatus message.
        session:
            Local sync session.
    """
    try:
        status = MessageParser.connectionStatus_parse(message)
    except (AttributeError, TypeError, ValueError) as exc:
        logger.warning("Dropping connection status: %s", exc)
        return
    session.connectionStatus_receive(status)
    logger.info(
        "Peers online: mobile=%s, desktop=%s, mobileMode=%s",
        status.mobile,
        status.desktop,
        status.mobile_mode.value,
    )
