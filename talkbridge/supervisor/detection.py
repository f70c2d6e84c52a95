"""
Startup detection strategies for the relay child process.

The supervisor's state machine only asks "does this stdout line mean the relay
is up?". Matching the banner text is the default answer; anything else
(structured readiness lines, a health probe) can be swapped in behind the
same protocol.
"""

from __future__ import annotations

from typing import Protocol

from talkbridge.common.settings import settings

__all__ = ["StartupDetector", "MarkerStartupDetector"]


class StartupDetector(Protocol):
    """Decides whether a stdout line signals a finished startup."""

    def startup_detect(self, line: str) -> bool:
        """Return True when the line marks the relay as ready."""
        ...


class MarkerStartupDetector:
    """Substring match against a fixed startup marker."""

    def __init__(self, marker: str | None = None) -> None:
        """
        Initialize detector.

        Args:
            marker:
                Marker text; defaults to the relay banner marker.
        """
        self.marker: str = marker or settings.STARTUP_MARKER

    def startup_detect(self, line: str) -> bool:
        """
        Check one stdout line for the marker.

        Args:
            line:
                Raw output line.

        Returns:
            True when the marker is contained in the line.
        """
        return self.marker in line
