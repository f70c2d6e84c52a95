"""Common types and data structures for talkbridge"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ClientRole(Enum):
    """Role a connection declares at registration"""
    MOBILE = "mobile"
    DESKTOP = "desktop"


class TransportMode(Enum):
    """How a mobile endpoint reaches the relay"""
    USB = "usb"    # adb reverse / tethered loopback
    LAN = "lan"
    UNKNOWN = "unknown"


class ServerStatus(Enum):
    """Supervisor view of the relay child process"""
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


class RunMode(Enum):
    """How the supervisor launches the relay"""
    DEVELOPMENT = "development"
    PACKAGED = "packaged"


@dataclass(frozen=True)
class ConnectionInfo:
    """Registry entry for one live connection"""
    connection_id: str
    role: Optional[ClientRole] = None
    mode: TransportMode = TransportMode.UNKNOWN

    def isRegistered(self) -> bool:
        """Check if the connection has declared a role"""
        return self.role is not None


@dataclass(frozen=True)
class AggregateStatus:
    """Online counts derived from the registry"""
    mobile: int
    desktop: int
    mobile_mode: TransportMode

    def payload_build(self) -> dict[str, object]:
        """Wire payload for the connectionStatus event"""
        return {
            "mobile": self.mobile,
            "desktop": self.desktop,
            "mobileMode": self.mobile_mode.value,
        }


@dataclass(frozen=True)
class RegisterRequest:
    """Normalized registration payload"""
    role: ClientRole
    mode: TransportMode = TransportMode.UNKNOWN


@dataclass(frozen=True)
class TranscriptChunk:
    """One speech-to-text fragment"""
    text: str
    is_final: bool = False
    session_id: Optional[str] = None


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a supervisor start/stop command"""
    ok: bool
    message: Optional[str] = None

    def payload_build(self) -> dict[str, object]:
        """Dictionary form handed to the UI layer"""
        payload: dict[str, object] = {"ok": self.ok}
        if self.message is not None:
            payload["message"] = self.message
        return payload
