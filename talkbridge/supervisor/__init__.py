"""Desktop-side relay supervision: launch, status detection and logs."""

from talkbridge.supervisor.detection import MarkerStartupDetector, StartupDetector
from talkbridge.supervisor.launch import LaunchSpec, launchSpec_resolve, runMode_resolve
from talkbridge.supervisor.log_buffer import ServerLogBuffer
from talkbridge.supervisor.process import ProcessSupervisor

__all__ = [
    "LaunchSpec",
    "MarkerStartupDetector",
    "ProcessSupervisor",
    "ServerLogBuffer",
    "StartupDetector",
    "launchSpec_resolve",
    "runMode_resolve",
]
