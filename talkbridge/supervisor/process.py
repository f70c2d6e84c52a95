"""
Relay process supervisor.

Spawns the relay as a child process and turns its unstructured output into a
status state machine:

    stopped/error --start--> starting
    starting --marker line or fallback timer--> running
    any stderr line while not running --> error
    starting/running/error --stop--> stopping
    exit: stopping -> stopped; otherwise stopped if running was seen, else error

Output is consumed on daemon reader threads so start/stop return at once.
Status, the running-seen flag and the log buffer change only under the
supervisor lock; observers receive copies.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from typing import Any, Callable, Iterable, Protocol

from talkbridge.common.lan import lanLinks_get
from talkbridge.common.settings import settings
from talkbridge.common.types import CommandResult, ServerStatus
from talkbridge.supervisor.detection import MarkerStartupDetector, StartupDetector
from talkbridge.supervisor.launch import LaunchSpec
from talkbridge.supervisor.log_buffer import ServerLogBuffer

logger = logging.getLogger(__name__)

__all__ = ["ProcessSupervisor", "timer_create"]

StatusListener = Callable[[ServerStatus], None]
LogListener = Callable[[str], None]


class TimerProtocol(Protocol):
    """One-shot deferred action."""

    def start(self) -> None:
        """Arm the timer."""
        ...

    def cancel(self) -> None:
        """Disarm the timer if it has not fired."""
        ...


def timer_create(delay: float, callback: Callable[[], None]) -> TimerProtocol:
    """
    Create a daemon one-shot timer.

    Args:
        delay:
            Seconds until the callback runs.
        callback:
            Action to run.

    Returns:
        Unstarted timer.
    """
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    return timer


class ProcessSupervisor:
    """Owns the relay child process handle, its status and its log."""

    def __init__(
        self,
        launch_spec: LaunchSpec,
        port: int = 3001,
        detector: StartupDetector | None = None,
        fallback_delay: float | None = None,
        kill_timeout: float | None = None,
        log_buffer: ServerLogBuffer | None = None,
        process_factory: Callable[..., Any] = subprocess.Popen,
        timer_factory: Callable[[float, Callable[[], None]], TimerProtocol] = timer_create,
    ) -> None:
        """
        Initialize supervisor in the stopped state.

        Args:
            launch_spec:
                How to spawn the relay.
            port:
                Relay port, used for LAN links.
            detector:
                Startup detection strategy.
            fallback_delay:
                Seconds after spawn before a live, still-starting relay is
                considered running.
            kill_timeout:
                Seconds after a stop request before a hard kill; 0 disables.
            log_buffer:
                Bounded log store.
            process_factory:
                Popen-compatible callable.
            timer_factory:
                One-shot timer factory.
        """
        self.launch_spec: LaunchSpec = launch_spec
        self.port: int = port
        self.detector: StartupDetector = detector or MarkerStartupDetector()
        self.fallback_delay: float = (
            settings.STARTUP_FALLBACK_SEC if fallback_delay is None else fallback_delay
        )
        self.kill_timeout: float = (
            settings.STOP_KILL_TIMEOUT_SEC if kill_timeout is None else kill_timeout
        )
        self.log_buffer: ServerLogBuffer = log_buffer or ServerLogBuffer()
        self._process_factory: Callable[..., Any] = process_factory
        self._timer_factory = timer_factory

        self._lock: threading.RLock = threading.RLock()
        self._process: Any = None
        self._status: ServerStatus = ServerStatus.STOPPED
        self._running_seen: bool = False
        self._fallback_timer: TimerProtocol | None = None
        self._kill_timer: TimerProtocol | None = None
        self._waiter: threading.Thread | None = None
        self._status_listeners: list[StatusListener] = []
        self._log_listeners: list[LogListener] = []

    # -- queries ------------------------------------------------------------

    def status_get(self) -> ServerStatus:
        """Return the current status."""
        with self._lock:
            return self._status

    def logs_get(self) -> list[str]:
        """Return a snapshot of retained log lines, oldest first."""
        with self._lock:
            return self.log_buffer.lines_get()

    def isProcessAlive(self) -> bool:
        """Check whether a child handle is currently held."""
        with self._lock:
            return self._process is not None

    @property
    def running_seen(self) -> bool:
        """Whether the current or last child ever reached running."""
        with self._lock:
            return self._running_seen

    def lanLinks_get(self) -> list[str]:
        """Return http links phones on the LAN can use to reach the relay."""
        return lanLinks_get(self.port)

    # -- subscriptions ------------------------------------------------------

    def statusListener_add(self, listener: StatusListener) -> Callable[[], None]:
        """
        Subscribe to status changes.

        Args:
            listener:
                Called with each new status.

        Returns:
            Callable that removes the subscription.
        """
        with self._lock:
            self._status_listeners.append(listener)

        def remove() -> None:
            with self._lock:
                if listener in self._status_listeners:
                    self._status_listeners.remove(listener)

        return remove

    def logListener_add(self, listener: LogListener) -> Callable[[], None]:
        """
        Subscribe to new log lines.

        Args:
            listener:
                Called with each timestamped line.

        Returns:
            Callable that removes the subscription.
        """
        with self._lock:
            self._log_listeners.append(listener)

        def remove() -> None:
            with self._lock:
                if listener in self._log_listeners:
                    self._log_listeners.remove(listener)

        return remove

    def _listeners_notify(self, listeners: Iterable[Callable[[Any], None]], value: Any) -> None:
        for listener in list(listeners):
            try:
                listener(value)
            except Exception as exc:
                logger.warning("Supervisor listener failed: %s", exc)

    def _status_set(self, status: ServerStatus) -> None:
        if status == ServerStatus.RUNNING:
            self._running_seen = True
        if status == self._status:
            return
        logger.info("Relay status: %s -> %s", self._status.value, status.value)
        self._status = status
        self._listeners_notify(self._status_listeners, status)

    def _log_push(self, line: str) -> None:
        formatted: str = self.log_buffer.line_append(line)
        self._listeners_notify(self._log_listeners, formatted)

    # -- commands -----------------------------------------------------------

    def server_start(self) -> CommandResult:
        """
        Spawn the relay unless one is already held.

        Returns:
            `ok=False` when already running or when the spawn fails.
        """
        with self._lock:
            if self._process is not None:
                return CommandResult(ok=False, message="Relay is already running")

            self._running_seen = False
            self._status_set(ServerStatus.STARTING)
            self._log_push("Starting relay process...")

            spec: LaunchSpec = self.launch_spec
            try:
                process = self._process_factory(
                    list(spec.argv),
                    cwd=str(spec.cwd),
                    env=dict(spec.env),
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                    bufsize=1,
                )
            except (OSError, ValueError) as exc:
                self._log_push(f"Failed to start relay: {exc}")
                self._status_set(ServerStatus.ERROR)
                return CommandResult(ok=False, message=f"Failed to start relay: {exc}")

            self._process = process
            self._streamReaders_start(process)
            self._fallback_timer = self._timer_factory(
                self.fallback_delay, lambda: self.fallbackTimer_fire(process)
            )
            self._fallback_timer.start()
            return CommandResult(ok=True)

    def server_stop(self) -> CommandResult:
        """
        Ask the relay to terminate.

        The handle is kept until the OS reports the exit.

        Returns:
            `ok=False` when nothing is running or the signal fails.
        """
        with self._lock:
            process = self._process
            if process is None:
                self._status_set(ServerStatus.STOPPED)
                return CommandResult(ok=False, message="Relay is not running")

            self._status_set(ServerStatus.STOPPING)
            self._log_push("Stopping relay process...")
            try:
                process.terminate()
            except OSError as exc:
                self._log_push(f"Failed to stop relay: {exc}")
                self._status_set(ServerStatus.ERROR)
                return CommandResult(ok=False, message="Failed to stop relay")

            if self.kill_timeout > 0:
                if self._kill_timer is not None:
                    self._kill_timer.cancel()
                self._kill_timer = self._timer_factory(
                    self.kill_timeout, lambda: self.killTimer_fire(process)
                )
                self._kill_timer.start()
            return CommandResult(ok=True)

    def shutdown(self, timeout: float | None = None) -> None:
        """
        Stop a running relay on application exit and wait for it.

        Args:
            timeout:
                Maximum seconds to wait for the exit to be observed.
        """
        with self._lock:
            has_process: bool = self._process is not None
            waiter = self._waiter
        if has_process:
            self.server_stop()
        if waiter is not None:
            waiter.join(timeout)

    def exit_wait(self, timeout: float | None = None) -> bool:
        """
        Block until the current child's exit has been handled.

        Args:
            timeout:
                Maximum seconds to wait.

        Returns:
            True when no child is held afterwards.
        """
        with self._lock:
            waiter = self._waiter
        if waiter is not None:
            waiter.join(timeout)
        return not self.isProcessAlive()

    # -- stream consumption -------------------------------------------------

    def _streamReaders_start(self, process: Any) -> None:
        readers: list[threading.Thread] = []
        for stream, handler, name in (
            (process.stdout, self.stdoutLine_handle, "relay-stdout"),
            (process.stderr, self.stderrLine_handle, "relay-stderr"),
        ):
            if stream is None:
                continue
            reader = threading.Thread(
                target=self._stream_consume,
                args=(process, stream, handler),
                name=name,
                daemon=True,
            )
            reader.start()
            readers.append(reader)

        self._waiter = threading.Thread(
            target=self._exit_wait,
            args=(process, readers),
            name="relay-waiter",
            daemon=True,
        )
        self._waiter.start()

    def _stream_consume(
        self,
        process: Any,
        stream: Iterable[str],
        handler: Callable[[Any, str], None],
    ) -> None:
        try:
            for chunk in stream:
                for line in chunk.splitlines():
                    line = line.rstrip()
                    if line:
                        handler(process, line)
        except (OSError, ValueError) as exc:
            logger.debug("Relay output stream closed: %s", exc)

    def _exit_wait(self, process: Any, readers: list[threading.Thread]) -> None:
        for reader in readers:
            reader.join()
        returncode = process.wait()
        self.processExit_handle(process, returncode)

    # -- event handlers -----------------------------------------------------

    def stdoutLine_handle(self, process: Any, line: str) -> None:
        """
        Record one stdout line and check it for the startup marker.

        Args:
            process:
                Child that produced the line.
            line:
                Output line without newline.
        """
        with self._lock:
            if process is not self._process:
                return
            self._log_push(line)
            if self._running_seen:
                return
            if self._status not in (ServerStatus.STARTING, ServerStatus.ERROR):
                return
            if self.detector.startup_detect(line):
                self._status_set(ServerStatus.RUNNING)

    def stderrLine_handle(self, process: Any, line: str) -> None:
        """
        Record one stderr line; it flips status to error unless running.

        Args:
            process:
                Child that produced the line.
            line:
                Output line without newline.
        """
        with self._lock:
            if process is not self._process:
                return
            self._log_push(f"{settings.STDERR_PREFIX}{line}")
            if self._status != ServerStatus.RUNNING:
                self._status_set(ServerStatus.ERROR)

    def fallbackTimer_fire(self, process: Any) -> None:
        """
        Promote a live, still-starting child to running.

        No-op when the child was replaced, exited, or left starting.

        Args:
            process:
                Child the timer was armed for.
        """
        with self._lock:
            if process is not self._process:
                return
            if self._status != ServerStatus.STARTING:
                return
            if process.poll() is not None:
                return
            self._status_set(ServerStatus.RUNNING)

    def killTimer_fire(self, process: Any) -> None:
        """
        Hard-kill a child that ignored the termination signal.

        Args:
            process:
                Child the timer was armed for.
        """
        with self._lock:
            if process is not self._process or process.poll() is not None:
                return
            self._log_push("Relay did not exit after termination request, killing")
            try:
                process.kill()
            except OSError as exc:
                self._log_push(f"Failed to kill relay: {exc}")

    def processExit_handle(self, process: Any, returncode: int | None) -> None:
        """
        Clear the handle and settle the final status.

        Args:
            process:
                Child that exited.
            returncode:
                Exit status reported by the OS.
        """
        with self._lock:
            if process is not self._process:
                return
            self._process = None
            for timer in (self._fallback_timer, self._kill_timer):
                if timer is not None:
                    timer.cancel()
            self._fallback_timer = None
            self._kill_timer = None

            self._log_push(f"Relay process exited (code {returncode})")
            if self._status == ServerStatus.STOPPING:
                self._status_set(ServerStatus.STOPPED)
            elif self._running_seen:
                self._status_set(ServerStatus.STOPPED)
            else:
                self._status_set(ServerStatus.ERROR)
