"""Application settings singleton - single source of truth for configuration

This module provides a singleton Settings class that consolidates:
1. Protocol-level constants (must match between relay and clients)
2. Application constants (timing windows, buffer caps, etc.)
3. Runtime configuration from config.yml

Usage:
    from talkbridge.common.settings import settings

    # Initialize once at startup with loaded config
    config = ConfigLoader.config_load()
    settings.initialize(config)

    # Use anywhere in the application
    guard = EchoGuard(quiet_window=settings.ECHO_QUIET_WINDOW_SEC)
"""

from typing import Optional

from talkbridge.common.config import Config


class Settings:
    """Singleton settings manager combining config.yml and protocol constants

    The singleton pattern ensures all parts of the application use the same
    configuration values and protocol constants.
    """

    _instance: Optional["Settings"] = None

    def __new__(cls) -> "Settings":
        """Ensure only one Settings instance exists"""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """Initialize settings singleton (only runs once)"""
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._config: Optional[Config] = None

    def initialize(self, config: Config) -> None:
        """
        Initialize with loaded configuration

        Args:
            config: Loaded application configuration.
        """
        self._config = config

    # =========================================================================
    # Protocol Constants
    # =========================================================================

    MAX_BUFFER_SIZE: int = 1024 * 1024
    """Cap on buffered inbound bytes per connection before it is dropped"""

    MAX_OUTBOX_SIZE: int = 1024 * 1024
    """Cap on queued outbound bytes per connection

    A broadcast that would push a recipient past this cap is dropped for that
    recipient only. The relay never retries.
    """

    RECV_CHUNK_SIZE: int = 4096

    # =========================================================================
    # Sync Client Constants
    # =========================================================================

    ECHO_QUIET_WINDOW_SEC: float = 0.3
    """How long incoming bufferUpdate broadcasts are ignored after a local edit

    Measured from the edit itself on a monotonic clock. Concurrent edits from
    both ends inside the window lose one side (last writer wins).
    """

    CLIENT_POLL_INTERVAL_SEC: float = 0.05

    # =========================================================================
    # Supervisor Constants
    # =========================================================================

    STARTUP_MARKER: str = "Sync relay started"
    """Substring of the relay banner that marks a finished startup"""

    STARTUP_FALLBACK_SEC: float = 1.5
    """Delay after spawn at which a still-starting live relay is promoted to running"""

    STOP_KILL_TIMEOUT_SEC: float = 5.0
    """Grace period after SIGTERM before the relay is hard-killed"""

    LOG_CAPACITY: int = 500
    """Number of most-recent relay log lines retained by the supervisor"""

    STDERR_PREFIX: str = "[stderr] "

    # =========================================================================
    # Runtime Configuration Access
    # =========================================================================

    @property
    def config(self) -> Config:
        """
        Get loaded configuration object

        Returns:
            Loaded configuration.

        Raises:
            RuntimeError: If initialize() has not been called.
        """
        if self._config is None:
            raise RuntimeError("Settings not initialized. Call settings.initialize(config) first.")
        return self._config


# Global singleton instance
settings = Settings()
"""Global settings singleton instance

Import this anywhere in the application:
    from talkbridge.common.settings import settings
"""
