"""
Connection registry for the relay.

Maps live connection ids to their declared role and transport mode. The
aggregate status is never stored; every query recomputes it from the current
entries so counts cannot go stale.
"""

from __future__ import annotations

import threading
from typing import Iterator

from talkbridge.common.types import (
    AggregateStatus,
    ClientRole,
    ConnectionInfo,
    TransportMode,
)

__all__ = ["ConnectionRegistry"]


class ConnectionRegistry:
    """In-memory connection table with lock-serialized mutation."""

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._connections: dict[str, ConnectionInfo] = {}
        self._lock: threading.RLock = threading.RLock()

    def connection_add(self, connection_id: str) -> ConnectionInfo:
        """
        Insert an unregistered entry for a new connection.

        Args:
            connection_id:
                Transport-assigned connection id.

        Returns:
            The stored entry.
        """
        info = ConnectionInfo(connection_id=connection_id)
        with self._lock:
            self._connections[connection_id] = info
        return info

    def connection_upsert(
        self,
        connection_id: str,
        role: ClientRole,
        mode: TransportMode = TransportMode.UNKNOWN,
    ) -> ConnectionInfo:
        """
        Set role and mode for a connection, overwriting any prior registration.

        Desktop connections never carry a transport mode.

        Args:
            connection_id:
                Connection to register.
            role:
                Declared role.
            mode:
                Transport mode reported by a mobile endpoint.

        Returns:
            The stored entry.
        """
        if role != ClientRole.MOBILE:
            mode = TransportMode.UNKNOWN
        info = ConnectionInfo(connection_id=connection_id, role=role, mode=mode)
        with self._lock:
            self._connections[connection_id] = info
        return info

    def connection_remove(self, connection_id: str) -> ConnectionInfo | None:
        """
        Remove a connection entry.

        Args:
            connection_id:
                Connection to drop.

        Returns:
            The removed entry, or `None` when it was not present.
        """
        with self._lock:
            return self._connections.pop(connection_id, None)

    def connection_get(self, connection_id: str) -> ConnectionInfo | None:
        """Return the entry for one connection, if present."""
        with self._lock:
            return self._connections.get(connection_id)

    def mobileCount_get(self) -> int:
        """Count registered mobile connections."""
        return self._roleCount_get(ClientRole.MOBILE)

    def desktopCount_get(self) -> int:
        """Count registered desktop connections."""
        return self._roleCount_get(ClientRole.DESKTOP)

    def _roleCount_get(self, role: ClientRole) -> int:
        with self._lock:
            return sum(1 for info in self._connections.values() if info.role == role)

    def mobileMode_get(self) -> TransportMode:
        """
        Summarize mobile transport modes.

        Returns:
            `USB` if any registered mobile is on USB, else `LAN` if any is on
            LAN, else `UNKNOWN`.
        """
        with self._lock:
            modes = {
                info.mode
                for info in self._connections.values()
                if info.role == ClientRole.MOBILE
            }
        if TransportMode.USB in modes:
            return TransportMode.USB
        if TransportMode.LAN in modes:
            return TransportMode.LAN
        return TransportMode.UNKNOWN

    def status_get(self) -> AggregateStatus:
        """
        Compute the aggregate status from one consistent view of the table.

        Returns:
            Aggregate status snapshot.
        """
        with self._lock:
            return AggregateStatus(
                mobile=self.mobileCount_get(),
                desktop=self.desktopCount_get(),
                mobile_mode=self.mobileMode_get(),
            )

    def connections_iterate(self) -> Iterator[ConnectionInfo]:
        """
        Iterate over a snapshot of all entries, registered or not.

        Intended for observability logging only.
        """
        with self._lock:
            snapshot = list(self._connections.values())
        return iter(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)
