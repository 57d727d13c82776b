"""Monitor client liveness via inbound activity."""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from coordinator.session.registry import ConnectionRegistry

HEARTBEAT_CHECK_INTERVAL = 5  # seconds between heartbeat checks
# Backgrounded browser tabs ping every 60s, so the timeout sits well above it.
HEARTBEAT_TIMEOUT = 150  # seconds before disconnecting an idle client
HEARTBEAT_CLOSE_REASON = "heartbeat_timeout"

logger = structlog.get_logger()


class HeartbeatMonitor:
    """Monitor client liveness and disconnect stale connections.

    Tracks a last-activity timestamp per connection and runs one background
    loop over the registry that closes connections which have been silent
    longer than the timeout. Closing the transport ends the receive loop, so
    cleanup goes through the normal disconnect path.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        timeout: float = HEARTBEAT_TIMEOUT,
        check_interval: float = HEARTBEAT_CHECK_INTERVAL,
    ) -> None:
        self._registry = registry
        self._timeout = timeout
        self._check_interval = check_interval
        self._last_seen: dict[str, float] = {}  # connection_id -> monotonic timestamp
        self._task: asyncio.Task[None] | None = None

    def record_connect(self, connection_id: str) -> None:
        """Record the initial activity timestamp for a new connection."""
        self._last_seen[connection_id] = time.monotonic()

    def record_disconnect(self, connection_id: str) -> None:
        """Remove activity tracking for a disconnected connection."""
        self._last_seen.pop(connection_id, None)

    def record_activity(self, connection_id: str) -> None:
        """Update the activity timestamp for a tracked connection."""
        if connection_id in self._last_seen:
            self._last_seen[connection_id] = time.monotonic()

    def last_seen(self, connection_id: str) -> float | None:
        return self._last_seen.get(connection_id)

    def start(self) -> None:
        """Start the check loop. No-op if it is already running."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._check_loop())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def close_stale(self, now: float | None = None) -> list[str]:
        """Close every connection idle for longer than the timeout. Return their ids."""
        if now is None:
            now = time.monotonic()
        closed: list[str] = []
        for connection in self._registry.connections():
            last_seen = self._last_seen.get(connection.connection_id)
            if last_seen is None or now - last_seen <= self._timeout:
                continue
            logger.info(
                "heartbeat timeout, disconnecting",
                connection_id=connection.connection_id,
                idle_seconds=round(now - last_seen, 1),
            )
            # stop re-checking while the transport winds down
            self._last_seen.pop(connection.connection_id, None)
            with contextlib.suppress(RuntimeError, OSError, ConnectionError):
                await connection.close(code=1000, reason=HEARTBEAT_CLOSE_REASON)
            closed.append(connection.connection_id)
        return closed

    async def _check_loop(self) -> None:
        """Periodically check for stale connections."""
        while True:
            await asyncio.sleep(self._check_interval)
            try:
                await self.close_stale()
            except Exception:
                logger.exception("heartbeat check failed")
