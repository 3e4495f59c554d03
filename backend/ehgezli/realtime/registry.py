from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from ..domain.errors import UnauthenticatedError
from ..domain.identity import Identity, SubscriberKind
from .events import error_frame

logger = logging.getLogger(__name__)

WS_NORMAL_CLOSURE = 1000
WS_GOING_AWAY = 1001
WS_POLICY_VIOLATION = 1008


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = WS_NORMAL_CLOSURE, reason: Optional[str] = None) -> None: ...


@dataclass
class ConnectionInfo:
    connection: Connection
    subscriber_id: int
    subscriber_kind: SubscriberKind
    last_seen: float


class ConnectionRegistry:
    """
    Live WebSocket connections keyed by connection, annotated with the
    subscriber identity resolved at handshake.

    Created once per process (FastAPI lifespan) and injected into handlers.
    Delivery is best-effort: a failed send evicts the connection. A
    background sweep closes connections silent for two sweep intervals.
    """

    def __init__(
        self,
        *,
        sweep_interval: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")
        self.sweep_interval = sweep_interval
        self._clock = clock
        # Keyed by id() so connection objects need not be hashable.
        self._entries: dict[int, ConnectionInfo] = {}
        self._lock = asyncio.Lock()
        self._sweeper: Optional[asyncio.Task[None]] = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, connection: object) -> bool:
        return id(connection) in self._entries

    async def register(self, connection: Connection, identity: Optional[Identity]) -> ConnectionInfo:
        if identity is None:
            await _send_quietly(connection, error_frame("Authentication required"))
            await _close_quietly(connection, WS_POLICY_VIOLATION)
            raise UnauthenticatedError("connection has no verified identity")

        info = ConnectionInfo(
            connection=connection,
            subscriber_id=identity.id,
            subscriber_kind=identity.kind,
            last_seen=self._clock(),
        )
        async with self._lock:
            self._entries[id(connection)] = info
        logger.info("ws registered %s:%s (live=%d)", identity.kind, identity.id, len(self._entries))
        return info

    async def unregister(self, connection: Connection) -> bool:
        async with self._lock:
            info = self._entries.pop(id(connection), None)
        if info is not None:
            logger.info(
                "ws unregistered %s:%s (live=%d)",
                info.subscriber_kind,
                info.subscriber_id,
                len(self._entries),
            )
        return info is not None

    async def heartbeat(self, connection: Connection) -> bool:
        async with self._lock:
            info = self._entries.get(id(connection))
            if info is None:
                return False
            info.last_seen = self._clock()
        return True

    async def notify(self, message: dict[str, Any], target_id: int, target_kind: SubscriberKind) -> int:
        """Send ``message`` to every connection of the target subscriber; returns deliveries."""
        async with self._lock:
            targets = [
                info.connection
                for info in self._entries.values()
                if info.subscriber_id == target_id and info.subscriber_kind == target_kind
            ]

        delivered = 0
        for connection in targets:
            try:
                await connection.send_json(message)
            except Exception:
                logger.warning(
                    "ws send to %s:%s failed, evicting",
                    target_kind,
                    target_id,
                    exc_info=True,
                )
                await self.unregister(connection)
                await _close_quietly(connection, WS_GOING_AWAY)
                continue
            delivered += 1
        return delivered

    async def sweep(self) -> int:
        """Close and evict connections not heard from within two sweep intervals."""
        cutoff = self._clock() - 2 * self.sweep_interval
        async with self._lock:
            stale = [info for info in self._entries.values() if info.last_seen < cutoff]
            for info in stale:
                del self._entries[id(info.connection)]
        for info in stale:
            logger.info("ws heartbeat missed by %s:%s, closing", info.subscriber_kind, info.subscriber_id)
            await _close_quietly(info.connection, WS_GOING_AWAY)
        return len(stale)

    def start(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_forever(), name="ws-heartbeat-sweep")

    async def stop(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None
        async with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
        for info in entries:
            await _close_quietly(info.connection, WS_GOING_AWAY)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("ws heartbeat sweep failed")


async def _send_quietly(connection: Connection, message: dict[str, Any]) -> None:
    try:
        await connection.send_json(message)
    except Exception:
        logger.debug("ws send on closing connection failed", exc_info=True)


async def _close_quietly(connection: Connection, code: int) -> None:
    try:
        await connection.close(code=code)
    except Exception:
        # Already closed by the peer.
        logger.debug("ws close failed", exc_info=True)
