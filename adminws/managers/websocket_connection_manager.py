import asyncio
from typing import Callable, Iterable

from adminws.logging import logger
from adminws.managers.connection import Connection
from adminws.utils.metrics import ws_connections_active
from adminws.utils.rw_lock import ReadWriteLock


class ConnectionRegistry:
    """
    Registry of live WebSocket connections grouped by identity.

    An identity (``user7``, ``member10``) may hold any number of
    connections, e.g. several browser tabs. Producers push pre-serialized
    payloads by identity; the registry copies the relevant connections under
    a read lock and offers the payload to each connection's queue after the
    lock is released.

    Invariants:
        - an identity key exists iff its connection list is non-empty
        - a connection id appears at most once across the whole registry

    One registry is created per application (``app.state.registry``) and
    torn down with ``shutdown_all()`` when the process stops.
    """

    def __init__(self) -> None:
        self._connections: dict[str, list[Connection]] = {}
        self._lock = ReadWriteLock()

    async def register(self, identity: str, connection: Connection) -> None:
        """
        Adds a connection to the identity's collection.

        Args:
            identity: Logical identity key the connection belongs to.
            connection: The connection to track.
        """
        async with self._lock.write():
            if self._find_identity(connection) is not None:
                logger.debug(
                    f"Connection {connection.id} already registered, ignoring"
                )
                return

            self._connections.setdefault(identity, []).append(connection)
            count = len(self._connections[identity])

        ws_connections_active.inc()
        logger.debug(
            f"Client added - identity: {identity}, conn: {connection.id}, "
            f"total connections for identity: {count}"
        )

    async def unregister(self, connection: Connection) -> None:
        """
        Removes a connection by id; no-op when it is not tracked.

        The identity key is removed once its last connection is gone.
        """
        async with self._lock.write():
            identity = self._find_identity(connection)
            if identity is None:
                return

            conns = self._connections[identity]
            conns[:] = [c for c in conns if c.id != connection.id]
            remaining = len(conns)
            if not conns:
                del self._connections[identity]

        ws_connections_active.dec()
        logger.debug(
            f"Client removed - identity: {identity}, conn: {connection.id}, "
            f"remaining connections: {remaining}"
        )

    def _find_identity(self, connection: Connection) -> str | None:
        for identity, conns in self._connections.items():
            if any(c.id == connection.id for c in conns):
                return identity
        return None

    async def dispatch_to_identity(self, identity: str, payload: bytes) -> int:
        """
        Offers a payload to every connection of one identity.

        Args:
            identity: Target identity key.
            payload: Pre-serialized message.

        Returns:
            Number of connections whose queue accepted the payload.
        """
        async with self._lock.read():
            connections = list(self._connections.get(identity, ()))

        if not connections:
            logger.debug(f"No connections found for {identity}")
            return 0

        return await self._offer_all(connections, payload)

    async def dispatch_to_matching(
        self, predicate: Callable[[str], bool], payload: bytes
    ) -> int:
        """
        Offers a payload to every connection whose identity matches.

        The matching connections are taken from one consistent snapshot of
        the registry before any payload is queued.

        Args:
            predicate: Called with each identity key.
            payload: Pre-serialized message.

        Returns:
            Number of connections whose queue accepted the payload.
        """
        async with self._lock.read():
            connections = [
                conn
                for identity, conns in self._connections.items()
                if predicate(identity)
                for conn in conns
            ]

        if not connections:
            return 0

        return await self._offer_all(connections, payload)

    async def dispatch_to_many(
        self, identities: Iterable[str], payload: bytes
    ) -> int:
        """Dispatches to each identity in turn and returns the summed count."""
        sent = 0
        for identity in identities:
            sent += await self.dispatch_to_identity(identity, payload)
        return sent

    async def _offer_all(
        self, connections: list[Connection], payload: bytes
    ) -> int:
        sent = 0
        for connection in connections:
            if await connection.offer(payload):
                sent += 1
                logger.debug(
                    f"Message queued for {connection.identity} "
                    f"(conn: {connection.id})"
                )
        return sent

    async def enumerate_identities(self) -> set[str]:
        async with self._lock.read():
            return set(self._connections)

    async def enumerate_connections(self) -> dict[str, list[str]]:
        """
        Returns identity -> connection ids, in registration order.

        The result is a copy; it never exposes the live collections.
        """
        async with self._lock.read():
            return {
                identity: [c.id for c in conns]
                for identity, conns in self._connections.items()
            }

    async def connection_count(self, identity: str) -> int:
        async with self._lock.read():
            return len(self._connections.get(identity, ()))

    async def total_connections(self) -> int:
        async with self._lock.read():
            return sum(len(conns) for conns in self._connections.values())

    async def shutdown_all(self) -> None:
        """
        Closes every tracked connection and empties the registry.

        The map is cleared under the write lock, so dispatches issued after
        this call starts see an empty registry. Transports are closed after
        the lock is released, concurrently.
        """
        async with self._lock.write():
            connections = [
                conn for conns in self._connections.values() for conn in conns
            ]
            self._connections.clear()

        await asyncio.gather(*(conn.close() for conn in connections))

        for connection in connections:
            ws_connections_active.dec()
            logger.debug(
                f"Closed connection for {connection.identity} "
                f"(conn: {connection.id})"
            )

        logger.info(f"All WebSocket connections closed ({len(connections)})")
