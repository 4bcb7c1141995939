"""
A single live WebSocket connection and its reader/writer task pair.

Each connection owns a bounded outbound queue, a one-shot ``closed`` signal
and the transport handle. Producers never write to the transport directly:
they offer pre-serialized payloads to the queue and the writer task drains
it. Teardown runs once no matter whether it is triggered by the reader, the
writer, or the registry shutting everything down.
"""

import asyncio
import threading
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from adminws.constants import (
    WS_CLOSE_TIMEOUT_SECONDS,
    WS_GOING_AWAY_CODE,
    WS_INTERNAL_ERROR_CODE,
    WS_NORMAL_CLOSURE_CODE,
)
from adminws.logging import logger
from adminws.settings import app_settings
from adminws.utils.metrics import (
    ws_dispatch_total,
    ws_messages_received_total,
    ws_messages_sent_total,
)


class ConnectionState(Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class FrameKind(Enum):
    MESSAGE = "message"
    PONG = "pong"
    DISCONNECT = "disconnect"


@dataclass(frozen=True)
class Frame:
    """Inbound frame as seen by the reader task."""

    kind: FrameKind
    data: str | bytes | None = None
    code: int | None = None


class Transport(Protocol):
    """
    Framed duplex transport handed over by the protocol upgrade layer.

    Deadlines are not part of the transport: the connection bounds every
    call with ``asyncio.wait_for``.
    """

    async def receive(self) -> Frame: ...

    async def send(self, payload: bytes) -> None: ...

    async def ping(self) -> None: ...

    async def close(self, code: int = WS_NORMAL_CLOSURE_CODE) -> None: ...


class Connection:
    """
    One physical WebSocket session of an identity.

    Attributes:
        id: Process-unique connection id generated at accept time.
        identity: Logical identity key of the owner (e.g. ``user7``).
        transport: The framed transport, released once on teardown.
        queue: Bounded FIFO of serialized outbound payloads.
        closed: One-shot signal fired when teardown starts.
        state: Current lifecycle state.
    """

    def __init__(
        self,
        identity: str,
        transport: Transport,
        *,
        connection_id: str | None = None,
        queue_size: int | None = None,
        idle_timeout: float | None = None,
        ping_interval: float | None = None,
        write_timeout: float | None = None,
    ) -> None:
        self.id = connection_id or str(uuid.uuid4())
        self.identity = identity
        self.transport = transport

        if idle_timeout is None:
            idle_timeout = app_settings.WS_IDLE_TIMEOUT_SECONDS
        if ping_interval is None:
            ping_interval = app_settings.WS_PING_INTERVAL_SECONDS
        if write_timeout is None:
            write_timeout = app_settings.WS_WRITE_TIMEOUT_SECONDS

        self.idle_timeout = idle_timeout
        self.ping_interval = ping_interval
        self.write_timeout = write_timeout

        self.connected_at = time.time()
        self._last_active = self.connected_at
        self._activity_lock = threading.Lock()

        self.queue: asyncio.Queue[bytes] = asyncio.Queue(
            maxsize=queue_size or app_settings.WS_SEND_QUEUE_SIZE
        )
        self.closed = asyncio.Event()
        self.state = ConnectionState.CONNECTING

        self._close_code = WS_NORMAL_CLOSURE_CODE
        self._teardown_started = False
        self._teardown_done = asyncio.Event()

    def __repr__(self) -> str:
        return (
            f"<Connection {self.id} identity={self.identity} "
            f"state={self.state.value}>"
        )

    @property
    def last_active(self) -> float:
        with self._activity_lock:
            return self._last_active

    def touch(self) -> None:
        """Record inbound activity (any frame or keep-alive response)."""
        with self._activity_lock:
            self._last_active = time.time()

    def snapshot(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "identity": self.identity,
            "state": self.state.value,
            "connected_at": self.connected_at,
            "last_active": self.last_active,
            "queued": self.queue.qsize(),
        }

    async def offer(self, payload: bytes, timeout: float | None = None) -> bool:
        """
        Enqueue a payload for the writer task.

        Waits at most ``timeout`` seconds for room in a full queue. A closed
        connection or a queue that stays full is a delivery failure for this
        connection only.

        Args:
            payload: Pre-serialized message.
            timeout: Bounded wait for queue space, defaults to
                ``WS_ENQUEUE_TIMEOUT_SECONDS``.

        Returns:
            True if the payload was queued.
        """
        if self.closed.is_set():
            logger.debug(
                f"Connection closed for {self.identity} (conn: {self.id}), "
                "skipping"
            )
            ws_dispatch_total.labels(result="closed").inc()
            return False

        if timeout is None:
            timeout = app_settings.WS_ENQUEUE_TIMEOUT_SECONDS

        try:
            self.queue.put_nowait(payload)
        except asyncio.QueueFull:
            try:
                await asyncio.wait_for(self.queue.put(payload), timeout=timeout)
            except TimeoutError:
                logger.warning(
                    f"Send queue timeout for {self.identity} (conn: {self.id})"
                )
                ws_dispatch_total.labels(result="dropped").inc()
                return False

        # Teardown may have freed the queue while we were waiting on it
        if self.closed.is_set():
            self._drop_pending()
            ws_dispatch_total.labels(result="closed").inc()
            return False

        ws_dispatch_total.labels(result="accepted").inc()
        return True

    async def run(self) -> None:
        """
        Run the reader and writer tasks until either of them stops.

        The first task to finish (or the ``closed`` signal firing from
        outside) tears the connection down; the sibling task is then
        cancelled and awaited.
        """
        if self.closed.is_set():
            await self.close()
            return

        reader = asyncio.create_task(
            self._read_loop(), name=f"ws-reader-{self.id}"
        )
        writer = asyncio.create_task(
            self._write_loop(), name=f"ws-writer-{self.id}"
        )
        closed_waiter = asyncio.create_task(self.closed.wait())
        tasks = (reader, writer, closed_waiter)

        try:
            # Let both loops run up to their first await
            await asyncio.sleep(0)
            if self.state is ConnectionState.CONNECTING:
                self.state = ConnectionState.ACTIVE

            await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            await self.close()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self, code: int | None = None) -> None:
        """
        Tear the connection down exactly once.

        Fires ``closed``, drops messages still waiting in the queue and
        closes the transport. Concurrent callers wait for the first one to
        finish. Transport errors are logged, never raised.
        """
        if self._teardown_started:
            await self._teardown_done.wait()
            return
        self._teardown_started = True

        self.state = ConnectionState.CLOSING
        self.closed.set()

        dropped = self._drop_pending()
        if dropped:
            logger.debug(
                f"Dropped {dropped} pending message(s) for {self.identity} "
                f"(conn: {self.id})"
            )

        try:
            await asyncio.wait_for(
                self.transport.close(code or self._close_code),
                timeout=WS_CLOSE_TIMEOUT_SECONDS,
            )
        except Exception as e:
            logger.debug(
                f"Error closing transport for {self.identity} "
                f"(conn: {self.id}): {e!r}"
            )
        finally:
            self.state = ConnectionState.CLOSED
            self._teardown_done.set()

    def _drop_pending(self) -> int:
        dropped = 0
        while True:
            try:
                self.queue.get_nowait()
            except asyncio.QueueEmpty:
                return dropped
            dropped += 1

    async def _read_loop(self) -> None:
        while not self.closed.is_set():
            try:
                frame = await asyncio.wait_for(
                    self.transport.receive(), timeout=self.idle_timeout
                )
            except TimeoutError:
                logger.info(
                    f"Idle timeout for {self.identity} (conn: {self.id})"
                )
                self._close_code = WS_GOING_AWAY_CODE
                return
            except Exception as e:
                logger.warning(
                    f"WebSocket read error for {self.identity} "
                    f"(conn: {self.id}): {e!r}"
                )
                self._close_code = WS_INTERNAL_ERROR_CODE
                return

            if frame.kind is FrameKind.DISCONNECT:
                logger.debug(
                    f"Peer closed {self.identity} (conn: {self.id}) "
                    f"with code {frame.code}"
                )
                return

            self.touch()

            if frame.kind is FrameKind.PONG:
                continue

            ws_messages_received_total.inc()
            logger.debug(
                f"Received from {self.identity} (conn: {self.id}): "
                f"{frame.data!r}"
            )

    async def _write_loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_ping = loop.time() + self.ping_interval

        while not self.closed.is_set():
            try:
                payload = await asyncio.wait_for(
                    self.queue.get(),
                    timeout=max(0.0, next_ping - loop.time()),
                )
            except TimeoutError:
                if not await self._write(self.transport.ping(), "ping"):
                    return
                next_ping = loop.time() + self.ping_interval
                continue

            if self.closed.is_set():
                return

            if not await self._write(self.transport.send(payload), "message"):
                return

            ws_messages_sent_total.inc()
            logger.debug(
                f"Message delivered to {self.identity} (conn: {self.id})"
            )

    async def _write(self, operation, what: str) -> bool:
        try:
            await asyncio.wait_for(operation, timeout=self.write_timeout)
        except TimeoutError:
            logger.warning(
                f"Write deadline exceeded ({what}) for {self.identity} "
                f"(conn: {self.id})"
            )
        except Exception as e:
            logger.warning(
                f"Error writing {what} to {self.identity} "
                f"(conn: {self.id}): {e!r}"
            )
        else:
            return True

        self._close_code = WS_INTERNAL_ERROR_CODE
        return False
