"""Broadcast hub — in-process fan-out of catalog events to live clients.

Learn: Every browser tab holding the storefront open has one
ClientConnection. The hub owns the registry of those connections and is
the only thing allowed to add or remove entries.

Delivery model:
- broadcast() snapshots the registry under a lock and *enqueues* the
  message on each connection's bounded queue. It never awaits socket I/O,
  so one slow tab cannot stall the fan-out.
- Each connection has its own writer task that drains its queue in order
  and sends with a timeout. Queue order = broadcast order, so every client
  sees events FIFO.
- Best effort: no acks, no retries, no replay. A full queue, a send error,
  or a send timeout drops the connection. The client reconnects and reloads
  its listing.

Connection lifecycle: connecting → open → closed. Closed is terminal.
"""

import asyncio
import enum
import uuid
from typing import Awaitable, Callable, Optional, Protocol

import structlog

from vitrine.events.domain import DomainEvent, encode

logger = structlog.get_logger()


class DeliveryFailure(Exception):
    """A single connection could not take a message. Never leaves the hub."""


class Transport(Protocol):
    """The send side of a client socket (Starlette's WebSocket fits)."""

    async def send_text(self, data: str) -> None: ...


class ConnectionState(str, enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class ClientConnection:
    """One live realtime subscriber with its own ordered outbound queue."""

    def __init__(
        self,
        transport: Transport,
        *,
        queue_size: int = 100,
        send_timeout: float = 5.0,
    ):
        self.handle = uuid.uuid4().hex
        self.state = ConnectionState.CONNECTING
        self._transport = transport
        self._send_timeout = send_timeout
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_size)
        self._writer: Optional[asyncio.Task] = None
        self._closed = asyncio.Event()

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def enqueue(self, message: str) -> None:
        """Queue a message for delivery. Raises DeliveryFailure if it can't."""
        if not self.is_open:
            raise DeliveryFailure(f"connection {self.handle} is {self.state.value}")
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            raise DeliveryFailure(
                f"connection {self.handle} outbound queue full ({self._queue.maxsize})"
            )

    def start(self, on_failure: Callable[[str], Awaitable[None]]) -> None:
        if self.state != ConnectionState.CONNECTING:
            raise ValueError(
                f"Cannot open connection {self.handle} in state {self.state.value}"
            )
        self.state = ConnectionState.OPEN
        self._writer = asyncio.create_task(
            self._write_loop(on_failure), name=f"ws-writer-{self.handle[:8]}"
        )

    async def _write_loop(self, on_failure: Callable[[str], Awaitable[None]]) -> None:
        try:
            while True:
                message = await self._queue.get()
                try:
                    await self._send(message)
                finally:
                    self._queue.task_done()
        except DeliveryFailure as e:
            logger.warning(
                "realtime.delivery_failed", handle=self.handle, error=str(e)
            )
            await on_failure(self.handle)

    async def _send(self, message: str) -> None:
        try:
            await asyncio.wait_for(
                self._transport.send_text(message), timeout=self._send_timeout
            )
        except asyncio.TimeoutError:
            raise DeliveryFailure(
                f"send timed out after {self._send_timeout}s"
            )
        except Exception as e:
            raise DeliveryFailure(f"{type(e).__name__}: {e}") from e

    def close(self) -> None:
        """Mark closed, stop the writer, and drop anything still queued."""
        if self.state == ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED
        if self._writer is not None and self._writer is not asyncio.current_task():
            self._writer.cancel()
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._queue.task_done()
        self._closed.set()

    async def join(self) -> None:
        """Wait until every queued message has been sent or discarded."""
        await self._queue.join()

    async def wait_closed(self) -> None:
        await self._closed.wait()


class BroadcastHub:
    """Registry of open client connections plus event fan-out."""

    def __init__(self) -> None:
        self._connections: dict[str, ClientConnection] = {}
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def handles(self) -> list[str]:
        return list(self._connections)

    async def register(self, connection: ClientConnection) -> str:
        """Open the connection and start delivering to it. Returns its handle."""
        async with self._lock:
            connection.start(on_failure=self.unregister)
            self._connections[connection.handle] = connection
            total = len(self._connections)
        logger.info(
            "realtime.connection_registered",
            handle=connection.handle,
            connections=total,
        )
        return connection.handle

    async def unregister(self, handle: str) -> None:
        """Remove a connection. Unknown or already-removed handles are a no-op."""
        async with self._lock:
            connection = self._connections.pop(handle, None)
            total = len(self._connections)
        if connection is None:
            return
        connection.close()
        logger.info(
            "realtime.connection_unregistered", handle=handle, connections=total
        )

    async def broadcast(self, event: DomainEvent) -> int:
        """Deliver one event to every connection registered right now.

        Returns how many connections accepted it. Connections that could not
        take the message are dropped; the caller never sees their failure.
        """
        message = encode(event)
        delivered = 0
        dropped: list[ClientConnection] = []

        async with self._lock:
            for connection in list(self._connections.values()):
                try:
                    connection.enqueue(message)
                    delivered += 1
                except DeliveryFailure as e:
                    logger.warning(
                        "realtime.delivery_failed",
                        handle=connection.handle,
                        event_type=event.type,
                        error=str(e),
                    )
                    self._connections.pop(connection.handle, None)
                    dropped.append(connection)

        for connection in dropped:
            connection.close()

        logger.info(
            "realtime.broadcast",
            event_type=event.type,
            product_id=str(event.product_id),
            delivered=delivered,
            dropped=len(dropped),
        )
        return delivered

    async def send_to(self, handle: str, message: str) -> bool:
        """Queue a direct reply (e.g. pong) behind any pending broadcasts."""
        async with self._lock:
            connection = self._connections.get(handle)
            if connection is None:
                return False
            try:
                connection.enqueue(message)
                return True
            except DeliveryFailure:
                self._connections.pop(handle, None)
        connection.close()
        return False

    async def close_all(self) -> None:
        """Drop every connection (application shutdown)."""
        async with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
        for connection in connections:
            connection.close()
        if connections:
            logger.info("realtime.hub_closed", connections=len(connections))
