"""
Live bin channel hub.

Owns the set of connected clients, replays a snapshot to each new client,
translates client messages into BinStore calls, and fans the resulting
events out to every client (the sender included).

Registration plus snapshot replay, and each message dispatch
(store call plus fan-out), run under one lock. A joining client therefore
sees every bin exactly once: either in its snapshot or in a later event.
"""

import asyncio
import logging
from typing import Optional, Union

from ..bins import BinStore, StatusOutcome
from ..protocol import (
    BinStatusEvent,
    ClientLocation,
    CreateBin,
    DecodeError,
    DeleteBin,
    DeleteBinEvent,
    EditBin,
    EditBinEvent,
    ServerEvent,
    TrashBinEvent,
    UnknownMessage,
    UpdateBinStatus,
    decode,
    encode,
)
from .connection import ClientConnection

logger = logging.getLogger("ecotrack.realtime.hub")


class BroadcastHub:
    """Connection lifecycle and event fan-out for one BinStore."""

    def __init__(self, store: BinStore):
        self._store = store
        self._connections: dict[str, ClientConnection] = {}
        self._lock = asyncio.Lock()

    @property
    def store(self) -> BinStore:
        return self._store

    @property
    def connections(self) -> list[ClientConnection]:
        """Currently registered connections, in join order."""
        return list(self._connections.values())

    def __len__(self) -> int:
        return len(self._connections)

    async def connect(self, conn: ClientConnection) -> int:
        """
        Register a connection and replay the current bins to it only.

        Returns:
            Number of bins replayed.
        """
        async with self._lock:
            conn.start()
            self._connections[conn.connection_id] = conn
            bins = self._store.snapshot()
            replayed = conn.replay([encode(TrashBinEvent.from_bin(record)) for record in bins])

        logger.info(
            "Client connected: %s (%d active, %d/%d bins replayed)",
            conn.connection_id, len(self._connections), replayed, len(bins),
        )
        return replayed

    async def disconnect(self, conn: ClientConnection) -> None:
        """Unregister a connection. Safe to call more than once."""
        async with self._lock:
            removed = self._connections.pop(conn.connection_id, None)
        await conn.close()
        if removed is not None:
            logger.info(
                "Client disconnected: %s (%d active)",
                conn.connection_id, len(self._connections),
            )

    async def handle_message(
        self,
        conn: ClientConnection,
        raw: Union[str, bytes],
    ) -> Optional[ServerEvent]:
        """
        Decode one client frame, apply it, and broadcast the outcome.

        Nothing is ever sent back for rejected messages; failures are only
        logged and the connection stays open.

        Returns:
            The event that was broadcast, or None.
        """
        message = decode(raw)

        if isinstance(message, DecodeError):
            logger.warning("Dropping malformed message from %s: %s", conn.connection_id, message.reason)
            return None

        if isinstance(message, UnknownMessage):
            logger.warning("Unknown message type from %s: %s", conn.connection_id, message.kind)
            return None

        async with self._lock:
            event = self._apply(message)
            if event is not None:
                self._fan_out(event)
        return event

    async def broadcast(self, event: ServerEvent) -> int:
        """
        Send an event to every registered, writable connection.

        Returns:
            Number of connections the event was handed to.
        """
        async with self._lock:
            return self._fan_out(event)

    async def shutdown(self) -> None:
        """Close and unregister every connection."""
        async with self._lock:
            conns = list(self._connections.values())
            self._connections.clear()
        for conn in conns:
            await conn.close()
        if conns:
            logger.info("Closed %d client connection(s)", len(conns))

    def _apply(self, message) -> Optional[ServerEvent]:
        """Run the store call for one message. Caller holds the lock."""
        if isinstance(message, CreateBin):
            record = self._store.create(message.latitude, message.longitude)
            logger.info("New bin added with ID: %d", record.id)
            return TrashBinEvent.from_bin(record)

        if isinstance(message, DeleteBin):
            if not self._store.delete(message.id):
                logger.warning("Delete ignored, bin %d not found", message.id)
                return None
            logger.info("Bin deleted with ID: %d", message.id)
            return DeleteBinEvent(id=message.id)

        if isinstance(message, EditBin):
            record, matched = self._store.edit_location(
                message.old_latitude,
                message.old_longitude,
                message.new_latitude,
                message.new_longitude,
            )
            if not matched:
                logger.warning(
                    "Edit ignored, no bin at (%s, %s)",
                    message.old_latitude, message.old_longitude,
                )
                return None
            logger.info("Bin edited with ID: %d", record.id)
            return EditBinEvent.from_bin(record)

        if isinstance(message, UpdateBinStatus):
            record, outcome = self._store.update_status(message.id, message.status)
            if outcome is StatusOutcome.NOT_FOUND:
                logger.warning("Status update ignored, bin %d not found", message.id)
                return None
            if outcome is StatusOutcome.INVALID_STATUS:
                logger.warning("Status update ignored, invalid status for bin %d: %r", message.id, message.status)
                return None
            logger.info("Bin %d status updated to: %s", record.id, record.status.value)
            return BinStatusEvent.from_bin(record)

        if isinstance(message, ClientLocation):
            logger.debug("Client location: %s, %s", message.latitude, message.longitude)
            return None

        logger.warning("Unhandled message: %r", message)
        return None

    def _fan_out(self, event: ServerEvent) -> int:
        """Serialize once and hand the frame to each writable connection. Caller holds the lock."""
        frame = encode(event)
        delivered = 0
        for conn in list(self._connections.values()):
            if not conn.is_writable():
                continue
            try:
                if conn.enqueue(frame):
                    delivered += 1
            except Exception as e:
                logger.warning("Failed to queue %s for %s: %s", event.type, conn.connection_id, e)
        logger.debug("Broadcast %s to %d/%d client(s)", event.type, delivered, len(self._connections))
        return delivered
