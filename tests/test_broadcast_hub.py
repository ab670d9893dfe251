"""Tests for the live channel: ClientConnection buffering and BroadcastHub dispatch.

Covers:
- snapshot replay on join (count, content, order, deleted bins excluded)
- dispatch of every client message kind and the resulting broadcasts
- silent drops for malformed, unknown, not-found and invalid messages
- fan-out isolation (non-writable, failing and stalled clients)
"""

import asyncio
import json
import logging

import pytest

from ecotrack.bins import BinStatus, BinStore
from ecotrack.protocol import DeleteBinEvent, TrashBinEvent
from ecotrack.realtime import BroadcastHub, ClientConnection


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeTransport:
    """In-memory transport recording every frame written to it."""

    def __init__(self, *, fail: bool = False, block: bool = False):
        self.sent: list[str] = []
        self.open = True
        self.fail = fail
        self.block = block
        self.close_code = None

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise ConnectionResetError("connection reset by peer")
        if self.block:
            await asyncio.Event().wait()
        self.sent.append(data)

    def is_open(self) -> bool:
        return self.open

    async def close(self, code: int = 1000, reason=None) -> None:
        self.open = False
        self.close_code = code

    def frames(self) -> list[dict]:
        return [json.loads(f) for f in self.sent]


async def _join(hub: BroadcastHub, transport: FakeTransport | None = None, **kwargs) -> ClientConnection:
    conn = ClientConnection(transport or FakeTransport(), **kwargs)
    await hub.connect(conn)
    return conn


async def _settle(*conns: ClientConnection) -> None:
    for conn in conns:
        await conn.flush()


def _create(lat: float, lon: float) -> str:
    return json.dumps({"type": "trashbin", "latitude": lat, "longitude": lon})


# ---------------------------------------------------------------------------
# Snapshot on join
# ---------------------------------------------------------------------------


class TestSnapshotOnJoin:
    """connect(): replay of current bins to the new client only."""

    @pytest.mark.asyncio
    async def test_empty_store_sends_nothing(self):
        hub = BroadcastHub(BinStore())
        conn = await _join(hub)
        await _settle(conn)
        assert conn.transport.sent == []
        assert len(hub) == 1
        await hub.shutdown()

    @pytest.mark.asyncio
    async def test_replays_current_bins_in_order(self):
        store = BinStore()
        store.create(1.0, 1.0)
        store.create(2.0, 2.0)
        store.create(3.0, 3.0)
        store.delete(2)
        store.update_status(3, "half")

        hub = BroadcastHub(store)
        conn = await _join(hub)
        await _settle(conn)

        assert conn.transport.frames() == [
            {"type": "trashbin", "id": 1, "latitude": 1.0, "longitude": 1.0, "status": "empty"},
            {"type": "trashbin", "id": 3, "latitude": 3.0, "longitude": 3.0, "status": "half"},
        ]
        await hub.shutdown()

    @pytest.mark.asyncio
    async def test_snapshot_larger_than_send_queue(self):
        store = BinStore()
        for i in range(300):
            store.create(float(i), 0.0)

        hub = BroadcastHub(store)
        conn = ClientConnection(FakeTransport())
        replayed = await hub.connect(conn)
        await _settle(conn)

        assert replayed == 300
        assert not conn.closed
        assert [f["id"] for f in conn.transport.frames()] == list(range(1, 301))
        await hub.shutdown()

    @pytest.mark.asyncio
    async def test_live_headroom_kept_on_top_of_snapshot(self):
        store = BinStore()
        for i in range(10):
            store.create(float(i), 0.0)

        hub = BroadcastHub(store)
        conn = ClientConnection(FakeTransport(), queue_size=2)
        assert await hub.connect(conn) == 10

        # the writer has not run yet, so the snapshot is still buffered
        assert await hub.broadcast(DeleteBinEvent(id=1)) == 1
        assert await hub.broadcast(DeleteBinEvent(id=2)) == 1
        assert not conn.closed
        await _settle(conn)
        assert len(conn.transport.sent) == 12

        await hub.shutdown()

    @pytest.mark.asyncio
    async def test_connect_returns_frames_queued(self):
        store = BinStore()
        store.create(1.0, 1.0)
        hub = BroadcastHub(store)
        transport = FakeTransport()
        transport.open = False
        assert await hub.connect(ClientConnection(transport)) == 0
        await hub.shutdown()

    @pytest.mark.asyncio
    async def test_join_is_not_broadcast_to_others(self):
        store = BinStore()
        store.create(1.0, 1.0)
        hub = BroadcastHub(store)
        first = await _join(hub)
        await _settle(first)
        second = await _join(hub)
        await _settle(first, second)

        assert len(first.transport.sent) == 1
        assert len(second.transport.sent) == 1
        await hub.shutdown()

    @pytest.mark.asyncio
    async def test_snapshot_precedes_later_events(self):
        store = BinStore()
        store.create(1.0, 1.0)
        hub = BroadcastHub(store)
        conn = await _join(hub)
        await hub.handle_message(conn, _create(2.0, 2.0))
        await _settle(conn)

        assert [f["id"] for f in conn.transport.frames()] == [1, 2]
        await hub.shutdown()


# ---------------------------------------------------------------------------
# Dispatch scenarios
# ---------------------------------------------------------------------------


class TestDispatch:
    """handle_message(): store calls and broadcasts per message kind."""

    @pytest.mark.asyncio
    async def test_full_lifecycle_scenario(self):
        store = BinStore()
        hub = BroadcastHub(store)
        sender = await _join(hub)
        watcher = await _join(hub)

        # create
        event = await hub.handle_message(sender, _create(10.0, 20.0))
        assert isinstance(event, TrashBinEvent)
        await _settle(sender, watcher)
        expected = {"type": "trashbin", "id": 1, "latitude": 10.0, "longitude": 20.0, "status": "empty"}
        assert sender.transport.frames() == [expected]
        assert watcher.transport.frames() == [expected]

        # status update
        await hub.handle_message(sender, '{"type": "updatebinstatus", "id": 1, "status": "full"}')
        await _settle(watcher)
        assert watcher.transport.frames()[-1] == {
            "type": "binstatus", "id": 1, "status": "full", "latitude": 10.0, "longitude": 20.0,
        }

        # status update for a missing bin
        assert await hub.handle_message(sender, '{"type": "updatebinstatus", "id": 99, "status": "full"}') is None

        # edit
        edit = json.dumps({
            "type": "editbin",
            "oldLatitude": 10.0, "oldLongitude": 20.0,
            "newLatitude": 11.0, "newLongitude": 21.0,
        })
        await hub.handle_message(watcher, edit)
        await _settle(sender)
        assert sender.transport.frames()[-1] == {
            "type": "editbin", "id": 1, "latitude": 11.0, "longitude": 21.0, "status": "full",
        }

        # same edit again, old coordinates now stale
        assert await hub.handle_message(watcher, edit) is None

        # delete
        await hub.handle_message(sender, '{"type": "deletebin", "id": 1}')
        await _settle(sender, watcher)
        assert watcher.transport.frames()[-1] == {"type": "deletebin", "id": 1}

        assert len(sender.transport.sent) == 4
        assert len(watcher.transport.sent) == 4

        late = await _join(hub)
        await _settle(late)
        assert late.transport.sent == []
        await hub.shutdown()

    @pytest.mark.asyncio
    async def test_delete_missing_bin_not_broadcast(self):
        hub = BroadcastHub(BinStore())
        conn = await _join(hub)
        assert await hub.handle_message(conn, '{"type": "deletebin", "id": 5}') is None
        await _settle(conn)
        assert conn.transport.sent == []
        await hub.shutdown()

    @pytest.mark.asyncio
    async def test_invalid_status_not_broadcast_and_logged(self, caplog):
        store = BinStore()
        store.create(1.0, 1.0)
        hub = BroadcastHub(store)
        conn = await _join(hub)

        with caplog.at_level(logging.WARNING, logger="ecotrack.realtime.hub"):
            result = await hub.handle_message(conn, '{"type": "updatebinstatus", "id": 1, "status": "invalid"}')

        assert result is None
        assert "invalid status" in caplog.text
        assert store.get(1).status is BinStatus.EMPTY
        await _settle(conn)
        assert len(conn.transport.sent) == 1  # snapshot only
        await hub.shutdown()

    @pytest.mark.asyncio
    async def test_location_has_no_effect(self):
        store = BinStore()
        hub = BroadcastHub(store)
        conn = await _join(hub)
        assert await hub.handle_message(conn, '{"type": "location", "latitude": 1.0, "longitude": 2.0}') is None
        await _settle(conn)
        assert conn.transport.sent == []
        assert len(store) == 0
        await hub.shutdown()

    @pytest.mark.asyncio
    async def test_malformed_message_dropped_connection_kept(self, caplog):
        hub = BroadcastHub(BinStore())
        conn = await _join(hub)

        with caplog.at_level(logging.WARNING, logger="ecotrack.realtime.hub"):
            assert await hub.handle_message(conn, "{not json") is None

        assert "malformed" in caplog.text
        assert not conn.closed
        assert len(hub) == 1

        await hub.handle_message(conn, _create(1.0, 2.0))
        await _settle(conn)
        assert conn.transport.frames()[0]["id"] == 1
        await hub.shutdown()

    @pytest.mark.asyncio
    async def test_unknown_kind_logged(self, caplog):
        hub = BroadcastHub(BinStore())
        conn = await _join(hub)
        with caplog.at_level(logging.WARNING, logger="ecotrack.realtime.hub"):
            assert await hub.handle_message(conn, '{"type": "reset"}') is None
        assert "Unknown message type" in caplog.text
        await hub.shutdown()

    @pytest.mark.asyncio
    async def test_concurrent_creates_get_distinct_ids(self):
        store = BinStore()
        hub = BroadcastHub(store)
        conns = [await _join(hub) for _ in range(4)]

        events = await asyncio.gather(*(
            hub.handle_message(conn, _create(float(i), 0.0))
            for i, conn in enumerate(conns * 5)
        ))

        assert sorted(e.id for e in events) == list(range(1, 21))
        await _settle(*conns)
        for conn in conns:
            assert [f["id"] for f in conn.transport.frames()] == sorted(e.id for e in events)
        await hub.shutdown()


# ---------------------------------------------------------------------------
# Fan-out isolation
# ---------------------------------------------------------------------------


class TestFanOut:
    """broadcast(): per-connection isolation."""

    @pytest.mark.asyncio
    async def test_non_writable_connection_skipped(self):
        hub = BroadcastHub(BinStore())
        live = await _join(hub)
        gone = await _join(hub)
        gone.transport.open = False

        delivered = await hub.broadcast(DeleteBinEvent(id=1))
        await _settle(live, gone)

        assert delivered == 1
        assert live.transport.frames() == [{"type": "deletebin", "id": 1}]
        assert gone.transport.sent == []
        await hub.shutdown()

    @pytest.mark.asyncio
    async def test_write_failure_isolated_and_mutation_kept(self):
        store = BinStore()
        hub = BroadcastHub(store)
        broken = await _join(hub, FakeTransport(fail=True))
        healthy = await _join(hub)

        await hub.handle_message(healthy, _create(10.0, 20.0))
        await _settle(broken, healthy)

        assert broken.closed
        assert healthy.transport.frames()[0]["id"] == 1
        assert len(store) == 1

        # the failed client is skipped from now on
        await hub.handle_message(healthy, _create(11.0, 21.0))
        await _settle(healthy)
        assert len(healthy.transport.sent) == 2
        await hub.shutdown()

    @pytest.mark.asyncio
    async def test_stalled_connection_does_not_delay_others(self):
        hub = BroadcastHub(BinStore())
        stalled = await _join(hub, FakeTransport(block=True), queue_size=2, send_timeout=30.0)
        healthy = await _join(hub)

        for i in range(5):
            await hub.handle_message(healthy, _create(float(i), 0.0))

        await asyncio.wait_for(healthy.flush(), timeout=1.0)
        assert len(healthy.transport.sent) == 5
        assert stalled.closed
        await hub.shutdown()

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self):
        hub = BroadcastHub(BinStore())
        conn = await _join(hub)
        await hub.disconnect(conn)
        await hub.disconnect(conn)
        assert len(hub) == 0
        assert await hub.broadcast(DeleteBinEvent(id=1)) == 0


class TestClientConnection:
    """ClientConnection buffering on its own."""

    @pytest.mark.asyncio
    async def test_frames_written_in_order(self):
        conn = ClientConnection(FakeTransport())
        conn.start()
        for frame in ("a", "b", "c"):
            assert conn.enqueue(frame)
        await conn.flush()
        assert conn.transport.sent == ["a", "b", "c"]
        assert conn.frames_sent == 3
        await conn.close()

    @pytest.mark.asyncio
    async def test_full_buffer_closes_connection(self):
        transport = FakeTransport(block=True)
        conn = ClientConnection(transport, queue_size=1, send_timeout=30.0)
        conn.start()
        assert conn.enqueue("a") is True
        assert conn.enqueue("b") is False
        assert conn.closed
        await conn.close()
        assert transport.close_code == 1013

    @pytest.mark.asyncio
    async def test_send_timeout_closes_connection(self):
        conn = ClientConnection(FakeTransport(block=True), send_timeout=0.05)
        conn.start()
        conn.enqueue("a")
        await asyncio.wait_for(conn.flush(), timeout=2.0)
        assert conn.closed
        assert conn.enqueue("b") is False
        await conn.close()

    @pytest.mark.asyncio
    async def test_enqueue_after_close_skipped(self):
        conn = ClientConnection(FakeTransport())
        conn.start()
        await conn.close()
        assert conn.enqueue("a") is False
        await conn.close()
