import asyncio
import json

import events
from connections import ConnectionHub
from event_router import EventRouter
from registry import RoomRegistry


class FakeWebSocket:
    """Just enough of starlette's WebSocket for the hub: accept and send_text."""

    def __init__(self):
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        self.sent.append(json.loads(text))

    def events(self):
        return [frame["event"] for frame in self.sent]


async def settle():
    # Give every writer task a chance to drain its queue
    for _ in range(5):
        await asyncio.sleep(0)


def test_register_accepts_and_issues_distinct_ids():
    async def scenario():
        hub = ConnectionHub()
        first, second = FakeWebSocket(), FakeWebSocket()
        first_id = await hub.register(first)
        second_id = await hub.register(second)

        assert first.accepted and second.accepted
        assert first_id != second_id
        assert len(hub) == 2
        assert first_id in hub and second_id in hub
        await hub.close()

    asyncio.run(scenario())


def test_frames_are_delivered_in_order_as_envelopes():
    async def scenario():
        hub = ConnectionHub()
        socket = FakeWebSocket()
        connection_id = await hub.register(socket)

        hub.send_to(connection_id, events.ROOMS_LIST, [])
        hub.send([connection_id], events.ROOMS_UPDATED)
        await settle()

        assert socket.sent == [
            {"event": events.ROOMS_LIST, "data": []},
            {"event": events.ROOMS_UPDATED, "data": None},
        ]
        await hub.close()

    asyncio.run(scenario())


def test_send_to_reports_false_once_queue_is_full():
    async def scenario():
        hub = ConnectionHub(queue_size=1)
        socket = FakeWebSocket()
        connection_id = await hub.register(socket)

        # Nothing has awaited yet, so the writer has not drained anything
        assert hub.send_to(connection_id, "tick", 1) is True
        assert hub.send_to(connection_id, "tick", 2) is False
        assert hub.send([connection_id], "tick", 3) == 0
        await settle()

        assert socket.sent == [{"event": "tick", "data": 1}]
        assert hub.send_to(connection_id, "tick", 4) is True
        await settle()
        assert [frame["data"] for frame in socket.sent] == [1, 4]
        await hub.close()

    asyncio.run(scenario())


def test_full_queue_only_drops_for_that_receiver():
    async def scenario():
        hub = ConnectionHub(queue_size=1)
        slow, fast = FakeWebSocket(), FakeWebSocket()
        slow_id = await hub.register(slow)
        fast_id = await hub.register(fast)

        hub.send_to(slow_id, "backlog")
        assert hub.broadcast("tick") == 1
        await settle()

        assert slow.events() == ["backlog"]
        assert fast.events() == ["tick"]
        await hub.close()

    asyncio.run(scenario())


def test_frames_to_unregistered_connection_are_dropped():
    async def scenario():
        hub = ConnectionHub()
        socket = FakeWebSocket()
        connection_id = await hub.register(socket)

        writer = hub.unregister(connection_id)
        assert connection_id not in hub
        assert len(hub) == 0
        assert hub.send_to(connection_id, "tick") is False
        assert hub.broadcast("tick") == 0
        assert hub.unregister(connection_id) is None

        await asyncio.gather(writer, return_exceptions=True)
        assert writer.cancelled()
        assert socket.sent == []

    asyncio.run(scenario())


def test_unknown_connection_is_never_queued():
    async def scenario():
        hub = ConnectionHub()
        assert hub.send_to("nobody", "tick") is False
        assert hub.send(["nobody", "nobody-else"], "tick") == 0

    asyncio.run(scenario())


def test_close_leaves_no_writers():
    async def scenario():
        hub = ConnectionHub()
        for _ in range(3):
            await hub.register(FakeWebSocket())
        hub.broadcast("bye")

        await hub.close()

        assert len(hub) == 0
        assert hub.connection_ids() == []
        assert asyncio.all_tasks() == {asyncio.current_task()}

    asyncio.run(scenario())


def test_writer_stops_when_socket_send_fails():
    class BrokenWebSocket(FakeWebSocket):
        async def send_text(self, text):
            raise RuntimeError("socket closed")

    async def scenario():
        hub = ConnectionHub()
        connection_id = await hub.register(BrokenWebSocket())

        hub.send_to(connection_id, "tick")
        await settle()

        # Writer is finished but the connection stays until the endpoint unregisters it
        writer = hub.unregister(connection_id)
        assert writer.done() and not writer.cancelled()
        await hub.close()

    asyncio.run(scenario())


def test_unregister_before_disconnect_cleanup_skips_departing_socket():
    async def scenario():
        hub = ConnectionHub()
        router = EventRouter(RoomRegistry(default_max_players=20), hub)
        alice, bob = FakeWebSocket(), FakeWebSocket()
        alice_id = await hub.register(alice)
        bob_id = await hub.register(bob)

        router.dispatch(alice_id, events.CREATE_ROOM, {"roomName": "Test", "playerName": "Alice"})
        await settle()
        room_id = alice.sent[-2]["data"]["roomId"]
        router.dispatch(bob_id, events.JOIN_ROOM, {"roomId": room_id, "playerName": "Bob"})
        await settle()
        alice_seen, bob_seen = len(alice.sent), len(bob.sent)

        # Same order as the websocket endpoint's cleanup
        hub.unregister(alice_id)
        router.handle_disconnect(alice_id)
        await settle()

        assert len(alice.sent) == alice_seen
        assert bob.events()[bob_seen:] == [events.PLAYER_LEFT, events.ROOMS_UPDATED]
        left = bob.sent[bob_seen]["data"]
        assert left["playerId"] == alice_id
        assert left["room"]["host"] == bob_id
        await hub.close()

    asyncio.run(scenario())
