import asyncio

from backend.app.services.notifications import (
    BROADCAST,
    Notification,
    NotificationRelay,
    RoomRegistry,
    employer_scope,
    user_scope,
)


class FakeSocket:
    def __init__(self, fail: bool = False):
        self.sent: list[dict] = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(data)


def test_scopes():
    assert user_scope(5) == "user-5"
    assert employer_scope(9) == "employer-9"


def test_room_membership():
    rooms = RoomRegistry()
    a, b = FakeSocket(), FakeSocket()
    rooms.connect(a)
    rooms.connect(b)
    rooms.join(a, "user-1")
    rooms.join(a, "employer-2")
    rooms.join(b, "user-1")

    assert rooms.rooms_of(a) == ["employer-2", "user-1"]
    assert set(rooms.members("user-1")) == {a, b}
    assert set(rooms.members(BROADCAST)) == {a, b}

    rooms.leave(a, "user-1")
    assert rooms.members("user-1") == [b]
    rooms.disconnect(b)
    assert rooms.members("user-1") == []
    assert rooms.members(BROADCAST) == [a]


def test_deliver_only_to_scope_and_drops_broken_sockets():
    rooms = RoomRegistry()
    good, other, broken = FakeSocket(), FakeSocket(), FakeSocket(fail=True)
    for ws in (good, other, broken):
        rooms.connect(ws)
    rooms.join(good, "employer-1")
    rooms.join(broken, "employer-1")
    rooms.join(other, "employer-2")

    delivered = asyncio.run(rooms.deliver(Notification("employer-1", "newApplication", {"jobId": 1})))

    assert delivered == 1
    assert good.sent == [{"event": "newApplication", "data": {"jobId": 1}}]
    assert other.sent == []
    assert broken not in rooms.members(BROADCAST)


def test_emit_without_running_relay_is_a_noop():
    relay = NotificationRelay()
    relay.emit("user-1", "applicationStatusUpdated", {"newStatus": "accepted"})
    assert not relay.running


def test_relay_drains_queue_to_rooms():
    async def scenario():
        relay = NotificationRelay()
        ws, bystander = FakeSocket(), FakeSocket()
        relay.rooms.connect(ws)
        relay.rooms.connect(bystander)
        relay.rooms.join(ws, "user-3")

        await relay.start()
        assert relay.running
        relay.emit("user-3", "applicationStatusUpdated", {"newStatus": "reviewing"})
        relay.emit("nobody-here", "newApplication", {"jobId": 1})
        relay.emit(BROADCAST, "jobDeleted", 12)
        # emit() schedules onto the loop; let the callbacks run, then wait for delivery.
        await asyncio.sleep(0)
        await relay.join()
        await relay.stop()
        return relay, ws, bystander

    relay, ws, bystander = asyncio.run(scenario())
    assert ws.sent == [
        {"event": "applicationStatusUpdated", "data": {"newStatus": "reviewing"}},
        {"event": "jobDeleted", "data": 12},
    ]
    assert bystander.sent == [{"event": "jobDeleted", "data": 12}]
    assert not relay.running


def test_full_queue_drops_events():
    async def scenario():
        relay = NotificationRelay(max_queue=1)
        ws = FakeSocket()
        relay.rooms.connect(ws)
        await relay.start()
        # Both land before the drain task gets a turn; the second one is dropped.
        relay._enqueue(Notification(BROADCAST, "jobUpdated", 1))
        relay._enqueue(Notification(BROADCAST, "jobUpdated", 2))
        await relay.join()
        await relay.stop()
        return ws

    ws = asyncio.run(scenario())
    assert ws.sent == [{"event": "jobUpdated", "data": 1}]
