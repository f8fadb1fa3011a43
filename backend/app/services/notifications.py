"""
Real-time notification relay.

Request handlers publish events through a `NotificationSink`. The relay puts
them on an asyncio queue and a background task fans each one out to the
WebSocket connections joined to the event's room:

    handler --emit()--> queue --_drain()--> RoomRegistry.deliver() --> sockets

Emission never blocks and never raises into the caller: with no running relay,
no subscribers, a full queue or a broken socket, the event is dropped and
logged.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from fastapi import FastAPI, WebSocket

logger = logging.getLogger(__name__)

BROADCAST = "*"

# Event names
NEW_APPLICATION = "newApplication"
APPLICATION_STATUS_UPDATED = "applicationStatusUpdated"
NEW_JOB = "newJob"
JOB_UPDATED = "jobUpdated"
JOB_DELETED = "jobDeleted"


def user_scope(user_id: int) -> str:
    return f"user-{user_id}"


def employer_scope(employer_id: int) -> str:
    return f"employer-{employer_id}"


@dataclass(frozen=True)
class Notification:
    scope: str
    event: str
    payload: Any = field(default=None)

    def frame(self) -> dict:
        return {"event": self.event, "data": self.payload}


class NotificationSink(Protocol):
    def emit(self, scope: str, event: str, payload: Any) -> None: ...


class RoomRegistry:
    """Tracks open sockets and the rooms each one has joined."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()
        self._rooms: dict[str, set[WebSocket]] = {}

    def connect(self, websocket: WebSocket) -> None:
        self._connections.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)
        for room in list(self._rooms):
            self.leave(websocket, room)

    def join(self, websocket: WebSocket, room: str) -> None:
        self._rooms.setdefault(room, set()).add(websocket)

    def leave(self, websocket: WebSocket, room: str) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self._rooms[room]

    def members(self, scope: str) -> list[WebSocket]:
        if scope == BROADCAST:
            return list(self._connections)
        return list(self._rooms.get(scope, ()))

    def rooms_of(self, websocket: WebSocket) -> list[str]:
        return sorted(room for room, members in self._rooms.items() if websocket in members)

    async def deliver(self, notification: Notification) -> int:
        """Send to every member of the scope; returns how many sockets got it."""
        delivered = 0
        for websocket in self.members(notification.scope):
            try:
                await websocket.send_json(notification.frame())
                delivered += 1
            except Exception as e:
                logger.warning("Dropping socket after failed send of %s: %s", notification.event, e)
                self.disconnect(websocket)
        return delivered


class NotificationRelay:
    """Queue-backed `NotificationSink` drained by a background task."""

    def __init__(self, rooms: RoomRegistry | None = None, max_queue: int = 1000) -> None:
        self.rooms = rooms or RoomRegistry()
        self._max_queue = max_queue
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self._max_queue)
        self._task = asyncio.create_task(self._drain())
        logger.info("Notification relay started")

    async def stop(self) -> None:
        task, self._task = self._task, None
        self._loop = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Notification relay stopped")

    def emit(self, scope: str, event: str, payload: Any) -> None:
        notification = Notification(scope=scope, event=event, payload=payload)
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("Relay not running; dropping %s for %s", event, scope)
            return
        try:
            # Handlers may run in the threadpool; hop onto the relay's loop.
            loop.call_soon_threadsafe(self._enqueue, notification)
        except RuntimeError as e:
            logger.warning("Could not schedule %s for %s: %s", event, scope, e)

    def _enqueue(self, notification: Notification) -> None:
        if self._queue is None:
            return
        try:
            self._queue.put_nowait(notification)
        except asyncio.QueueFull:
            logger.warning("Notification queue full; dropping %s for %s", notification.event, notification.scope)

    async def _drain(self) -> None:
        queue = self._queue
        while True:
            notification = await queue.get()
            try:
                delivered = await self.rooms.deliver(notification)
                logger.debug("Delivered %s to %d socket(s) in %s", notification.event, delivered, notification.scope)
            except Exception:
                logger.exception("Failed to deliver %s", notification.event)
            finally:
                queue.task_done()

    async def join(self) -> None:
        """Wait until every queued notification has been handed to the sockets."""
        if self._queue is not None:
            await self._queue.join()


def install_relay(app: FastAPI, relay: NotificationRelay | None = None) -> NotificationRelay:
    """Attach a relay to the app state; the app lifespan starts and stops it."""
    relay = relay or NotificationRelay()
    app.state.notifier = relay
    app.state.rooms = relay.rooms
    return relay
