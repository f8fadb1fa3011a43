import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..services.notifications import RoomRegistry, employer_scope, user_scope

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])

# Client actions -> room name builder
ROOM_ACTIONS = {
    "joinUserRoom": user_scope,
    "joinEmployerRoom": employer_scope,
}


def _room_for(message: dict) -> str | None:
    build = ROOM_ACTIONS.get(message.get("action"))
    if build is None:
        return None
    try:
        return build(int(message.get("id")))
    except (TypeError, ValueError):
        return None


async def _receive_message(websocket: WebSocket):
    """Next client frame decoded as JSON. Binary frames and bad JSON raise ValueError."""
    frame = await websocket.receive()
    if frame["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(frame.get("code", 1000), frame.get("reason"))
    text = frame.get("text")
    if text is None:
        raise ValueError("Expected a text frame")
    try:
        return json.loads(text)
    except ValueError:
        raise ValueError("Invalid JSON") from None


@router.websocket("/ws")
async def notifications_socket(websocket: WebSocket):
    """
    Rooms are keyed by user id and employer id:

        -> {"action": "joinUserRoom", "id": 7}
        <- {"event": "joined", "data": {"room": "user-7"}}
        <- {"event": "applicationStatusUpdated", "data": {...}}

    {"action": "leaveRoom", "room": "user-7"} leaves a joined room. Broadcast
    events reach every socket.
    """
    rooms: RoomRegistry = websocket.app.state.rooms
    await websocket.accept()
    rooms.connect(websocket)
    logger.info("New client connected")
    try:
        while True:
            try:
                message = await _receive_message(websocket)
            except ValueError as e:
                await websocket.send_json({"event": "error", "data": {"message": str(e)}})
                continue
            if not isinstance(message, dict):
                await websocket.send_json({"event": "error", "data": {"message": "Expected an object"}})
                continue

            if message.get("action") == "leaveRoom":
                room = message.get("room")
                if room in rooms.rooms_of(websocket):
                    rooms.leave(websocket, room)
                    await websocket.send_json({"event": "left", "data": {"room": room}})
                    continue
            else:
                room = _room_for(message)
                if room:
                    rooms.join(websocket, room)
                    await websocket.send_json({"event": "joined", "data": {"room": room}})
                    continue

            await websocket.send_json({"event": "error", "data": {"message": "Unknown action"}})
    except WebSocketDisconnect:
        pass
    finally:
        rooms.disconnect(websocket)
        logger.info("Client disconnected")
