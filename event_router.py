"""
Event Router: validates inbound events, applies them to the registry and
decides who receives what.

Fanout kinds:
- reply: the requesting connection only
- room: every member of the room (sender included)
- room except sender: relayed game traffic
- global: every live connection (`rooms_updated`)

The router holds no state of its own; membership is read from the registry
at dispatch time.
"""
import json

from pydantic import ValidationError

import events
from exceptions import InvalidPayload, RelayError, UnknownEvent
from logging_config import get_logger
from registry import Departure, RoomRegistry
from schemas.rooms import (
    CreateRoomRequest,
    JoinRoomRequest,
    LeaveRoomRequest,
    PlayerMoveRequest,
    RelayRequest,
    TeamChangeRequest,
)

logger = get_logger(__name__)


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        location = ".".join(str(part) for part in err.get("loc", ())) or "data"
        parts.append(f"{location}: {err.get('msg')}")
    return "; ".join(parts)


def parse_payload(model, data):
    try:
        return model.model_validate(data if data is not None else {})
    except ValidationError as e:
        raise InvalidPayload(_describe_validation_error(e))


class EventRouter:
    def __init__(self, registry: RoomRegistry, hub):
        self.registry = registry
        self.hub = hub
        self._handlers = {
            events.GET_ROOMS: self.handle_get_rooms,
            events.CREATE_ROOM: self.handle_create_room,
            events.JOIN_ROOM: self.handle_join_room,
            events.LEAVE_ROOM: self.handle_leave_room,
            events.PLAYER_MOVE: self.handle_player_move,
            events.GAME_STATE: self.handle_game_state,
            events.BALL_KICKED: self.handle_ball_kicked,
            events.TEAM_CHANGE: self.handle_team_change,
        }

    # ============ entry points ============

    def handle_frame(self, connection_id: str, raw: str):
        """Decode one `{"event": ..., "data": ...}` text frame and dispatch it."""
        try:
            envelope = json.loads(raw)
        except json.JSONDecodeError:
            self._reject(connection_id, None, InvalidPayload("Frame is not valid JSON"))
            return

        if not isinstance(envelope, dict) or not isinstance(envelope.get("event"), str):
            self._reject(connection_id, None, InvalidPayload("Frame must be an object with an 'event' name"))
            return

        self.dispatch(connection_id, envelope["event"], envelope.get("data"))

    def dispatch(self, connection_id: str, event: str, data=None):
        handler = self._handlers.get(event)
        try:
            if handler is None:
                raise UnknownEvent(event)
            handler(connection_id, data)
        except RelayError as e:
            self._reject(connection_id, event, e)
        except Exception as e:
            logger.error(f"Error handling '{event}' from connection {connection_id}: {e}", exc_info=True)

    def handle_disconnect(self, connection_id: str):
        departures = self.registry.remove_from_all(connection_id)
        for departure in departures:
            self._announce_departure(departure)
            self.hub.broadcast(events.ROOMS_UPDATED)
        logger.info(f"Connection {connection_id} disconnected, left {len(departures)} room(s)")

    # ============ helpers ============

    def _reject(self, connection_id: str, event, error: RelayError):
        logger.warning(f"Rejected '{event}' from connection {connection_id}: {error.code} ({error.message})")
        if event == events.JOIN_ROOM:
            self.hub.send_to(connection_id, events.JOIN_ERROR, {"message": error.message, "code": error.code})
        else:
            self.hub.send_to(connection_id, events.ERROR, {
                "event": event,
                "code": error.code,
                "message": error.message,
            })

    def _announce_departure(self, departure: Departure):
        """Tell the remaining members of a room that a player left (nothing to tell if it was deleted)."""
        if departure.room_deleted:
            return
        self.hub.send(departure.snapshot.member_ids, events.PLAYER_LEFT, {
            "playerId": departure.player["id"],
            "room": departure.snapshot.room,
        })

    def _others_in_room(self, connection_id: str, room_id: str):
        """Members of `room_id` except the sender, or None if the sender is not a member."""
        if not self.registry.is_member(room_id, connection_id):
            return None
        return [member for member in self.registry.member_ids(room_id) if member != connection_id]

    # ============ handlers ============

    def handle_get_rooms(self, connection_id: str, data=None):
        self.hub.send_to(connection_id, events.ROOMS_LIST, list(self.registry.list_rooms()))

    def handle_create_room(self, connection_id: str, data):
        request = parse_payload(CreateRoomRequest, data)
        snapshot, departure = self.registry.create_room(
            connection_id,
            request.room_name,
            request.player_name,
            player_number=request.player_number,
            max_players=request.max_players,
            password=request.password if request.has_password else None,
        )
        if departure is not None:
            self._announce_departure(departure)

        self.hub.send_to(connection_id, events.ROOM_CREATED, {
            "success": True,
            "roomId": snapshot.room_id,
            "room": snapshot.room,
        })
        self.hub.broadcast(events.ROOMS_UPDATED)

    def handle_join_room(self, connection_id: str, data):
        request = parse_payload(JoinRoomRequest, data)
        result = self.registry.join_room(
            request.room_id,
            connection_id,
            request.player_name,
            player_number=request.player_number,
            password=request.password,
        )
        if result.departure is not None:
            self._announce_departure(result.departure)

        snapshot = result.snapshot
        self.hub.send_to(connection_id, events.ROOM_JOINED, {"success": True, "room": snapshot.room})
        self.hub.send(snapshot.member_ids, events.PLAYER_JOINED, {"player": result.player, "room": snapshot.room})
        self.hub.broadcast(events.ROOMS_UPDATED)

    def handle_leave_room(self, connection_id: str, data=None):
        request = parse_payload(LeaveRoomRequest, data)
        current = self.registry.room_of(connection_id)
        departure = None
        if current is not None and request.room_id in (None, current):
            departure = self.registry.remove_player(current, connection_id)

        self.hub.send_to(connection_id, events.ROOM_LEFT, {"roomId": departure.room_id if departure else None})
        if departure is not None:
            self._announce_departure(departure)
            self.hub.broadcast(events.ROOMS_UPDATED)

    def handle_player_move(self, connection_id: str, data):
        request = parse_payload(PlayerMoveRequest, data)
        targets = self._others_in_room(connection_id, request.room_id)
        if targets is None:
            logger.debug(f"Dropping player_move from {connection_id}: not in room {request.room_id}")
            return
        self.hub.send(targets, events.PLAYER_UPDATE, {
            "id": connection_id,
            "x": request.x,
            "y": request.y,
            "vx": request.vx,
            "vy": request.vy,
            "running": request.running,
        })

    def _relay(self, connection_id: str, event: str, data):
        request = parse_payload(RelayRequest, data)
        targets = self._others_in_room(connection_id, request.room_id)
        if targets is None:
            logger.debug(f"Dropping {event} from {connection_id}: not in room {request.room_id}")
            return
        self.hub.send(targets, events.RELAYED_EVENTS[event], data)

    def handle_game_state(self, connection_id: str, data):
        self._relay(connection_id, events.GAME_STATE, data)

    def handle_ball_kicked(self, connection_id: str, data):
        self._relay(connection_id, events.BALL_KICKED, data)

    def handle_team_change(self, connection_id: str, data):
        request = parse_payload(TeamChangeRequest, data)
        snapshot = self.registry.change_team(request.room_id, request.player_id, request.team)
        if snapshot is None:
            return
        self.hub.send(snapshot.member_ids, events.TEAM_UPDATED, {"room": snapshot.room})
