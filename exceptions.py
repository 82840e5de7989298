"""
Relay error taxonomy

Registry operations raise these; the event router turns them into
`join_error` / `error` events for the requesting connection.
"""


class RelayError(Exception):
    """Base class for every error reported back to a client"""
    code = "relay_error"
    message = "Request failed"

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class RoomNotFound(RelayError):
    code = "room_not_found"
    message = "Room not found"

    def __init__(self, room_id=None):
        self.room_id = room_id
        super().__init__()


class RoomFull(RelayError):
    code = "room_full"
    message = "Room is full"

    def __init__(self, room_id=None, max_players=None):
        self.room_id = room_id
        self.max_players = max_players
        super().__init__()


class BadPassword(RelayError):
    code = "bad_password"
    message = "Invalid password"

    def __init__(self, room_id=None):
        self.room_id = room_id
        super().__init__()


class AlreadyInRoom(RelayError):
    """The connection is already a player of the room it tried to join"""
    code = "already_in_room"
    message = "Already in this room"

    def __init__(self, room_id=None):
        self.room_id = room_id
        super().__init__()


class InvalidPayload(RelayError):
    code = "invalid_payload"
    message = "Invalid payload"


class UnknownEvent(InvalidPayload):
    code = "unknown_event"

    def __init__(self, event):
        self.event = event
        super().__init__(f"Unknown event '{event}'")
