# Inbound (client -> server)
GET_ROOMS = "get_rooms"
CREATE_ROOM = "create_room"
JOIN_ROOM = "join_room"
LEAVE_ROOM = "leave_room"
PLAYER_MOVE = "player_move"
GAME_STATE = "game_state"
BALL_KICKED = "ball_kicked"
TEAM_CHANGE = "team_change"

# Outbound (server -> client)
CONNECTED = "connected"
ROOMS_LIST = "rooms_list"
ROOMS_UPDATED = "rooms_updated"
ROOM_CREATED = "room_created"
ROOM_JOINED = "room_joined"
ROOM_LEFT = "room_left"
JOIN_ERROR = "join_error"
PLAYER_JOINED = "player_joined"
PLAYER_LEFT = "player_left"
PLAYER_UPDATE = "player_update"
GAME_STATE_UPDATE = "game_state_update"
BALL_UPDATE = "ball_update"
TEAM_UPDATED = "team_updated"
ERROR = "error"

# Relay event -> outbound event it is forwarded as
RELAYED_EVENTS = {
    PLAYER_MOVE: PLAYER_UPDATE,
    GAME_STATE: GAME_STATE_UPDATE,
    BALL_KICKED: BALL_UPDATE,
}
