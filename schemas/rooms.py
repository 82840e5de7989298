from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, Union

from models import Team


class InboundPayload(BaseModel):
    # Clients send camelCase; extra keys are tolerated and ignored
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CreateRoomRequest(InboundPayload):
    room_name: str = Field(alias="roomName", min_length=1)
    max_players: Optional[int] = Field(None, alias="maxPlayers", ge=0)
    has_password: Optional[bool] = Field(False, alias="hasPassword")
    password: Optional[str] = None
    player_name: str = Field(alias="playerName")
    player_number: Optional[Union[int, str]] = Field(None, alias="playerNumber")

    @model_validator(mode="after")
    def check_password(self):
        if self.has_password and not self.password:
            raise ValueError("password is required when hasPassword is set")
        return self


class JoinRoomRequest(InboundPayload):
    room_id: str = Field(alias="roomId")
    player_name: str = Field(alias="playerName")
    player_number: Optional[Union[int, str]] = Field(None, alias="playerNumber")
    password: Optional[str] = None


class LeaveRoomRequest(InboundPayload):
    room_id: Optional[str] = Field(None, alias="roomId")


class PlayerMoveRequest(InboundPayload):
    room_id: str = Field(alias="roomId")
    # Relayed as sent: numbers keep their type, omitted fields stay null
    x: Union[int, float]
    y: Union[int, float]
    vx: Optional[Union[int, float]] = None
    vy: Optional[Union[int, float]] = None
    running: Optional[bool] = None


class RelayRequest(InboundPayload):
    """game_state / ball_kicked: only the room is checked, the rest is relayed verbatim"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    room_id: str = Field(alias="roomId")


class TeamChangeRequest(InboundPayload):
    room_id: str = Field(alias="roomId")
    player_id: str = Field(alias="playerId")
    team: Team


class RoomSummary(BaseModel):
    id: str
    name: str
    host: str
    maxPlayers: int
    currentPlayers: int
    hasPassword: bool
    createdAt: int


class HealthResponse(BaseModel):
    status: str
    rooms: int
    players: int
