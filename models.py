import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class Team(str, Enum):
    RED = "red"
    BLUE = "blue"
    SPECTATOR = "spectator"


PlayerNumber = Optional[Union[int, str]]


@dataclass
class Player:
    """A connection's seat in a room. `id` is the connection identity."""
    id: str
    name: str
    number: PlayerNumber = None
    team: Team = Team.SPECTATOR
    is_host: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "number": self.number,
            "team": self.team.value,
            "isHost": self.is_host,
        }

    def roster_entry(self) -> dict:
        return {"id": self.id, "name": self.name, "number": self.number}


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Room:
    id: str
    name: str
    host_id: str
    max_players: int
    password: Optional[str] = None
    players: list = field(default_factory=list)
    red_team: list = field(default_factory=list)
    blue_team: list = field(default_factory=list)
    spectators: list = field(default_factory=list)
    created_at: int = field(default_factory=_now_ms)
    # Set once the last player leaves; a closed room must not be mutated again
    closed: bool = False
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def has_password(self) -> bool:
        return self.password is not None

    def find_player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def is_full(self) -> bool:
        return len(self.players) >= self.max_players

    def member_ids(self) -> tuple:
        return tuple(player.id for player in self.players)

    def rebuild_teams(self):
        """Recompute the three team views from `players`, keeping join order."""
        self.red_team = [p for p in self.players if p.team is Team.RED]
        self.blue_team = [p for p in self.players if p.team is Team.BLUE]
        self.spectators = [p for p in self.players if p.team is Team.SPECTATOR]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "host": self.host_id,
            "maxPlayers": self.max_players,
            "hasPassword": self.has_password,
            "players": [p.to_dict() for p in self.players],
            "redTeam": [p.roster_entry() for p in self.red_team],
            "blueTeam": [p.roster_entry() for p in self.blue_team],
            "spectators": [p.roster_entry() for p in self.spectators],
            "createdAt": self.created_at,
        }

    def summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "host": self.host_id,
            "maxPlayers": self.max_players,
            "currentPlayers": len(self.players),
            "hasPassword": self.has_password,
            "createdAt": self.created_at,
        }
