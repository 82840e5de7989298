"""
Room Registry: the in-memory map of rooms and their membership

Responsibilities:
1. Create rooms (creator seated as host on the red team)
2. Join / leave / team change, keeping the team views derived from `players`
3. Host migration and room deletion when the last player leaves
4. Lightweight room listings

Locking:
- `self._lock` guards the room map and the player -> room index. It is only held
  for dictionary reads and writes, never while waiting on a room lock.
- Each Room carries its own RLock. Operations touching two rooms take both
  locks in room id order.
- Callers receive snapshots (plain dicts + member id tuples), never live Room objects.
"""
import hmac
import threading
import uuid
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from constants import DEFAULT_MAX_PLAYERS
from exceptions import AlreadyInRoom, BadPassword, RoomFull, RoomNotFound
from logging_config import get_logger
from models import Player, PlayerNumber, Room, Team

logger = get_logger(__name__)


@dataclass(frozen=True)
class RoomSnapshot:
    room_id: str
    room: dict
    member_ids: Tuple[str, ...]


@dataclass(frozen=True)
class Departure:
    """Result of removing a player; `snapshot` is None when the room was deleted."""
    player: dict
    room_id: str
    snapshot: Optional[RoomSnapshot] = None
    new_host_id: Optional[str] = None

    @property
    def room_deleted(self) -> bool:
        return self.snapshot is None


@dataclass(frozen=True)
class JoinResult:
    snapshot: RoomSnapshot
    player: dict
    # Set when joining moved the player out of another room
    departure: Optional[Departure] = None


class RoomListing:
    """Restartable, lazily produced sequence of room summaries.

    The set of rooms is fixed when the listing is created; each summary is read
    under its room's lock when iterated, and rooms deleted since are skipped.
    """

    def __init__(self, rooms):
        self._rooms = tuple(rooms)

    def __iter__(self) -> Iterator[dict]:
        for room in self._rooms:
            with room.lock:
                if room.closed:
                    continue
                summary = room.summary()
            yield summary


def _snapshot(room: Room) -> RoomSnapshot:
    return RoomSnapshot(room_id=room.id, room=room.to_dict(), member_ids=room.member_ids())


def _password_matches(expected: str, supplied: Optional[str]) -> bool:
    if supplied is None:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))


def generate_room_id() -> str:
    return uuid.uuid4().hex


class RoomRegistry:
    def __init__(self, default_max_players: int = DEFAULT_MAX_PLAYERS):
        self.default_max_players = default_max_players
        self._lock = threading.Lock()
        self._rooms = {}
        # player id -> room id
        self._memberships = {}
        logger.info(f"Initializing RoomRegistry (default max players: {default_max_players})")

    def __len__(self):
        with self._lock:
            return len(self._rooms)

    # ============ internal helpers ============

    def _get(self, room_id: Optional[str]) -> Optional[Room]:
        if room_id is None:
            return None
        with self._lock:
            return self._rooms.get(room_id)

    def _all_rooms(self) -> list:
        with self._lock:
            return list(self._rooms.values())

    @contextmanager
    def _locked(self, *rooms):
        unique = {room.id: room for room in rooms if room is not None}
        with ExitStack() as stack:
            for room_id in sorted(unique):
                stack.enter_context(unique[room_id].lock)
            yield

    def _remove_locked(self, room: Room, player_id: str) -> Optional[Departure]:
        """Remove a player from a room whose lock the caller holds."""
        player = room.find_player(player_id)
        if player is None:
            return None

        removed = player.to_dict()
        room.players = [p for p in room.players if p.id != player_id]
        room.rebuild_teams()

        if not room.players:
            room.closed = True
            with self._lock:
                if self._memberships.get(player_id) == room.id:
                    del self._memberships[player_id]
                if self._rooms.get(room.id) is room:
                    del self._rooms[room.id]
            logger.info(f"Room {room.id} deleted: last player {player_id} left")
            return Departure(player=removed, room_id=room.id)

        with self._lock:
            if self._memberships.get(player_id) == room.id:
                del self._memberships[player_id]

        new_host_id = None
        if room.host_id == player_id:
            new_host = room.players[0]
            new_host.is_host = True
            room.host_id = new_host.id
            new_host_id = new_host.id
            logger.info(f"Host of room {room.id} migrated from {player_id} to {new_host_id}")

        logger.info(f"Player {player_id} left room {room.id} ({len(room.players)}/{room.max_players} players)")
        return Departure(player=removed, room_id=room.id, snapshot=_snapshot(room), new_host_id=new_host_id)

    # ============ operations ============

    def create_room(
        self,
        owner_id: str,
        name: str,
        player_name: str,
        player_number: PlayerNumber = None,
        max_players: Optional[int] = None,
        password: Optional[str] = None,
    ) -> Tuple[RoomSnapshot, Optional[Departure]]:
        """
        Create a room with `owner_id` seated as host on the red team.

        If the owner is currently in another room it is removed from it first;
        that removal is returned as the second element so the caller can notify
        the old room.
        """
        departures = self.remove_from_all(owner_id)
        creator = Player(id=owner_id, name=player_name, number=player_number, team=Team.RED, is_host=True)

        with self._lock:
            room_id = generate_room_id()
            while room_id in self._rooms:
                logger.warning(f"Room id collision detected, regenerating: {room_id}")
                room_id = generate_room_id()

            room = Room(
                id=room_id,
                name=name,
                host_id=owner_id,
                max_players=max_players or self.default_max_players,
                password=password,
                players=[creator],
            )
            room.rebuild_teams()
            self._rooms[room_id] = room
            self._memberships[owner_id] = room_id

        logger.info(f"Room {room_id} created by {owner_id}: name={name}, max_players={room.max_players}, "
                    f"has_password={room.has_password}")
        with room.lock:
            return _snapshot(room), (departures[0] if departures else None)

    def list_rooms(self) -> RoomListing:
        return RoomListing(self._all_rooms())

    def join_room(
        self,
        room_id: str,
        player_id: str,
        player_name: str,
        player_number: PlayerNumber = None,
        password: Optional[str] = None,
    ) -> JoinResult:
        """
        Seat `player_id` in a room as a spectator.

        Raises:
            RoomNotFound: unknown room id
            AlreadyInRoom: the player is already in this room
            RoomFull: the room already holds max_players
            BadPassword: the room has a password and it does not match

        A player sitting in another room is moved: both rooms are locked, the
        target is validated, then the player leaves the old room and joins the
        new one in one step.
        """
        target = self._get(room_id)
        if target is None:
            raise RoomNotFound(room_id)

        previous_id = self.room_of(player_id)
        if previous_id == room_id:
            raise AlreadyInRoom(room_id)
        previous = self._get(previous_id)

        with self._locked(target, previous):
            if target.closed:
                raise RoomNotFound(room_id)
            if target.find_player(player_id) is not None:
                raise AlreadyInRoom(room_id)
            if target.is_full():
                logger.info(f"Join rejected: room {room_id} is full ({len(target.players)}/{target.max_players})")
                raise RoomFull(room_id, target.max_players)
            if target.has_password and not _password_matches(target.password, password):
                logger.warning(f"Join rejected: invalid password for room {room_id} from {player_id}")
                raise BadPassword(room_id)

            departure = None
            if previous is not None and not previous.closed:
                departure = self._remove_locked(previous, player_id)

            player = Player(id=player_id, name=player_name, number=player_number)
            target.players.append(player)
            target.rebuild_teams()
            with self._lock:
                self._memberships[player_id] = room_id

            logger.info(f"Player {player_id} joined room {room_id} ({len(target.players)}/{target.max_players} players)")
            return JoinResult(snapshot=_snapshot(target), player=player.to_dict(), departure=departure)

    def change_team(self, room_id: str, player_id: str, team) -> Optional[RoomSnapshot]:
        """Move a player to another team. Unknown room or player is a no-op returning None."""
        room = self._get(room_id)
        if room is None:
            logger.debug(f"Team change ignored: room {room_id} not found")
            return None

        with room.lock:
            if room.closed:
                return None
            player = room.find_player(player_id)
            if player is None:
                logger.debug(f"Team change ignored: player {player_id} not in room {room_id}")
                return None
            player.team = Team(team)
            room.rebuild_teams()
            logger.info(f"Player {player_id} moved to {player.team.value} in room {room_id}")
            return _snapshot(room)

    def remove_player(self, room_id: str, player_id: str) -> Optional[Departure]:
        room = self._get(room_id)
        if room is None:
            return None
        with room.lock:
            if room.closed:
                return None
            return self._remove_locked(room, player_id)

    def remove_from_all(self, player_id: str) -> list:
        """Remove a player from every room containing it (used on disconnect)."""
        departures = []
        for room in self._all_rooms():
            with room.lock:
                if room.closed:
                    continue
                departure = self._remove_locked(room, player_id)
            if departure is not None:
                departures.append(departure)
        return departures

    # ============ queries ============

    def get_room(self, room_id: str) -> Optional[RoomSnapshot]:
        room = self._get(room_id)
        if room is None:
            return None
        with room.lock:
            if room.closed:
                return None
            return _snapshot(room)

    def room_summary(self, room_id: str) -> Optional[dict]:
        room = self._get(room_id)
        if room is None:
            return None
        with room.lock:
            return None if room.closed else room.summary()

    def room_of(self, player_id: str) -> Optional[str]:
        with self._lock:
            return self._memberships.get(player_id)

    def is_member(self, room_id: str, player_id: str) -> bool:
        return self.room_of(player_id) == room_id

    def member_ids(self, room_id: str) -> tuple:
        room = self._get(room_id)
        if room is None:
            return ()
        with room.lock:
            return () if room.closed else room.member_ids()

    def stats(self) -> Tuple[int, int]:
        """(room count, player count)"""
        with self._lock:
            return len(self._rooms), len(self._memberships)

    def clear(self):
        with self._lock:
            rooms = list(self._rooms.values())
            self._rooms.clear()
            self._memberships.clear()
        for room in rooms:
            with room.lock:
                room.closed = True
        logger.info(f"RoomRegistry cleared ({len(rooms)} rooms dropped)")
