import random
import string
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from . import catalog
from .errors import CapacityExceeded, Forbidden, NotFound, PreconditionFailed, RoomCodeExhausted, require_id
from .state import GameState

WAITING = 'waiting'
RUNNING = 'running'
STOPPED = 'stopped'


@dataclass
class RoomSettings:
    max_per_faction: int = 3
    min_to_start: int = 6
    capacity: int = 12

    def to_dict(self):
        return {
            'max_per_faction': self.max_per_faction,
            'min_to_start': self.min_to_start,
            'capacity': self.capacity,
        }


class Membership:
    def __init__(self, player_id: str, connection=None):
        self.player_id = player_id
        self.connection = connection
        self.faction: Optional[str] = None
        self.seat: Optional[int] = None

    def to_dict(self):
        # Connection handles stay server-side
        return {'player_id': self.player_id, 'faction': self.faction, 'seat': self.seat}


class Room:
    """A lobby plus, once started, its GameState.

    Callers hold `room.lock` around every read-modify-write; the methods
    below raise GameError subclasses and leave state untouched on failure.
    """

    def __init__(self, room_id: str, owner: str, settings: Optional[RoomSettings] = None):
        self.id = room_id
        self.owner = owner
        self.state = WAITING
        self.settings = settings or RoomSettings()
        self.players: Dict[str, Membership] = {}
        self.factions: Dict[str, List[str]] = catalog.empty_rosters()
        self.game: Optional[GameState] = None
        # Bumped on every start/stop so timers from an earlier game can tell they are stale
        self.generation = 0
        self.lock = threading.RLock()
        self._next_seat: Dict[str, int] = {faction: 0 for faction in self.factions}

    def member(self, player_id) -> Membership:
        require_id(player_id)
        membership = self.players.get(player_id)
        if membership is None:
            raise NotFound(f'player {player_id} is not in room {self.id}')
        return membership

    def connection_of(self, player_id):
        if not isinstance(player_id, str):
            return None
        membership = self.players.get(player_id)
        return membership.connection if membership else None

    def connections(self):
        return [m.connection for m in self.players.values() if m.connection is not None]

    def require_owner(self, requester_id: str, action: str) -> None:
        require_id(requester_id, 'requester id')
        if requester_id != self.owner:
            raise Forbidden(f'only the owner can {action}')

    def add_member(self, player_id: str, connection) -> Membership:
        require_id(player_id)
        existing = self.players.get(player_id)
        if existing is not None:
            # Re-join replaces the connection handle and keeps faction/seat
            existing.connection = connection
            return existing
        if len(self.players) >= self.settings.capacity:
            raise CapacityExceeded('room full')
        membership = Membership(player_id, connection)
        self.players[player_id] = membership
        return membership

    def remove_member(self, player_id: str) -> Membership:
        membership = self.member(player_id)
        self._unseat(membership)
        del self.players[player_id]
        return membership

    def assign(self, player_id: str, faction: str) -> Membership:
        require_id(faction, 'faction')
        if faction not in self.factions:
            raise NotFound(f'unknown faction {faction}')
        membership = self.member(player_id)
        if membership.faction == faction:
            return membership
        roster = self.factions[faction]
        if len(roster) >= self.settings.max_per_faction:
            raise CapacityExceeded('faction full')
        self._unseat(membership)
        roster.append(player_id)
        membership.faction = faction
        membership.seat = self._next_seat[faction]
        self._next_seat[faction] += 1
        return membership

    def _unseat(self, membership: Membership) -> None:
        if membership.faction is None:
            return
        roster = self.factions.get(membership.faction, [])
        if membership.player_id in roster:
            roster.remove(membership.player_id)
        membership.faction = None
        membership.seat = None

    def start(self, now: int) -> GameState:
        if self.state == RUNNING:
            raise PreconditionFailed('game already running')
        if len(self.players) < self.settings.min_to_start:
            raise PreconditionFailed('not enough players to start')
        self.game = GameState.for_roster(
            {pid: m.faction for pid, m in self.players.items()}, created_at=now
        )
        self.state = RUNNING
        self.generation += 1
        return self.game

    def stop(self) -> None:
        if self.state == STOPPED:
            return
        self.state = STOPPED
        self.generation += 1

    def to_dict(self):
        return {
            'id': self.id,
            'owner': self.owner,
            'state': self.state,
            'players': {pid: m.to_dict() for pid, m in self.players.items()},
            'factions': {faction: list(roster) for faction, roster in self.factions.items()},
            'settings': self.settings.to_dict(),
        }


def generate_room_code(rng, length=6):
    return ''.join(rng.choices(string.ascii_uppercase + string.digits, k=length))


class RoomRegistry:
    """Owns every live Room, keyed by its short code."""

    def __init__(self, settings: Optional[RoomSettings] = None, code_length: int = 6,
                 code_attempts: int = 50, rng: Optional[random.Random] = None):
        self.settings = settings or RoomSettings()
        self.code_length = code_length
        self.code_attempts = code_attempts
        self._rng = rng or random.Random()
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._rooms)

    def __contains__(self, room_id):
        return self.get(room_id) is not None

    def create(self, owner_id: str) -> Room:
        with self._lock:
            for _ in range(self.code_attempts):
                code = generate_room_code(self._rng, self.code_length)
                if code not in self._rooms:
                    break
            else:
                raise RoomCodeExhausted('could not allocate a room code')
            settings = RoomSettings(**self.settings.to_dict())
            room = Room(code, owner_id, settings)
            self._rooms[code] = room
            return room

    def get(self, room_id) -> Optional[Room]:
        if not isinstance(room_id, str) or not room_id:
            return None
        return self._rooms.get(str(room_id).upper())

    def require(self, room_id) -> Room:
        room = self.get(room_id)
        if room is None:
            raise NotFound('room not found')
        return room

    def destroy(self, room_id) -> Optional[Room]:
        if not isinstance(room_id, str):
            return None
        with self._lock:
            return self._rooms.pop(str(room_id).upper(), None)

    def rooms(self) -> List[Room]:
        return list(self._rooms.values())
