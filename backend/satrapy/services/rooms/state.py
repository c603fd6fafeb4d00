"""Authoritative per-room game state.

A GameState is built once when the owner starts the room and is only
mutated by the ActionEngine while the room lock is held.
"""

import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from . import catalog


@dataclass
class ResourceNode:
    id: str
    type: str
    distance: int
    rate: int
    resource: str

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'distance': self.distance,
            'rate': self.rate,
            'resource': self.resource,
        }


@dataclass
class EconomyRecord:
    player_id: str
    faction: Optional[str] = None
    population: int = 10
    food: int = 20
    soldiers: int = 4
    cavalry: int = 1
    archers: int = 2
    spies: int = 4
    guards: int = 0
    dogs: int = 0
    resources: Dict[str, int] = field(default_factory=lambda: dict(catalog.STARTING_RESOURCES))
    level: int = 1
    progress: int = 0
    academy: bool = False
    growth_modifier: float = 1.0
    last_growth_change: Optional[int] = None

    @classmethod
    def for_player(cls, player_id: str, faction: Optional[str]) -> 'EconomyRecord':
        return cls(
            player_id=player_id,
            faction=faction,
            guards=8 if catalog.is_civil(faction) else 0,
            dogs=30 if catalog.is_tribe(faction) else 0,
        )

    def to_dict(self):
        return {
            'player_id': self.player_id,
            'faction': self.faction,
            'population': self.population,
            'food': self.food,
            'soldiers': self.soldiers,
            'cavalry': self.cavalry,
            'archers': self.archers,
            'spies': self.spies,
            'guards': self.guards,
            'dogs': self.dogs,
            'resources': dict(self.resources),
            'level': self.level,
            'progress': self.progress,
            'academy': self.academy,
            'growth_modifier': self.growth_modifier,
            'last_growth_change': self.last_growth_change,
        }


@dataclass(frozen=True)
class Movement:
    kind: str  # gather | march
    origin: str
    destination: Optional[str]
    units: int
    arrive_at: int
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self):
        return {
            'id': self.id,
            'kind': self.kind,
            'origin': self.origin,
            'destination': self.destination,
            'units': self.units,
            'arrive_at': self.arrive_at,
        }


def generate_nodes() -> List[ResourceNode]:
    return [ResourceNode(*row) for row in catalog.node_rows()]


class GameState:
    def __init__(self, created_at: int, players: Optional[Dict[str, EconomyRecord]] = None,
                 nodes: Optional[List[ResourceNode]] = None):
        self.created_at = created_at
        self.players: Dict[str, EconomyRecord] = players or {}
        self.nodes: List[ResourceNode] = nodes if nodes is not None else generate_nodes()
        self.movements: List[Movement] = []

    @classmethod
    def for_roster(cls, roster: Dict[str, Optional[str]], created_at: int) -> 'GameState':
        """Build a fresh state with one economy record per (player_id -> faction)."""
        players = {pid: EconomyRecord.for_player(pid, faction) for pid, faction in roster.items()}
        return cls(created_at=created_at, players=players)

    def player(self, player_id) -> Optional[EconomyRecord]:
        return self.players.get(player_id)

    def node(self, node_id) -> Optional[ResourceNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def enqueue(self, movement: Movement) -> None:
        self.movements.append(movement)

    def pop_due(self, now: int) -> List[Movement]:
        """Remove and return movements whose arrival time has passed, in submission order."""
        due = [m for m in self.movements if m.arrive_at <= now]
        if due:
            self.movements = [m for m in self.movements if m.arrive_at > now]
        return due

    def to_dict(self):
        return {
            'created_at': self.created_at,
            'players': {pid: rec.to_dict() for pid, rec in self.players.items()},
            'nodes': [n.to_dict() for n in self.nodes],
            'movements': [m.to_dict() for m in self.movements],
        }
