"""Validation and application of player actions against a room's GameState.

Every entry point expects the caller to hold `room.lock`. Deferred effects
(spy reports, movement arrivals) go through the TaskScheduler and take the
lock again when they fire.
"""

import math
import random
from dataclasses import dataclass
from typing import Optional

from . import catalog
from .errors import GameError, InsufficientResource, InvalidRequest, NotFound, PreconditionFailed, require_id
from .registry import RUNNING
from .state import Movement


@dataclass
class ActionOutcome:
    applied: bool
    movement: Optional[Movement] = None
    error: Optional[GameError] = None


@dataclass
class EngineSettings:
    spy_delay_ms: int = 2000
    spy_catch_chance: float = 0.2
    upgrade_food_cost: int = 10
    resolve_movements: bool = True


def gather_travel_ms(node) -> int:
    return max(catalog.MIN_TRAVEL_MS, math.floor(node.distance * catalog.GATHER_MS_PER_UNIT))


def march_travel_ms() -> int:
    return max(catalog.MIN_TRAVEL_MS, catalog.MARCH_DISTANCE * catalog.MARCH_MS_PER_UNIT)


def _units(params) -> int:
    units = params.get('units')
    if isinstance(units, bool) or not isinstance(units, int) or units <= 0:
        raise InvalidRequest('units must be a positive integer')
    return units


class ActionEngine:
    def __init__(self, registry, sink, scheduler, clock, settings: Optional[EngineSettings] = None,
                 rng: Optional[random.Random] = None, logger=None):
        self.registry = registry
        self.sink = sink
        self.scheduler = scheduler
        self.clock = clock
        self.settings = settings or EngineSettings()
        self.rng = rng or random.Random()
        self.logger = logger
        self._handlers = {
            'gather': self._gather,
            'march': self._march,
            'spy': self._spy,
            'upgrade': self._upgrade,
        }

    def submit(self, room, player_id: str, kind: str, params=None, connection=None) -> ActionOutcome:
        """Apply one action; failures only reach the submitter's connection."""
        if connection is None:
            connection = room.connection_of(player_id)
        try:
            require_id(player_id)
            if room.state != RUNNING or room.game is None:
                raise PreconditionFailed('game is not running')
            handler = self._handlers.get(require_id(kind, 'action'))
            if handler is None:
                raise InvalidRequest(f'unknown action {kind}')
            if params is not None and not isinstance(params, dict):
                raise InvalidRequest('params must be an object')
            movement = handler(room, player_id, params or {})
        except GameError as exc:
            self._log(f"[action-reject] room={room.id} player={player_id} action={kind} code={exc.code} reason={exc.message}")
            self.sink.notify(connection, 'msg', exc.to_dict())
            return ActionOutcome(applied=False, error=exc)
        self._log(f"[action] room={room.id} player={player_id} action={kind}")
        return ActionOutcome(applied=True, movement=movement)

    def _economy(self, room, player_id):
        require_id(player_id)
        record = room.game.player(player_id)
        if record is None:
            raise NotFound(f'player {player_id} has no economy in this game')
        return record

    def _broadcast_state(self, room):
        self.sink.broadcast(room.id, 'state', room.game.to_dict())

    # ---- action kinds ----

    def _gather(self, room, player_id, params):
        units = _units(params)
        origin = self._economy(room, player_id)
        node = room.game.node(params.get('node_id'))
        if node is None:
            raise NotFound('unknown resource node')
        if origin.soldiers < units:
            raise InsufficientResource('not enough soldiers')
        now = self.clock()
        movement = Movement('gather', player_id, node.id, units, now + 2 * gather_travel_ms(node))
        origin.soldiers -= units
        self._dispatch(room, movement, now)
        return movement

    def _march(self, room, player_id, params):
        units = _units(params)
        origin = self._economy(room, player_id)
        target_id = params.get('target_id')
        self._economy(room, target_id)
        if origin.soldiers < units:
            raise InsufficientResource('not enough soldiers')
        now = self.clock()
        movement = Movement('march', player_id, target_id, units, now + march_travel_ms())
        origin.soldiers -= units
        self._dispatch(room, movement, now)
        return movement

    def _spy(self, room, player_id, params):
        origin = self._economy(room, player_id)
        target_id = params.get('target_id')
        self._economy(room, target_id)
        if origin.spies <= 0:
            raise InsufficientResource('no spies')
        origin.spies -= 1
        caught = self.rng.random() < self.settings.spy_catch_chance

        def report():
            connection = room.connection_of(player_id)
            if caught:
                self.sink.notify(connection, 'spyResult', {'ok': False, 'reason': 'caught', 'target': target_id})
                return
            target = room.game.player(target_id)
            if target is None:
                self.sink.notify(connection, 'spyResult', {'ok': False, 'reason': 'target gone', 'target': target_id})
                return
            info = {'population': target.population, 'soldiers': target.soldiers}
            self.sink.notify(connection, 'spyResult', {'ok': True, 'target': target_id, 'info': info})

        self.scheduler.schedule(room.id, self.settings.spy_delay_ms, self.deferred(room, report))
        return None

    def _upgrade(self, room, player_id, params):
        unit = require_id(params.get('unit'), 'unit')
        attr = catalog.UPGRADABLE_UNITS.get(unit)
        if attr is None:
            raise InvalidRequest(f"unknown unit {unit}")
        record = self._economy(room, player_id)
        cost = self.settings.upgrade_food_cost
        if record.food < cost:
            raise InsufficientResource('not enough food')
        record.food -= cost
        setattr(record, attr, getattr(record, attr) + 1)
        self._broadcast_state(room)
        return None

    # ---- movements ----

    def _dispatch(self, room, movement, now):
        room.game.enqueue(movement)
        if self.settings.resolve_movements:
            self._schedule_arrival(room, movement.arrive_at - now)
        self._broadcast_state(room)

    def _schedule_arrival(self, room, delay_ms):
        self.scheduler.schedule(
            room.id,
            max(0, delay_ms),
            self.deferred(room, lambda: self.resolve_arrivals(room, self.clock())),
        )

    def resolve_arrivals(self, room, now: int) -> int:
        """Resolve every movement due at `now` in submission order."""
        due = room.game.pop_due(now)
        for movement in due:
            if movement.kind == 'gather':
                self._arrive_gather(room, movement)
            else:
                self._arrive_march(room, movement)
        if due:
            self._broadcast_state(room)
        elif room.game.movements and self.settings.resolve_movements:
            # Fired ahead of the wall clock; try again at the earliest pending arrival
            earliest = min(m.arrive_at for m in room.game.movements)
            self._schedule_arrival(room, earliest - now)
        return len(due)

    def _arrive_gather(self, room, movement):
        origin = room.game.player(movement.origin)
        node = room.game.node(movement.destination)
        payload = {'movement': movement.to_dict(), 'yield': {}}
        if origin is not None:
            origin.soldiers += movement.units
            if node is not None:
                origin.resources[node.resource] = origin.resources.get(node.resource, 0) + node.rate
                payload['yield'] = {node.resource: node.rate}
        self.sink.notify(room.connection_of(movement.origin), 'movementArrived', payload)

    def _arrive_march(self, room, movement):
        payload = {'movement': movement.to_dict()}
        self.sink.notify(room.connection_of(movement.origin), 'movementArrived', payload)
        self.sink.notify(room.connection_of(movement.destination), 'movementArrived', payload)

    def deferred(self, room, fn):
        """Wrap `fn` so it only runs inside the room lock for the same live game."""
        generation = room.generation

        def run():
            with room.lock:
                if (self.registry.get(room.id) is not room or room.state != RUNNING
                        or room.generation != generation or room.game is None):
                    self._log(f"[timer-abort] room={room.id} generation={generation} state={room.state}")
                    return
                fn()

        return run

    def _log(self, message):
        if self.logger is None:
            return
        try:
            self.logger.info(message)
        except Exception:
            pass
