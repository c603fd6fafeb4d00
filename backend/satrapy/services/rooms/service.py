import random
from dataclasses import dataclass
from typing import Any, Optional

from .engine import ActionEngine, ActionOutcome, EngineSettings
from .errors import GameError, InvalidRequest, require_id
from .registry import RoomRegistry, RoomSettings
from .scheduler import TaskScheduler, wall_clock_ms

CHAT_BROADCAST_CHANNELS = ('global', 'alliance')
CHAT_PRIVATE = 'private'


@dataclass
class Result:
    ok: bool
    value: Any = None
    error: Optional[GameError] = None


class RoomService:
    """Request boundary for everything that happens inside rooms.

    Each public method takes the caller's connection handle, serialises on
    the room's lock, and turns GameError into a notification for that
    connection only. Nothing here raises GameError to its caller.
    """

    def __init__(self, sink, registry: Optional[RoomRegistry] = None, scheduler: Optional[TaskScheduler] = None,
                 clock=wall_clock_ms, engine_settings: Optional[EngineSettings] = None,
                 rng: Optional[random.Random] = None, logger=None):
        self.sink = sink
        self.registry = registry or RoomRegistry()
        self.clock = clock
        self.logger = logger
        self.scheduler = scheduler or TaskScheduler(clock=clock, logger=logger)
        self.engine = ActionEngine(
            self.registry, sink, self.scheduler, clock,
            settings=engine_settings, rng=rng, logger=logger,
        )

    @classmethod
    def from_config(cls, config, sink, scheduler=None, clock=wall_clock_ms, rng=None, logger=None):
        settings = RoomSettings(
            max_per_faction=int(config.get('MAX_PER_FACTION', 3)),
            min_to_start=int(config.get('MIN_TO_START', 6)),
            capacity=int(config.get('ROOM_CAPACITY', 12)),
        )
        registry = RoomRegistry(
            settings,
            code_length=int(config.get('ROOM_CODE_LENGTH', 6)),
            code_attempts=int(config.get('ROOM_CODE_ATTEMPTS', 50)),
        )
        engine_settings = EngineSettings(
            spy_delay_ms=int(config.get('SPY_DELAY_MS', 2000)),
            spy_catch_chance=float(config.get('SPY_CATCH_CHANCE', 0.2)),
            upgrade_food_cost=int(config.get('UPGRADE_FOOD_COST', 10)),
            resolve_movements=bool(config.get('RESOLVE_MOVEMENTS', True)),
        )
        return cls(sink, registry=registry, scheduler=scheduler, clock=clock,
                   engine_settings=engine_settings, rng=rng, logger=logger)

    # ---- helpers ----

    def _log(self, message):
        if self.logger is None:
            return
        try:
            self.logger.info(message)
        except Exception:
            pass

    def _reject(self, tag, connection, exc: GameError, event='msg') -> Result:
        self._log(f"[{tag}-reject] code={exc.code} reason={exc.message}")
        if event == 'msg':
            self.sink.notify(connection, event, exc.to_dict())
        else:
            self.sink.notify(connection, event, {'ok': False, 'error': exc.message, 'code': exc.code})
        return Result(ok=False, error=exc)

    def _broadcast_room(self, room):
        self.sink.broadcast(room.id, 'roomUpdate', room.to_dict())

    # ---- registry ----

    def get_room(self, room_id):
        return self.registry.get(room_id)

    def create_room(self, owner_id: str, connection=None) -> Result:
        try:
            require_id(owner_id)
            room = self.registry.create(owner_id)
        except GameError as exc:
            return self._reject('room-create', connection, exc)
        with room.lock:
            room.add_member(owner_id, connection)
            self.sink.join(connection, room.id)
            self.sink.notify(connection, 'roomCreated', {'room_id': room.id})
            self._broadcast_room(room)
        self._log(f"[room-create] room={room.id} owner={owner_id}")
        return Result(ok=True, value=room.id)

    def join_room(self, room_id, player_id: str, connection=None) -> Result:
        try:
            require_id(player_id)
            room = self.registry.require(room_id)
            with room.lock:
                previous = room.connection_of(player_id)
                room.add_member(player_id, connection)
                if previous is not None and previous != connection:
                    # Old socket stops receiving room traffic once the player re-joins elsewhere
                    self.sink.leave(previous, room.id)
                self.sink.join(connection, room.id)
                self.sink.notify(connection, 'joinResult', {'ok': True, 'room_id': room.id})
                self._broadcast_room(room)
        except GameError as exc:
            return self._reject('room-join', connection, exc, event='joinResult')
        self._log(f"[room-join] room={room.id} player={player_id} players={len(room.players)}")
        return Result(ok=True, value=room.id)

    def leave_room(self, room_id, player_id: str, connection=None) -> Result:
        try:
            room = self.registry.require(room_id)
            with room.lock:
                membership = room.remove_member(player_id)
                self.sink.leave(membership.connection, room.id)
                self.sink.notify(membership.connection, 'left', {'room_id': room.id})
                close = player_id == room.owner or not room.players
                if not close:
                    self._broadcast_room(room)
        except GameError as exc:
            return self._reject('room-leave', connection, exc)
        self._log(f"[room-leave] room={room.id} player={player_id}")
        if close:
            self.destroy_room(room.id)
        return Result(ok=True)

    def close_room(self, room_id, requester_id: str, connection=None) -> Result:
        try:
            room = self.registry.require(room_id)
            with room.lock:
                room.require_owner(requester_id, 'close the room')
        except GameError as exc:
            return self._reject('room-close', connection, exc)
        self.destroy_room(room.id)
        return Result(ok=True)

    def destroy_room(self, room_id) -> bool:
        room = self.registry.destroy(room_id)
        if room is None:
            return False
        cancelled = self.scheduler.cancel_room(room.id)
        with room.lock:
            room.stop()
            self.sink.broadcast(room.id, 'roomClosed', {'room_id': room.id})
            for connection in room.connections():
                self.sink.leave(connection, room.id)
        self._log(f"[room-destroy] room={room.id} cancelled_timers={cancelled}")
        return True

    def disconnect(self, connection) -> int:
        """Forget a dropped connection; memberships stay until the player re-joins or leaves."""
        dropped = 0
        for room in self.registry.rooms():
            with room.lock:
                for membership in room.players.values():
                    if membership.connection == connection:
                        membership.connection = None
                        dropped += 1
        return dropped

    # ---- factions and lifecycle ----

    def assign_role(self, room_id, requester_id: str, target_id: str, faction: str, connection=None) -> Result:
        try:
            room = self.registry.require(room_id)
            with room.lock:
                room.require_owner(requester_id, 'assign factions')
                membership = room.assign(target_id, faction)
                self.sink.notify(membership.connection, 'roleAssigned',
                                 {'faction': membership.faction, 'seat': membership.seat})
                self._broadcast_room(room)
        except GameError as exc:
            return self._reject('assign', connection, exc)
        self._log(f"[assign] room={room.id} player={target_id} faction={faction} seat={membership.seat}")
        return Result(ok=True, value=membership)

    def start_game(self, room_id, requester_id: str, connection=None) -> Result:
        try:
            room = self.registry.require(room_id)
            with room.lock:
                room.require_owner(requester_id, 'start the game')
                game = room.start(self.clock())
                self.sink.broadcast(room.id, 'gameStarted', game.to_dict())
                self._broadcast_room(room)
        except GameError as exc:
            return self._reject('start', connection, exc)
        self._log(f"[start] room={room.id} players={len(game.players)} generation={room.generation}")
        return Result(ok=True, value=game)

    def stop_game(self, room_id, requester_id: str, connection=None) -> Result:
        try:
            room = self.registry.require(room_id)
            with room.lock:
                room.require_owner(requester_id, 'stop the game')
                room.stop()
                cancelled = self.scheduler.cancel_room(room.id)
                self._broadcast_room(room)
        except GameError as exc:
            return self._reject('stop', connection, exc)
        self._log(f"[stop] room={room.id} cancelled_timers={cancelled}")
        return Result(ok=True)

    # ---- gameplay ----

    def submit_action(self, room_id, player_id: str, kind: str, params=None, connection=None) -> ActionOutcome:
        try:
            room = self.registry.require(room_id)
        except GameError as exc:
            self._reject('action', connection, exc)
            return ActionOutcome(applied=False, error=exc)
        with room.lock:
            return self.engine.submit(room, player_id, kind, params, connection=connection)

    def send_chat(self, room_id, from_id: str, channel: str, to_id=None, text='', connection=None) -> Result:
        try:
            room = self.registry.require(room_id)
            with room.lock:
                sender = room.member(from_id)
                if not isinstance(text, str):
                    raise InvalidRequest('chat text must be a string')
                message = {'ts': self.clock(), 'from': from_id, 'channel': channel, 'to': to_id, 'text': text}
                if channel in CHAT_BROADCAST_CHANNELS:
                    self.sink.broadcast(room.id, 'chat', message)
                elif channel == CHAT_PRIVATE:
                    require_id(to_id, 'recipient id')
                    recipient = room.connection_of(to_id)
                    sender_connection = sender.connection or connection
                    if recipient is not None and recipient != sender_connection:
                        self.sink.notify(recipient, 'chat', message)
                    self.sink.notify(sender_connection, 'chat', message)
                else:
                    raise InvalidRequest(f'unknown chat channel {channel}')
        except GameError as exc:
            return self._reject('chat', connection, exc)
        return Result(ok=True, value=message)
