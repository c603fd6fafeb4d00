"""Room domain: registry, factions, game state, actions and timers.

Transport code (Socket.IO handlers, HTTP routes) talks to RoomService;
everything below it stays free of Flask request state.
"""

from .registry import Room, RoomRegistry, RoomSettings  # noqa: F401
from .service import Result, RoomService  # noqa: F401
