"""Fan-out of room events to connected clients.

The room domain only talks to a NotificationSink; connection handles are
opaque to it (Socket.IO session ids in production).
"""

import logging
from abc import ABC, abstractmethod

from flask_socketio import join_room, leave_room


def group_name(room_id: str) -> str:
    return f"room:{room_id}"


class NotificationSink(ABC):
    @abstractmethod
    def join(self, connection, room_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def leave(self, connection, room_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def broadcast(self, room_id: str, event: str, payload) -> None:
        raise NotImplementedError

    @abstractmethod
    def notify(self, connection, event: str, payload) -> None:
        raise NotImplementedError


class SocketIOSink(NotificationSink):
    """Deliver through Flask-SocketIO rooms on a single namespace."""

    def __init__(self, socketio, namespace='/ws', logger=None):
        self.socketio = socketio
        self.namespace = namespace
        self.logger = logger or logging.getLogger(__name__)

    def join(self, connection, room_id):
        if connection is None:
            return
        try:
            join_room(group_name(room_id), sid=connection, namespace=self.namespace)
        except Exception as exc:
            self.logger.warning(f"[sink-join-failed] room={room_id} sid={connection} error={exc}")

    def leave(self, connection, room_id):
        if connection is None:
            return
        try:
            leave_room(group_name(room_id), sid=connection, namespace=self.namespace)
        except Exception as exc:
            self.logger.warning(f"[sink-leave-failed] room={room_id} sid={connection} error={exc}")

    def broadcast(self, room_id, event, payload):
        try:
            self.socketio.emit(event, payload, to=group_name(room_id), namespace=self.namespace)
        except Exception as exc:
            self.logger.warning(f"[sink-broadcast-failed] room={room_id} event={event} error={exc}")

    def notify(self, connection, event, payload):
        if connection is None:
            return
        try:
            self.socketio.emit(event, payload, to=connection, namespace=self.namespace)
        except Exception as exc:
            self.logger.warning(f"[sink-notify-failed] sid={connection} event={event} error={exc}")
