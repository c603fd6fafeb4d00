from flask import current_app, request
from flask_socketio import emit


def _service():
    return current_app.extensions['satrapy']


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _payload(data):
    return data if isinstance(data, dict) else {}


def handle_connect():
    emit('connected', {'message': 'Connected'})


def handle_disconnect(*args):
    dropped = _service().disconnect(_get_sid())
    if dropped:
        current_app.logger.info(f"[disconnect] sid={_get_sid()} memberships={dropped}")


def handle_create_room(data):
    data = _payload(data)
    _service().create_room(data.get('player_id'), connection=_get_sid())


def handle_join_room(data):
    data = _payload(data)
    _service().join_room(data.get('room_id'), data.get('player_id'), connection=_get_sid())


def handle_leave_room(data):
    data = _payload(data)
    _service().leave_room(data.get('room_id'), data.get('player_id'), connection=_get_sid())


def handle_close_room(data):
    data = _payload(data)
    _service().close_room(data.get('room_id'), data.get('requester_id'), connection=_get_sid())


def handle_assign_role(data):
    data = _payload(data)
    _service().assign_role(
        data.get('room_id'),
        data.get('requester_id'),
        data.get('target_id'),
        data.get('faction'),
        connection=_get_sid(),
    )


def handle_start_game(data):
    data = _payload(data)
    _service().start_game(data.get('room_id'), data.get('requester_id'), connection=_get_sid())


def handle_stop_game(data):
    data = _payload(data)
    _service().stop_game(data.get('room_id'), data.get('requester_id'), connection=_get_sid())


def handle_action(data):
    data = _payload(data)
    _service().submit_action(
        data.get('room_id'),
        data.get('player_id'),
        data.get('action'),
        data.get('params'),
        connection=_get_sid(),
    )


def handle_chat(data):
    data = _payload(data)
    _service().send_chat(
        data.get('room_id'),
        data.get('from_id'),
        data.get('channel'),
        data.get('to_id'),
        data.get('text', ''),
        connection=_get_sid(),
    )


def handle_ping(data):
    emit('pong', data or {})


_HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'createRoom': handle_create_room,
    'joinRoom': handle_join_room,
    'leaveRoom': handle_leave_room,
    'closeRoom': handle_close_room,
    'requestAssignRole': handle_assign_role,
    'startGame': handle_start_game,
    'stopGame': handle_stop_game,
    'action': handle_action,
    'chat': handle_chat,
    'ping': handle_ping,
}


def register_socketio_handlers(namespace: str = '/ws') -> None:
    """Register every room event handler on `namespace`."""
    from satrapy import socketio

    for event, handler in _HANDLERS.items():
        socketio.on_event(event, handler, namespace=namespace)
