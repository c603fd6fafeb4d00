from flask import Blueprint, jsonify, current_app

rooms = Blueprint('rooms', __name__)


def _service():
    return current_app.extensions['satrapy']


def _room_or_404(code):
    room = _service().get_room(code)
    if room is None:
        return None, (jsonify({'error': 'Room not found'}), 404)
    return room, None


@rooms.route('/<string:code>', methods=['GET'])
def get_room(code):
    room, error = _room_or_404(code)
    if error:
        return error
    with room.lock:
        return jsonify(room.to_dict())


@rooms.route('/<string:code>/state', methods=['GET'])
def get_game_state(code):
    room, error = _room_or_404(code)
    if error:
        return error
    with room.lock:
        if room.game is None:
            return jsonify({'error': 'Game has not started'}), 400
        payload = room.game.to_dict()
        payload['room_state'] = room.state
    return jsonify(payload)


@rooms.route('/<string:code>/nodes', methods=['GET'])
def get_nodes(code):
    room, error = _room_or_404(code)
    if error:
        return error
    with room.lock:
        if room.game is None:
            return jsonify({'error': 'Game has not started'}), 400
        return jsonify([node.to_dict() for node in room.game.nodes])
