from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from satrapy.services import identity

main = Blueprint('main', __name__)

_gate = identity.IdentityGate()


@main.route('/register', methods=['POST', 'OPTIONS'])
def register():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    data = request.get_json(silent=True) or {}
    outcome = _gate.register(data.get('username'), data.get('password'))
    if outcome == identity.INVALID:
        return jsonify({'error': 'username/password required'}), 400
    if outcome == identity.EXISTS:
        return jsonify({'error': 'exists'}), 409
    return jsonify({'ok': True}), 201


@main.route('/login', methods=['POST', 'OPTIONS'])
def login():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    data = request.get_json(silent=True) or {}
    username = data.get('username')
    outcome = _gate.login(username, data.get('password'))
    if outcome == identity.INVALID:
        return jsonify({'error': 'username/password required'}), 400
    if outcome == identity.NOT_FOUND:
        return jsonify({'error': 'notfound'}), 404
    if outcome == identity.BAD_PASSWORD:
        return jsonify({'error': 'badpass'}), 401
    user = _gate.find(username)
    login_user(user, remember=True)
    return jsonify({'ok': True, 'user': user.to_dict()})


@main.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'ok': True, 'user': current_user.to_dict()})


@main.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'ok': True})
