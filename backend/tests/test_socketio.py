NS = '/ws'


def _events(client, name):
    return [pkt['args'][0] for pkt in client.get_received(NS) if pkt['name'] == name]


def _create_room(client, player_id):
    client.get_received(NS)
    client.emit('createRoom', {'player_id': player_id}, namespace=NS)
    created = _events(client, 'roomCreated')
    assert created, 'roomCreated not received'
    return created[0]['room_id']


def test_socket_connect_and_ping(sio_factory):
    sio = sio_factory()
    assert sio.is_connected(NS)
    received = sio.get_received(NS)
    assert any(pkt['name'] == 'connected' for pkt in received)
    sio.emit('ping', {'n': 1}, namespace=NS)
    assert _events(sio, 'pong') == [{'n': 1}]


def test_create_and_join_room_over_socket(sio_factory):
    owner = sio_factory()
    guest = sio_factory()
    room_id = _create_room(owner, 'alice')

    guest.get_received(NS)
    guest.emit('joinRoom', {'room_id': room_id, 'player_id': 'bob'}, namespace=NS)
    assert _events(guest, 'joinResult') == [{'ok': True, 'room_id': room_id}]

    updates = _events(owner, 'roomUpdate')
    assert updates and set(updates[-1]['players']) == {'alice', 'bob'}


def test_join_unknown_room_over_socket(sio_factory):
    guest = sio_factory()
    guest.get_received(NS)
    guest.emit('joinRoom', {'room_id': 'ZZZZZZ', 'player_id': 'bob'}, namespace=NS)
    result = _events(guest, 'joinResult')[0]
    assert result['ok'] is False
    assert result['code'] == 'not_found'


def test_role_assignment_goes_to_target(sio_factory):
    owner = sio_factory()
    guest = sio_factory()
    room_id = _create_room(owner, 'alice')
    guest.emit('joinRoom', {'room_id': room_id, 'player_id': 'bob'}, namespace=NS)
    owner.get_received(NS)
    guest.get_received(NS)

    owner.emit('requestAssignRole', {'room_id': room_id, 'requester_id': 'alice',
                                     'target_id': 'bob', 'faction': 'caspian'}, namespace=NS)
    assert _events(guest, 'roleAssigned') == [{'faction': 'caspian', 'seat': 0}]
    assert _events(owner, 'roleAssigned') == []

    guest.emit('requestAssignRole', {'room_id': room_id, 'requester_id': 'bob',
                                     'target_id': 'bob', 'faction': 'pars'}, namespace=NS)
    assert _events(guest, 'msg')[0]['code'] == 'forbidden'


def test_game_flow_over_socket(flask_app, sio_factory):
    owner = sio_factory()
    guest = sio_factory()
    room_id = _create_room(owner, 'alice')
    guest.emit('joinRoom', {'room_id': room_id, 'player_id': 'bob'}, namespace=NS)
    owner.get_received(NS)
    guest.get_received(NS)

    owner.emit('startGame', {'room_id': room_id, 'requester_id': 'alice'}, namespace=NS)
    started = _events(guest, 'gameStarted')
    assert started and set(started[0]['players']) == {'alice', 'bob'}
    owner.get_received(NS)

    guest.emit('action', {'room_id': room_id, 'player_id': 'bob', 'action': 'upgrade',
                          'params': {'unit': 'archer'}}, namespace=NS)
    states = _events(owner, 'state')
    assert states[-1]['players']['bob']['archers'] == 3
    assert states[-1]['players']['bob']['food'] == 10

    guest.get_received(NS)
    guest.emit('action', {'room_id': room_id, 'player_id': 'bob', 'action': 'gather',
                          'params': {'node_id': 'node1', 'units': 50}}, namespace=NS)
    assert _events(guest, 'msg')[0]['text'] == 'not enough soldiers'
    assert _events(owner, 'msg') == []

    guest.emit('action', {'room_id': room_id, 'player_id': 'bob', 'action': 'spy',
                          'params': {'target_id': 'alice'}}, namespace=NS)
    service = flask_app.extensions['satrapy']
    assert len(service.scheduler.pending(room_id)) == 1

    owner.emit('stopGame', {'room_id': room_id, 'requester_id': 'alice'}, namespace=NS)
    assert _events(guest, 'roomUpdate')[-1]['state'] == 'stopped'
    assert service.scheduler.pending(room_id) == []


def test_private_chat_over_socket(sio_factory):
    alice = sio_factory()
    bob = sio_factory()
    cara = sio_factory()
    room_id = _create_room(alice, 'alice')
    bob.emit('joinRoom', {'room_id': room_id, 'player_id': 'bob'}, namespace=NS)
    cara.emit('joinRoom', {'room_id': room_id, 'player_id': 'cara'}, namespace=NS)
    for c in (alice, bob, cara):
        c.get_received(NS)

    alice.emit('chat', {'room_id': room_id, 'from_id': 'alice', 'channel': 'private',
                        'to_id': 'bob', 'text': 'hi'}, namespace=NS)
    assert [m['text'] for m in _events(alice, 'chat')] == ['hi']
    assert [m['text'] for m in _events(bob, 'chat')] == ['hi']
    assert _events(cara, 'chat') == []

    alice.emit('chat', {'room_id': room_id, 'from_id': 'alice', 'channel': 'global', 'text': 'all'}, namespace=NS)
    for c in (alice, bob, cara):
        assert [m['text'] for m in _events(c, 'chat')] == ['all']


def test_close_room_over_socket(flask_app, sio_factory):
    owner = sio_factory()
    guest = sio_factory()
    room_id = _create_room(owner, 'alice')
    guest.emit('joinRoom', {'room_id': room_id, 'player_id': 'bob'}, namespace=NS)
    guest.get_received(NS)

    owner.emit('closeRoom', {'room_id': room_id, 'requester_id': 'alice'}, namespace=NS)
    assert _events(guest, 'roomClosed') == [{'room_id': room_id}]
    assert flask_app.extensions['satrapy'].get_room(room_id) is None
