import os
import random
import sys
from collections import defaultdict

import pytest

# Ensure the backend root (containing the `satrapy` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from satrapy import create_app, db, socketio
from satrapy.services.rooms import RoomService, RoomSettings
from satrapy.services.rooms.broadcast import NotificationSink
from satrapy.services.rooms.engine import EngineSettings
from satrapy.services.rooms.registry import RoomRegistry
from satrapy.services.rooms.scheduler import TaskScheduler


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    MIN_TO_START = 2
    SOCKETIO_NAMESPACE = '/ws'


class FakeClock:
    def __init__(self, now=1_000_000):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class FixedRandom(random.Random):
    """random() always returns `value`, which pins the spy catch roll."""

    def __init__(self, value):
        super().__init__(7)
        self.value = value

    def random(self):
        return self.value


class RecordingSink(NotificationSink):
    """In-memory sink: tracks group membership and every delivery per connection."""

    def __init__(self):
        self.groups = defaultdict(set)
        self.deliveries = defaultdict(list)

    def join(self, connection, room_id):
        if connection is not None:
            self.groups[room_id].add(connection)

    def leave(self, connection, room_id):
        self.groups[room_id].discard(connection)

    def broadcast(self, room_id, event, payload):
        for connection in self.groups.get(room_id, ()):
            self.deliveries[connection].append((event, payload))

    def notify(self, connection, event, payload):
        if connection is not None:
            self.deliveries[connection].append((event, payload))

    def events(self, connection, name=None):
        return [(e, p) for e, p in self.deliveries[connection] if name is None or e == name]

    def receivers(self, name):
        return {c for c, items in self.deliveries.items() if any(e == name for e, _ in items)}

    def clear(self):
        self.deliveries.clear()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def make_service(sink, clock):
    def _make(catch_roll=0.5, min_to_start=6, max_per_faction=3, resolve_movements=True):
        registry = RoomRegistry(
            RoomSettings(max_per_faction=max_per_faction, min_to_start=min_to_start, capacity=12),
            rng=random.Random(42),
        )
        return RoomService(
            sink,
            registry=registry,
            scheduler=TaskScheduler(clock=clock),
            clock=clock,
            engine_settings=EngineSettings(resolve_movements=resolve_movements),
            rng=FixedRandom(catch_roll),
        )
    return _make


@pytest.fixture()
def service(make_service):
    return make_service()


@pytest.fixture()
def running_room(service, sink):
    """A started six-player room: owner 'alice' in elam, 'bob' in pars, four unassigned."""
    room_id = service.create_room('alice', connection='sid-alice').value
    for name in ['bob', 'cara', 'dan', 'eve', 'finn']:
        service.join_room(room_id, name, connection=f'sid-{name}')
    service.assign_role(room_id, 'alice', 'alice', 'elam', connection='sid-alice')
    service.assign_role(room_id, 'alice', 'bob', 'pars', connection='sid-alice')
    assert service.start_game(room_id, 'alice', connection='sid-alice').ok
    sink.clear()
    return service.get_room(room_id)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import satrapy.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def _connect():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/ws'
        )
        clients.append(test_client)
        return test_client

    yield _connect
    for test_client in clients:
        try:
            test_client.disconnect(namespace='/ws')
        except Exception:
            pass
