import pytest

from satrapy.services.rooms.broadcast import NotificationSink, SocketIOSink, group_name


def test_sink_interface_requires_every_method():
    class BroadcastOnly(NotificationSink):
        def broadcast(self, room_id, event, payload):
            pass

    with pytest.raises(TypeError):
        BroadcastOnly()
    with pytest.raises(TypeError):
        NotificationSink()


def test_socketio_sink_targets_room_group():
    emitted = []

    class FakeSocketIO:
        def emit(self, event, payload, to=None, namespace=None):
            emitted.append((event, payload, to, namespace))

    sink = SocketIOSink(FakeSocketIO(), namespace='/ws')
    sink.broadcast('ABC123', 'roomUpdate', {'id': 'ABC123'})
    sink.notify('sid-1', 'msg', {'text': 'hi'})
    sink.notify(None, 'msg', {'text': 'dropped'})
    assert emitted == [
        ('roomUpdate', {'id': 'ABC123'}, group_name('ABC123'), '/ws'),
        ('msg', {'text': 'hi'}, 'sid-1', '/ws'),
    ]
