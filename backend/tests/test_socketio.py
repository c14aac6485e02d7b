from conftest import NOW
from momentum import socketio
from momentum.services import tasks as task_service


def _flush(sio_client):
    sio_client.get_received('/ws')


def test_socket_connect_and_join(sio_client, family):
    assert sio_client.is_connected('/ws')
    _flush(sio_client)

    sio_client.emit('join_household', {'household_id': family.home_a}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'joined' and pkt['args'][0]['room'] == f'household:{family.home_a}'
               for pkt in received)


def test_join_requires_known_household(sio_client):
    _flush(sio_client)
    sio_client.emit('join_household', {}, namespace='/ws')
    sio_client.emit('join_household', {'household_id': 424242}, namespace='/ws')
    names = [pkt['name'] for pkt in sio_client.get_received('/ws')]
    assert names == ['error', 'error']


def test_task_events_reach_household_room(flask_app, sio_client, family):
    sio_client.emit('join_household', {'household_id': family.home_a}, namespace='/ws')
    outsider = socketio.test_client(flask_app, namespace='/ws')
    outsider.emit('join_household', {'household_id': family.home_b}, namespace='/ws')
    _flush(sio_client)
    outsider.get_received('/ws')

    task = task_service.create_task(family.home_a, 'Feed the cat', 10, [family.child_a_profile])
    task_service.complete_task(task.id, family.child_a_profile, now=NOW)
    task_service.approve_task(task.id, now=NOW)

    names = [pkt['name'] for pkt in sio_client.get_received('/ws')]
    assert names.count('task_updated') == 3
    assert 'member_updated' in names
    assert outsider.get_received('/ws') == []
    outsider.disconnect(namespace='/ws')


def test_leave_household_stops_events(sio_client, family):
    sio_client.emit('join_household', {'household_id': family.home_a}, namespace='/ws')
    sio_client.emit('leave_household', {'household_id': family.home_a}, namespace='/ws')
    _flush(sio_client)

    task_service.create_task(family.home_a, 'Feed the cat', 10, [family.child_a_profile])
    assert sio_client.get_received('/ws') == []
