from flask import current_app, request
from flask_socketio import emit, join_room, leave_room

from momentum import db, socketio
from momentum.events import NAMESPACE, household_room
from momentum.models import Household


def handle_connect():
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(reason=None):
    current_app.logger.debug(f"[ws-disconnect] sid={request.sid}")


def _household_id(data):
    raw = (data or {}).get('household_id')
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def handle_join_household(data):
    household_id = _household_id(data)
    if household_id is None:
        emit('error', {'message': 'household_id is required'})
        return
    if db.session.get(Household, household_id) is None:
        emit('error', {'message': 'Unknown household'})
        return
    room = household_room(household_id)
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_household(data):
    household_id = _household_id(data)
    if household_id is None:
        emit('error', {'message': 'household_id is required'})
        return
    room = household_room(household_id)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', {'sid': request.sid, **(data or {})})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    for namespace in ([NAMESPACE, '/'] if testing else [NAMESPACE]):
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('join_household', handle_join_household, namespace=namespace)
        socketio.on_event('leave_household', handle_leave_household, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
