from momentum import socketio
from typing import Any, Dict

TASK_UPDATED = 'task_updated'
ROUTINE_UPDATED = 'routine_updated'
MEMBER_UPDATED = 'member_updated'
NOTIFICATION = 'notification'

NAMESPACE = '/ws'


def household_room(household_id) -> str:
    return f"household:{household_id}"


def emit_household_event(event: str, payload: Dict[str, Any], household_id) -> None:
    """Push a domain event to every client subscribed to the household."""
    socketio.emit(event, payload, to=household_room(household_id), namespace=NAMESPACE)


def emit_member_update(household_id, profile) -> None:
    emit_household_event(MEMBER_UPDATED, {
        'member_id': profile.id,
        'points_total': profile.points_total,
        'current_streak': profile.current_streak,
        'longest_streak': profile.longest_streak,
        'streak_multiplier': profile.streak_multiplier,
    }, household_id)


def emit_notification(household_id, kind: str, message: str, **data) -> None:
    payload = {'type': kind, 'message': message}
    payload.update(data)
    emit_household_event(NOTIFICATION, payload, household_id)
