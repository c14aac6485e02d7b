from flask import current_app

from momentum import db
from momentum.errors import ForbiddenError, NotFoundError
from momentum.events import ROUTINE_UPDATED, emit_household_event, emit_member_update
from momentum.models import Household, Routine, utcnow
from momentum.services import commit_or_conflict, sync
from momentum.services.points import ROUTINE_COMPLETION, award_points


def complete_routine(routine_id: int, acting_profile_id: int, household_id=None, now=None):
    """Pay out a routine's reward to its assignee; no streak multiplier applies."""
    now = now or utcnow()
    routine = db.session.get(Routine, routine_id)
    if routine is None or not routine.is_active or (household_id is not None and routine.household_id != household_id):
        raise NotFoundError('Routine not found', {'routine_id': routine_id})
    if routine.assigned_to_id != acting_profile_id:
        raise ForbiddenError('This routine is assigned to a different member')

    household = db.session.get(Household, routine.household_id)
    profile = household.profile(acting_profile_id)
    intents = award_points(household, profile, routine.points_reward, ROUTINE_COMPLETION, now=now)
    routine.last_completed_at = now
    commit_or_conflict('Household')

    current_app.logger.info(f"[routine-complete] routine={routine.id} member={profile.id} points={routine.points_reward}")
    emit_household_event(ROUTINE_UPDATED, {'type': 'complete', 'routine': routine.to_dict()}, routine.household_id)
    emit_member_update(routine.household_id, profile)
    sync.dispatch(intents, now=now)
    return routine, profile
