from typing import List

from momentum.models import Household, MemberProfile, SyncIntent
from momentum.services.sync import enqueue_points_sync

TASK_APPROVAL = 'task_approval'
ROUTINE_COMPLETION = 'routine_completion'


def award_points(household: Household, profile: MemberProfile, delta: int, reason: str,
                 now=None) -> List[SyncIntent]:
    """Credit ``delta`` to the profile and queue mirrors for linked households.

    Runs inside the caller's unit of work; the caller commits and then hands
    the returned intents to ``sync.dispatch``.
    """
    household.credit_points(profile, delta)
    return enqueue_points_sync(household.id, profile.family_member_id, delta, reason, now=now)
