from datetime import timedelta

import pytest
from sqlalchemy import text

from conftest import NOW
from momentum import db
from momentum.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from momentum.models import Household, MemberProfile, Task, TaskStatus
from momentum.services import tasks as task_service


def _profile(profile_id):
    return db.session.get(MemberProfile, profile_id)


def _task(family, points=10, assignees=None):
    return task_service.create_task(
        family.home_a, 'Feed the cat', points, assignees or [family.child_a_profile]
    ).id


def test_create_task_validates_input(family):
    with pytest.raises(ValidationError):
        task_service.create_task(family.home_a, '  ', 5, [family.child_a_profile])
    with pytest.raises(ValidationError):
        task_service.create_task(family.home_a, 'Dishes', -1, [family.child_a_profile])
    with pytest.raises(ValidationError):
        task_service.create_task(family.home_a, 'Dishes', 5, [family.parent_b_profile])
    with pytest.raises(ValidationError):
        task_service.create_task(family.home_a, 'Dishes', 5, [])


def test_parent_completion_is_approved_immediately(family):
    task_id = _task(family, points=10, assignees=[family.parent_a_profile])
    outcome = task_service.complete_task(task_id, family.parent_a_profile, now=NOW)

    assert outcome.task.status == TaskStatus.APPROVED
    assert outcome.points_awarded == 10
    parent = _profile(family.parent_a_profile)
    assert parent.points_total == 10
    assert parent.current_streak == 0
    assert parent.last_completion_date is None


def test_child_completion_waits_for_approval(family):
    task_id = _task(family)
    outcome = task_service.complete_task(task_id, family.child_a_profile, now=NOW)

    assert outcome.task.status == TaskStatus.PENDING_APPROVAL
    assert outcome.task.completed_by_id == family.child_a_profile
    assert _profile(family.child_a_profile).points_total == 0


def test_complete_requires_assignment_and_pending(family):
    task_id = _task(family)
    with pytest.raises(ForbiddenError):
        task_service.complete_task(task_id, family.parent_a_profile, now=NOW)
    task_service.complete_task(task_id, family.child_a_profile, now=NOW)
    with pytest.raises(ConflictError):
        task_service.complete_task(task_id, family.child_a_profile, now=NOW)


def test_complete_outside_household_is_not_found(family):
    task_id = _task(family)
    with pytest.raises(NotFoundError):
        task_service.complete_task(task_id, family.child_a_profile, household_id=family.home_b)
    with pytest.raises(NotFoundError):
        task_service.complete_task(9999, family.child_a_profile)


def test_first_approval_starts_streak(family):
    task_id = _task(family, points=10)
    task_service.complete_task(task_id, family.child_a_profile, now=NOW)
    outcome = task_service.approve_task(task_id, now=NOW)

    child = _profile(family.child_a_profile)
    assert outcome.points_awarded == 10
    assert outcome.multiplier == 1.0
    assert outcome.streak_updated is True
    assert child.current_streak == 1
    assert child.last_completion_date == NOW.date()
    assert child.points_total == 10


def test_approval_crossing_tier_applies_new_multiplier(family):
    child = _profile(family.child_a_profile)
    child.current_streak = 6
    child.longest_streak = 6
    child.last_completion_date = NOW.date() - timedelta(days=1)
    db.session.commit()

    task_id = _task(family, points=20)
    task_service.complete_task(task_id, family.child_a_profile, now=NOW)
    outcome = task_service.approve_task(task_id, now=NOW)

    child = _profile(family.child_a_profile)
    assert child.current_streak == 7
    assert child.longest_streak == 7
    assert child.streak_multiplier == 2.0
    assert outcome.points_awarded == 40
    assert child.points_total == 40


def test_outstanding_task_holds_streak(family):
    first = _task(family, points=10)
    _task(family, points=5)
    task_service.complete_task(first, family.child_a_profile, now=NOW)
    outcome = task_service.approve_task(first, now=NOW)

    assert outcome.streak_updated is False
    assert _profile(family.child_a_profile).current_streak == 0
    assert outcome.points_awarded == 10


def test_same_day_approvals_increment_streak_once(family):
    first = _task(family, points=10)
    task_service.complete_task(first, family.child_a_profile, now=NOW)
    task_service.approve_task(first, now=NOW)

    second = _task(family, points=10)
    task_service.complete_task(second, family.child_a_profile, now=NOW)
    outcome = task_service.approve_task(second, now=NOW + timedelta(hours=2))

    assert outcome.streak_updated is True
    assert _profile(family.child_a_profile).current_streak == 1


def test_approve_is_not_idempotent(family):
    task_id = _task(family, points=10)
    task_service.complete_task(task_id, family.child_a_profile, now=NOW)
    task_service.approve_task(task_id, now=NOW)
    with pytest.raises(ConflictError):
        task_service.approve_task(task_id, now=NOW)
    assert _profile(family.child_a_profile).points_total == 10


def test_reject_returns_task_to_pending(family):
    task_id = _task(family)
    task_service.complete_task(task_id, family.child_a_profile, now=NOW)
    task = task_service.reject_task(task_id)

    assert task.status == TaskStatus.PENDING
    assert task.completed_by_id is None
    with pytest.raises(ConflictError):
        task_service.reject_task(task_id)


def test_stale_household_version_is_a_conflict(family):
    task_id = _task(family, points=10)
    task_service.complete_task(task_id, family.child_a_profile, now=NOW)

    household = db.session.get(Household, family.home_a)
    assert household.version is not None
    # Another writer commits a change to the household in the meantime
    db.session.execute(text('UPDATE household SET version = version + 1 WHERE id = :id'), {'id': family.home_a})

    with pytest.raises(ConflictError):
        task_service.approve_task(task_id, now=NOW)

    assert db.session.get(Task, task_id).status == TaskStatus.PENDING_APPROVAL
    assert _profile(family.child_a_profile).points_total == 0


def test_list_tasks_scoped_to_household(family):
    _task(family)
    task_service.create_task(family.home_b, 'Homework', 5, [family.parent_b_profile])

    titles = [t.title for t in task_service.list_tasks(family.home_a)]
    assert titles == ['Feed the cat']
