from typing import Iterable, List, NamedTuple, Optional

from flask import current_app

from momentum import db
from momentum.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from momentum.events import TASK_UPDATED, emit_household_event, emit_member_update
from momentum.models import (
    OPEN_TASK_STATUSES,
    Household,
    MemberProfile,
    Task,
    TaskStatus,
    utcnow,
)
from momentum.services import commit_or_conflict, sync
from momentum.services.points import TASK_APPROVAL, award_points
from momentum.services.streaks import apply_multiplier, compute_transition


class TaskOutcome(NamedTuple):
    task: Task
    profile: MemberProfile
    points_awarded: int
    multiplier: float
    streak_updated: bool


def _load_task(task_id, household_id=None) -> Task:
    task = db.session.get(Task, task_id)
    if task is None or (household_id is not None and task.household_id != household_id):
        raise NotFoundError('Task not found', {'task_id': task_id})
    return task


def _emit_task(task: Task, kind: str) -> None:
    emit_household_event(TASK_UPDATED, {'type': kind, 'task': task.to_dict()}, task.household_id)


def create_task(household_id: int, title: str, points_value, assigned_to: Iterable[int],
                description: Optional[str] = None) -> Task:
    household = db.session.get(Household, household_id)
    if household is None:
        raise NotFoundError('Household not found', {'household_id': household_id})
    title = (title or '').strip()
    if not title:
        raise ValidationError('Task title is required')
    try:
        points_value = int(points_value)
    except (TypeError, ValueError):
        raise ValidationError('Points value must be an integer')
    if points_value < 0:
        raise ValidationError('Points value cannot be negative')

    assignees = []
    for profile_id in assigned_to or []:
        profile = household.profile(profile_id)
        if profile is None:
            raise ValidationError('Assignee is not a member of this household', {'profile_id': profile_id})
        if profile not in assignees:
            assignees.append(profile)
    if not assignees:
        raise ValidationError('A task needs at least one assignee')

    task = Task(
        household_id=household_id,
        title=title,
        description=description,
        points_value=points_value,
        status=TaskStatus.PENDING,
    )
    task.assignees = assignees
    db.session.add(task)
    db.session.commit()
    _emit_task(task, 'create')
    return task


def list_tasks(household_id: int, include_shared: bool = True) -> List[Task]:
    own = Task.query.filter_by(household_id=household_id).order_by(Task.created_at.desc(), Task.id.desc()).all()
    if not include_shared:
        return own
    return own + sync.shared_tasks_for(household_id)


def complete_task(task_id: int, acting_profile_id: int, household_id=None, now=None) -> TaskOutcome:
    """Mark a task done by one of its assignees.

    Parents are trusted: their completion is approved on the spot and paid
    at face value, without touching the streak. Children wait for approval.
    """
    now = now or utcnow()
    task = _load_task(task_id, household_id)
    if not task.is_assigned(acting_profile_id):
        raise ForbiddenError('Member not assigned to this task', {'task_id': task.id})
    if task.status != TaskStatus.PENDING:
        raise ConflictError('Task has already been completed', {'status': task.status.value})

    household = db.session.get(Household, task.household_id)
    actor = household.profile(acting_profile_id)
    task.completed_by_id = actor.id
    intents = []
    points_awarded = 0
    if actor.is_parent:
        intents = award_points(household, actor, task.points_value, TASK_APPROVAL, now=now)
        points_awarded = task.points_value
        task.status = TaskStatus.APPROVED
    else:
        task.status = TaskStatus.PENDING_APPROVAL
    commit_or_conflict('Household')

    current_app.logger.info(
        f"[task-complete] task={task.id} member={actor.id} status={task.status.value} points={points_awarded}"
    )
    _emit_task(task, 'update')
    if points_awarded:
        emit_member_update(task.household_id, actor)
    sync.dispatch(intents, now=now)
    return TaskOutcome(task, actor, points_awarded, 1.0, False)


def approve_task(task_id: int, household_id=None, now=None) -> TaskOutcome:
    now = now or utcnow()
    task = _load_task(task_id, household_id)
    if task.status != TaskStatus.PENDING_APPROVAL:
        raise ConflictError('Task is not pending approval', {'status': task.status.value})

    household = db.session.get(Household, task.household_id)
    profile = household.profile(task.completed_by_id)
    if profile is None:
        raise NotFoundError('Member profile for this completion no longer exists', {'task_id': task.id})

    # The streak only moves once nothing else assigned to this member is open
    outstanding = Task.query.filter(
        Task.household_id == task.household_id,
        Task.id != task.id,
        Task.status.in_(OPEN_TASK_STATUSES),
        Task.assignees.any(MemberProfile.id == profile.id),
    ).count()
    all_done = outstanding == 0

    transition = compute_transition(
        profile.current_streak,
        profile.longest_streak,
        profile.last_completion_date,
        all_done,
        today=now.date(),
    )
    if all_done:
        household.record_streak(profile, transition)
    points = apply_multiplier(task.points_value, transition.multiplier)
    intents = award_points(household, profile, points, TASK_APPROVAL, now=now)
    task.status = TaskStatus.APPROVED
    commit_or_conflict('Household')

    current_app.logger.info(
        f"[task-approve] task={task.id} member={profile.id} points={points} "
        f"multiplier={transition.multiplier} streak={profile.current_streak} change={transition.change}"
    )
    _emit_task(task, 'update')
    emit_member_update(task.household_id, profile)
    sync.dispatch(intents, now=now)
    return TaskOutcome(task, profile, points, transition.multiplier, all_done)


def reject_task(task_id: int, household_id=None) -> Task:
    task = _load_task(task_id, household_id)
    if task.status != TaskStatus.PENDING_APPROVAL:
        raise ConflictError('Task is not pending approval', {'status': task.status.value})
    task.status = TaskStatus.PENDING
    task.completed_by_id = None
    db.session.commit()
    current_app.logger.info(f"[task-reject] task={task.id}")
    _emit_task(task, 'reject')
    return task
