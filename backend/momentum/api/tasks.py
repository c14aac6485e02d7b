from flask import Blueprint, jsonify, request
from flask_login import login_required

from momentum.auth import current_household_id, current_profile, require_parent
from momentum.services import tasks as task_service


tasks = Blueprint('tasks', __name__)


def _outcome_payload(outcome):
    return {
        'task': outcome.task.to_dict(),
        'member': outcome.profile.to_dict(),
        'points_awarded': outcome.points_awarded,
        'multiplier': outcome.multiplier,
        'streak_updated': outcome.streak_updated,
    }


@tasks.route('/', methods=['POST'])
@login_required
def create_task():
    household_id = current_household_id()
    require_parent(household_id)
    data = request.get_json(silent=True) or {}
    task = task_service.create_task(
        household_id,
        data.get('title'),
        data.get('points_value', 0),
        data.get('assigned_to') or [],
        description=data.get('description'),
    )
    return jsonify(task.to_dict()), 201


@tasks.route('/', methods=['GET'])
@login_required
def list_tasks():
    household_id = current_household_id()
    include_shared = request.args.get('include_shared', 'true').lower() != 'false'
    return jsonify([t.to_dict() for t in task_service.list_tasks(household_id, include_shared=include_shared)])


@tasks.route('/<int:task_id>/complete', methods=['POST'])
@login_required
def complete_task(task_id):
    household_id = current_household_id()
    actor = current_profile(household_id)
    outcome = task_service.complete_task(task_id, actor.id, household_id=household_id)
    return jsonify(_outcome_payload(outcome))


@tasks.route('/<int:task_id>/approve', methods=['POST'])
@login_required
def approve_task(task_id):
    household_id = current_household_id()
    require_parent(household_id)
    outcome = task_service.approve_task(task_id, household_id=household_id)
    return jsonify(_outcome_payload(outcome))


@tasks.route('/<int:task_id>/reject', methods=['POST'])
@login_required
def reject_task(task_id):
    household_id = current_household_id()
    require_parent(household_id)
    task = task_service.reject_task(task_id, household_id=household_id)
    return jsonify(task.to_dict())
