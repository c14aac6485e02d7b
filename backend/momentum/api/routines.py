from flask import Blueprint, jsonify
from flask_login import login_required

from momentum.auth import current_household_id, current_profile
from momentum.services.routines import complete_routine as svc_complete_routine


routines = Blueprint('routines', __name__)


@routines.route('/<int:routine_id>/complete', methods=['POST'])
@login_required
def complete_routine(routine_id):
    household_id = current_household_id()
    actor = current_profile(household_id)
    routine, profile = svc_complete_routine(routine_id, actor.id, household_id=household_id)
    return jsonify({
        'routine': routine.to_dict(),
        'member': profile.to_dict(),
        'points_awarded': routine.points_reward,
    })
