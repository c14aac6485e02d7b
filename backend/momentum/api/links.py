from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from momentum.auth import current_household_id, require_parent
from momentum.errors import ValidationError
from momentum.services import links as link_service


links = Blueprint('links', __name__)


@links.route('/child/link-code', methods=['POST'])
@login_required
def generate_link_code():
    household_id = current_household_id()
    require_parent(household_id)
    data = request.get_json(silent=True) or {}
    child_id = data.get('child_id')
    if child_id is None:
        raise ValidationError('child_id is required')
    link_code, created = link_service.generate_link_code(household_id, child_id, current_user.id)
    return jsonify(link_code.to_dict()), 201 if created else 200


@links.route('/child/link-existing', methods=['POST'])
@login_required
def link_existing_child():
    household_id = current_household_id()
    require_parent(household_id)
    data = request.get_json(silent=True) or {}
    link = link_service.link_child_with_code(
        data.get('code'),
        household_id,
        current_user.id,
        data.get('display_name'),
        profile_color=data.get('profile_color') or '#4F46E5',
    )
    return jsonify(link.to_dict(include_history=False)), 201


@links.route('/links', methods=['GET'])
@login_required
def list_links():
    household_id = current_household_id()
    return jsonify([link.to_dict(include_history=False) for link in link_service.list_links(household_id)])


@links.route('/link/<int:link_id>', methods=['GET'])
@login_required
def get_link(link_id):
    household_id = current_household_id()
    return jsonify(link_service.get_link(link_id, household_id).to_dict())


@links.route('/link/<int:link_id>/propose-change', methods=['POST'])
@login_required
def propose_change(link_id):
    household_id = current_household_id()
    require_parent(household_id)
    data = request.get_json(silent=True) or {}
    change = link_service.propose_change(
        link_id,
        data.get('setting'),
        data.get('value'),
        household_id,
        current_user.id,
    )
    return jsonify(change.to_dict()), 201


@links.route('/link/<int:link_id>/approve-change/<int:change_id>', methods=['POST'])
@login_required
def approve_change(link_id, change_id):
    household_id = current_household_id()
    require_parent(household_id)
    link, change = link_service.approve_change(link_id, change_id, household_id)
    return jsonify({'change': change.to_dict(), 'link': link.to_dict(include_history=False)})


@links.route('/link/<int:link_id>/reject-change/<int:change_id>', methods=['POST'])
@login_required
def reject_change(link_id, change_id):
    household_id = current_household_id()
    require_parent(household_id)
    change = link_service.reject_change(link_id, change_id, household_id)
    return jsonify(change.to_dict())


@links.route('/child/<int:child_id>/unlink', methods=['POST'])
@login_required
def unlink_child(child_id):
    household_id = current_household_id()
    require_parent(household_id)
    link = link_service.unlink_child(child_id, household_id)
    return jsonify(link.to_dict(include_history=False))
