from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from momentum import db
from momentum.auth import current_household_id
from momentum.models import Household

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'service': 'momentum', 'status': 'ok'})


@main.route('/api/household', methods=['GET'])
@login_required
def get_household():
    household = db.session.get(Household, current_household_id())
    data = household.to_dict()
    data['member'] = current_user.to_dict()
    return jsonify(data)
