"""Request identity supplied by the upstream gateway.

Tokens are verified before requests reach this service; the gateway forwards
the authenticated member id and the household the request acts in as headers.
"""

from flask import request
from flask_login import current_user

from momentum import db, login_manager
from momentum.errors import ForbiddenError, UnauthorizedError, ValidationError
from momentum.models import FamilyMember, Household

MEMBER_HEADER = 'X-Member-Id'
HOUSEHOLD_HEADER = 'X-Household-Id'


def _header_int(name):
    raw = request.headers.get(name)
    if raw is None or raw == '':
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f'{name} must be an integer')


@login_manager.request_loader
def load_member_from_request(req):
    member_id = _header_int(MEMBER_HEADER)
    if member_id is None:
        return None
    return db.session.get(FamilyMember, member_id)


@login_manager.unauthorized_handler
def unauthorized():
    raise UnauthorizedError('Authentication required')


def current_household_id():
    household_id = _header_int(HOUSEHOLD_HEADER)
    if household_id is None:
        raise ValidationError(f'{HOUSEHOLD_HEADER} header is required')
    if db.session.get(Household, household_id) is None:
        raise ForbiddenError('Unknown household context')
    return household_id


def current_member_id():
    return current_user.id


def current_profile(household_id=None):
    """The acting member's profile in the request's household."""
    household_id = household_id or current_household_id()
    household = db.session.get(Household, household_id)
    profile = household.profile_for_member(current_user.id)
    if profile is None:
        raise ForbiddenError('You are not a member of this household')
    return profile


def require_parent(household_id=None):
    profile = current_profile(household_id)
    if not profile.is_parent:
        raise ForbiddenError('Only parents can do this')
    return profile
