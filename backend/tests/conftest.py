import os
import sys
from datetime import datetime
from types import SimpleNamespace

import pytest

# Ensure the backend root (containing the `momentum` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from momentum import create_app, db, socketio
from momentum.models import FamilyMember, Household, MemberRole


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LINK_PROPOSAL_LIMIT = 3
    LINK_PROPOSAL_WINDOW_DAYS = 7
    LINK_REJECTION_COOLDOWN_DAYS = 7
    LINK_PROPOSAL_TTL_DAYS = 30
    LINK_CODE_TTL_DAYS = 7
    SYNC_MAX_ATTEMPTS = 3
    SYNC_DRAIN_INTERVAL_SEC = 0


NOW = datetime(2025, 3, 10, 12, 0, 0)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import momentum.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def family(flask_app):
    """Two unlinked households; the child only belongs to household A."""
    parent_a = FamilyMember(first_name='Dana', role=MemberRole.PARENT)
    parent_b = FamilyMember(first_name='Sam', role=MemberRole.PARENT)
    child = FamilyMember(first_name='Riley', role=MemberRole.CHILD)
    db.session.add_all([parent_a, parent_b, child])
    home_a = Household(name='Maple Street')
    home_b = Household(name='Harbor View')
    db.session.add_all([home_a, home_b])
    db.session.flush()

    parent_a_profile = home_a.add_profile(parent_a.id, 'Mom', MemberRole.PARENT)
    child_a_profile = home_a.add_profile(child.id, 'Riley', MemberRole.CHILD)
    parent_b_profile = home_b.add_profile(parent_b.id, 'Dad', MemberRole.PARENT)
    db.session.commit()

    return SimpleNamespace(
        home_a=home_a.id,
        home_b=home_b.id,
        parent_a=parent_a.id,
        parent_b=parent_b.id,
        child=child.id,
        parent_a_profile=parent_a_profile.id,
        child_a_profile=child_a_profile.id,
        parent_b_profile=parent_b_profile.id,
    )


@pytest.fixture()
def linked_family(family):
    """The same child linked into household B through a link code."""
    from momentum.services import links

    link_code, _ = links.generate_link_code(family.home_a, family.child, family.parent_a, now=NOW)
    link = links.link_child_with_code(link_code.code, family.home_b, family.parent_b, 'Riley', now=NOW)
    child_b = db.session.get(Household, family.home_b).profile_for_member(family.child)
    family.link = link.id
    family.code = link_code.code
    family.child_b_profile = child_b.id
    return family


def auth_headers(member_id, household_id):
    return {'X-Member-Id': str(member_id), 'X-Household-Id': str(household_id)}
