from datetime import timedelta

import pytest

from conftest import NOW
from momentum import db
from momentum.errors import (
    ConflictError,
    CooldownError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from momentum.models import (
    ChangeStatus,
    FamilyMember,
    Household,
    HouseholdLink,
    LinkCode,
    LinkCodeStatus,
    LinkStatus,
    MemberRole,
    PendingChange,
    SharingCategory,
    SharingValue,
)
from momentum.services import links


def _link(family):
    return db.session.get(HouseholdLink, family.link)


def _propose(family, at, setting='points', value='shared', household=None, proposer=None):
    return links.propose_change(
        family.link, setting, value,
        household or family.home_a, proposer or family.parent_a, now=at,
    )


def test_link_code_is_reused_while_active(family):
    code, created = links.generate_link_code(family.home_a, family.child, family.parent_a, now=NOW)
    again, created_again = links.generate_link_code(family.home_a, family.child, family.parent_a, now=NOW)

    assert created is True and created_again is False
    assert again.code == code.code
    assert len(code.code) == 6 and code.code == code.code.upper()
    assert code.expires_at == NOW + timedelta(days=7)


def test_link_code_requires_child_profile(family):
    with pytest.raises(NotFoundError):
        links.generate_link_code(family.home_a, family.parent_a, family.parent_a, now=NOW)
    with pytest.raises(NotFoundError):
        links.generate_link_code(family.home_b, family.child, family.parent_b, now=NOW)


def test_linking_adds_profile_and_separate_settings(linked_family):
    link = _link(linked_family)
    home_b = db.session.get(Household, linked_family.home_b)
    child = db.session.get(FamilyMember, linked_family.child)

    assert link.status == LinkStatus.ACTIVE
    assert (link.household1_id, link.household2_id) == (linked_family.home_a, linked_family.home_b)
    assert all(link.sharing(c) == SharingValue.SEPARATE for c in SharingCategory)
    assert home_b.profile_for_member(linked_family.child).role == MemberRole.CHILD
    assert child.linked_household(linked_family.home_b) is not None
    assert LinkCode.query.filter_by(code=linked_family.code).one().status == LinkCodeStatus.USED


def test_used_or_unknown_code_cannot_link(linked_family):
    with pytest.raises(ValidationError):
        links.link_child_with_code(linked_family.code, linked_family.home_b, linked_family.parent_b, 'Riley', now=NOW)
    with pytest.raises(NotFoundError):
        links.link_child_with_code('ZZZZZZ', linked_family.home_b, linked_family.parent_b, 'Riley', now=NOW)


def test_expired_code_is_marked_expired(family):
    code, _ = links.generate_link_code(family.home_a, family.child, family.parent_a, now=NOW)
    with pytest.raises(ValidationError):
        links.link_child_with_code(code.code, family.home_b, family.parent_b, 'Riley', now=NOW + timedelta(days=8))
    assert LinkCode.query.filter_by(code=code.code).one().status == LinkCodeStatus.EXPIRED


def test_child_already_in_household_is_a_conflict(linked_family):
    code, _ = links.generate_link_code(linked_family.home_a, linked_family.child, linked_family.parent_a, now=NOW)
    with pytest.raises(ConflictError):
        links.link_child_with_code(code.code, linked_family.home_b, linked_family.parent_b, 'Riley', now=NOW)


def test_propose_validates_input(linked_family):
    with pytest.raises(ValidationError):
        _propose(linked_family, NOW, setting='allowance')
    with pytest.raises(ValidationError):
        _propose(linked_family, NOW, value='sometimes')
    with pytest.raises(ValidationError):
        _propose(linked_family, NOW, value='separate')


def test_outsider_household_cannot_propose(linked_family):
    stranger = Household(name='Elsewhere')
    db.session.add(stranger)
    db.session.commit()
    with pytest.raises(ForbiddenError):
        _propose(linked_family, NOW, household=stranger.id)
    with pytest.raises(ForbiddenError):
        links.get_link(linked_family.link, stranger.id)


def test_proposal_records_pending_change_and_history(linked_family):
    change = _propose(linked_family, NOW)
    link = _link(linked_family)

    assert change.status == ChangeStatus.PENDING
    assert change.current_value == SharingValue.SEPARATE
    assert change.proposed_value == SharingValue.SHARED
    assert change.expires_at == NOW + timedelta(days=30)
    assert len(link.proposal_history) == 1
    assert link.sharing('points') == SharingValue.SEPARATE


def test_rate_limit_per_setting_and_household(linked_family):
    for minutes in range(3):
        _propose(linked_family, NOW + timedelta(minutes=minutes))
    with pytest.raises(RateLimitError) as excinfo:
        _propose(linked_family, NOW + timedelta(minutes=3))
    assert excinfo.value.to_dict()['limit'] == 3

    # Other settings and the other household have their own budgets
    _propose(linked_family, NOW + timedelta(minutes=4), setting='tasks')
    _propose(linked_family, NOW + timedelta(minutes=5), household=linked_family.home_b,
             proposer=linked_family.parent_b)

    # Once the oldest proposal leaves the window a new one is accepted
    _propose(linked_family, NOW + timedelta(days=7, seconds=1))


def test_only_counterpart_can_approve(linked_family):
    change = _propose(linked_family, NOW)
    with pytest.raises(ForbiddenError):
        links.approve_change(linked_family.link, change.id, linked_family.home_a, now=NOW)

    link, approved = links.approve_change(linked_family.link, change.id, linked_family.home_b, now=NOW)
    assert approved.status == ChangeStatus.APPROVED
    assert approved.resolved_at == NOW
    assert link.is_shared(SharingCategory.POINTS)

    with pytest.raises(ConflictError):
        links.approve_change(linked_family.link, change.id, linked_family.home_b, now=NOW)
    with pytest.raises(NotFoundError):
        links.approve_change(linked_family.link, 9999, linked_family.home_b, now=NOW)


def test_approving_expired_change_persists_expiry(linked_family):
    change_id = _propose(linked_family, NOW).id
    with pytest.raises(ConflictError):
        links.approve_change(linked_family.link, change_id, linked_family.home_b, now=NOW + timedelta(days=31))

    change = db.session.get(PendingChange, change_id)
    assert change.status == ChangeStatus.EXPIRED
    assert not _link(linked_family).is_shared('points')


def test_rejection_starts_cooldown(linked_family):
    change = _propose(linked_family, NOW)
    rejected = links.reject_change(linked_family.link, change.id, linked_family.home_b, now=NOW + timedelta(hours=1))
    assert rejected.status == ChangeStatus.REJECTED
    assert rejected.previous_rejections == 1

    with pytest.raises(CooldownError) as excinfo:
        _propose(linked_family, NOW + timedelta(days=3))
    assert excinfo.value.to_dict()['setting'] == 'points'

    retry = _propose(linked_family, NOW + timedelta(days=7, hours=1, seconds=1))
    assert retry.previous_rejections == 1


def test_author_cannot_reject(linked_family):
    change = _propose(linked_family, NOW)
    with pytest.raises(ForbiddenError):
        links.reject_change(linked_family.link, change.id, linked_family.home_a, now=NOW)


def test_expiry_sweep(linked_family):
    stale = _propose(linked_family, NOW)
    fresh = _propose(linked_family, NOW + timedelta(days=20), setting='tasks')

    expired = links.expire_overdue_changes(now=NOW + timedelta(days=31))

    assert [c.id for c in expired] == [stale.id]
    assert db.session.get(PendingChange, fresh.id).status == ChangeStatus.PENDING


def test_unlink_keeps_link_as_history(linked_family):
    link = links.unlink_child(linked_family.child, linked_family.home_b)

    assert link.status == LinkStatus.UNLINKED
    assert db.session.get(Household, linked_family.home_b).profile_for_member(linked_family.child) is None
    assert db.session.get(FamilyMember, linked_family.child).linked_household(linked_family.home_b) is None
    assert db.session.get(HouseholdLink, linked_family.link) is not None
    assert links.list_links(linked_family.home_a) == []

    with pytest.raises(NotFoundError):
        links.unlink_child(linked_family.child, linked_family.home_b)
    with pytest.raises(NotFoundError):
        _propose(linked_family, NOW)


def test_rejecting_lapsed_change_expires_it_without_cooldown(linked_family):
    change_id = _propose(linked_family, NOW).id
    with pytest.raises(ConflictError):
        links.reject_change(linked_family.link, change_id, linked_family.home_b, now=NOW + timedelta(days=31))

    change = db.session.get(PendingChange, change_id)
    assert change.status == ChangeStatus.EXPIRED
    assert change.last_rejected_at is None
    assert change.previous_rejections == 0

    retry = _propose(linked_family, NOW + timedelta(days=31, hours=1))
    assert retry.status == ChangeStatus.PENDING


def test_refused_proposal_leaves_link_untouched(linked_family):
    stale_id = _propose(linked_family, NOW).id
    with pytest.raises(ValidationError):
        _propose(linked_family, NOW + timedelta(days=31), value='separate')
    assert not db.session.dirty
    assert db.session.get(PendingChange, stale_id).status == ChangeStatus.PENDING

    _propose(linked_family, NOW + timedelta(days=31))
    assert db.session.get(PendingChange, stale_id).status == ChangeStatus.EXPIRED
