"""Linking a child into a second household and negotiating what the two share.

Either household may propose flipping one sharing category; only the other
household can approve or reject it. Proposals are throttled per setting and
per proposing household, and a rejection holds the same setting back for a
cooldown period.
"""

from datetime import timedelta
from typing import List, Tuple

from flask import current_app

from momentum import db
from momentum.errors import (
    ConflictError,
    CooldownError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from momentum.events import emit_notification
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
    utcnow,
)
from momentum.services import commit_or_conflict


def _config_int(key: str, default: int) -> int:
    return int(current_app.config.get(key, default))


def _parse_setting(setting) -> SharingCategory:
    try:
        return SharingCategory(setting)
    except ValueError:
        raise ValidationError('Invalid setting', {
            'setting': setting,
            'valid_settings': [c.value for c in SharingCategory],
        })


def _parse_value(value) -> SharingValue:
    try:
        return SharingValue(value)
    except ValueError:
        raise ValidationError('Value must be either "shared" or "separate"', {'value': value})


def _load_link(link_id) -> HouseholdLink:
    link = db.session.get(HouseholdLink, link_id)
    if link is None:
        raise NotFoundError('Household link not found', {'link_id': link_id})
    return link


def _require_party(link: HouseholdLink, household_id) -> None:
    if not link.involves(household_id):
        raise ForbiddenError('You do not have access to this household link')


def _require_active(link: HouseholdLink) -> None:
    if not link.is_active:
        raise NotFoundError('Household link is no longer active', {'link_id': link.id})


def _load_decidable_change(link: HouseholdLink, change_id, household_id, verb: str) -> PendingChange:
    change = link.change(change_id)
    if change is None:
        raise NotFoundError('Pending change not found', {'change_id': change_id})
    if change.proposed_by_household_id == household_id:
        raise ForbiddenError(f'You cannot {verb} your own proposal')
    if not change.is_pending:
        raise ConflictError(f'This proposal is already {change.status.value}', {'status': change.status.value})
    return change


def _expire_if_overdue(link: HouseholdLink, change: PendingChange, now) -> None:
    """A lapsed proposal can no longer be decided; record the expiry and refuse."""
    if now <= change.expires_at:
        return
    change.status = ChangeStatus.EXPIRED
    change.resolved_at = now
    link.touch()
    commit_or_conflict('Household link')
    current_app.logger.info(f"[link-expire] link={link.id} change={change.id}")
    raise ConflictError('This change proposal has expired', {'status': ChangeStatus.EXPIRED.value})


# ---- Link codes and link creation ----

def generate_link_code(household_id: int, child_id: int, parent_id: int, now=None) -> Tuple[LinkCode, bool]:
    """Return an active code for the child, issuing a new one if needed.

    The boolean is True when a new code was created.
    """
    now = now or utcnow()
    household = db.session.get(Household, household_id)
    if household is None:
        raise NotFoundError('Household not found', {'household_id': household_id})
    profile = household.profile_for_member(child_id)
    if profile is None or profile.role != MemberRole.CHILD:
        raise NotFoundError('Child not found in this household', {'child_id': child_id})

    existing = LinkCode.query.filter(
        LinkCode.child_id == child_id,
        LinkCode.household_id == household_id,
        LinkCode.status == LinkCodeStatus.ACTIVE,
        LinkCode.expires_at > now,
    ).order_by(LinkCode.id.desc()).first()
    if existing is not None:
        return existing, False

    link_code = LinkCode(
        child_id=child_id,
        household_id=household_id,
        created_by_id=parent_id,
        created_at=now,
        expires_at=now + timedelta(days=_config_int('LINK_CODE_TTL_DAYS', 7)),
        status=LinkCodeStatus.ACTIVE,
    )
    db.session.add(link_code)
    db.session.commit()
    current_app.logger.info(f"[link-code] child={child_id} household={household_id} code={link_code.code}")
    return link_code, True


def link_child_with_code(code: str, household_id: int, parent_id: int, display_name: str,
                         profile_color: str = '#4F46E5', now=None) -> HouseholdLink:
    """Bring a child from the issuing household into ``household_id``."""
    now = now or utcnow()
    if not code or not display_name:
        raise ValidationError('Code and display name are required')

    link_code = LinkCode.query.filter_by(code=code.strip().upper()).first()
    if link_code is None:
        raise NotFoundError('Invalid link code')
    if not link_code.is_valid(now):
        if link_code.status == LinkCodeStatus.ACTIVE:
            link_code.status = LinkCodeStatus.EXPIRED
            db.session.commit()
        raise ValidationError('This link code has expired or been used')

    household = db.session.get(Household, household_id)
    if household is None:
        raise NotFoundError('Household not found', {'household_id': household_id})
    child = db.session.get(FamilyMember, link_code.child_id)
    if child is None:
        raise NotFoundError('Child not found')
    if household.profile_for_member(child.id) is not None:
        raise ConflictError('This child is already a member of your household')

    issuing_id = link_code.household_id
    existing = HouseholdLink.query.filter(
        HouseholdLink.child_id == child.id,
        db.or_(
            db.and_(HouseholdLink.household1_id == issuing_id, HouseholdLink.household2_id == household_id),
            db.and_(HouseholdLink.household1_id == household_id, HouseholdLink.household2_id == issuing_id),
        ),
    ).first()
    if existing is not None:
        raise ConflictError('This child is already linked between these households')

    household.add_profile(child.id, display_name, MemberRole.CHILD, profile_color)
    link = HouseholdLink(
        child_id=child.id,
        household1_id=issuing_id,
        household2_id=household_id,
        link_code=link_code.code,
        created_by_id=link_code.created_by_id,
        accepted_by_id=parent_id,
        created_at=now,
        accepted_at=now,
        status=LinkStatus.ACTIVE,
    )
    db.session.add(link)
    child.add_linked_household(household_id, link_code.code, parent_id, linked_at=now)
    link_code.mark_used(household_id, now)
    commit_or_conflict('Household')

    current_app.logger.info(f"[link-create] link={link.id} child={child.id} {issuing_id}<->{household_id}")
    emit_notification(issuing_id, 'child_linked', f"{child.first_name} was linked to another household",
                      link_id=link.id, child_id=child.id)
    return link


def list_links(household_id: int) -> List[HouseholdLink]:
    return HouseholdLink.active_for(household_id).all()


def get_link(link_id: int, household_id: int) -> HouseholdLink:
    link = _load_link(link_id)
    _require_party(link, household_id)
    return link


# ---- Sharing-setting negotiation ----

def propose_change(link_id: int, setting, new_value, proposer_household_id: int, proposer_id: int,
                   now=None) -> PendingChange:
    now = now or utcnow()
    category = _parse_setting(setting)
    value = _parse_value(new_value)
    link = _load_link(link_id)
    _require_active(link)
    _require_party(link, proposer_household_id)

    if link.sharing(category) == value:
        raise ValidationError(f'Setting is already set to "{value.value}"', {'setting': category.value})

    limit = _config_int('LINK_PROPOSAL_LIMIT', 3)
    window_days = _config_int('LINK_PROPOSAL_WINDOW_DAYS', 7)
    recent = link.recent_proposal_count(category, proposer_household_id, now - timedelta(days=window_days))
    if recent >= limit:
        raise RateLimitError(
            f'Rate limit exceeded. Maximum {limit} proposals per {window_days} days for this setting.',
            setting=category.value, limit=limit, window_days=window_days,
        )

    last_rejection = link.last_rejection(category, proposer_household_id)
    if last_rejection is not None and last_rejection.last_rejected_at is not None:
        cooldown_end = last_rejection.last_rejected_at + timedelta(days=_config_int('LINK_REJECTION_COOLDOWN_DAYS', 7))
        if now < cooldown_end:
            raise CooldownError(
                f'Cooldown period active. You can propose this change again after {cooldown_end.date().isoformat()}.',
                setting=category.value, retry_after=cooldown_end.isoformat(),
            )

    link.expire_overdue(now)
    change = link.add_change(
        category,
        value,
        proposer_id,
        proposer_household_id,
        proposed_at=now,
        expires_at=now + timedelta(days=_config_int('LINK_PROPOSAL_TTL_DAYS', 30)),
        previous_rejections=last_rejection.previous_rejections if last_rejection is not None else 0,
    )
    commit_or_conflict('Household link')

    current_app.logger.info(
        f"[link-propose] link={link.id} change={change.id} household={proposer_household_id} "
        f"{category.value}->{value.value}"
    )
    emit_notification(
        link.counterpart_of(proposer_household_id),
        'link_change_proposed',
        f"A linked household proposed making {category.value} {value.value}",
        link_id=link.id, change_id=change.id, setting=category.value, proposed_value=value.value,
    )
    return change


def approve_change(link_id: int, change_id: int, approver_household_id: int, now=None) -> Tuple[HouseholdLink, PendingChange]:
    now = now or utcnow()
    link = _load_link(link_id)
    _require_party(link, approver_household_id)
    _require_active(link)
    change = _load_decidable_change(link, change_id, approver_household_id, 'approve')
    _expire_if_overdue(link, change, now)

    link.apply_setting(change.setting, change.proposed_value)
    change.status = ChangeStatus.APPROVED
    change.resolved_at = now
    commit_or_conflict('Household link')

    current_app.logger.info(
        f"[link-approve] link={link.id} change={change.id} {change.setting.value}={change.proposed_value.value}"
    )
    emit_notification(
        change.proposed_by_household_id,
        'link_change_approved',
        f"Your proposal to make {change.setting.value} {change.proposed_value.value} was approved",
        link_id=link.id, change_id=change.id,
    )
    return link, change


def reject_change(link_id: int, change_id: int, approver_household_id: int, now=None) -> PendingChange:
    now = now or utcnow()
    link = _load_link(link_id)
    _require_party(link, approver_household_id)
    _require_active(link)
    change = _load_decidable_change(link, change_id, approver_household_id, 'reject')
    _expire_if_overdue(link, change, now)

    change.status = ChangeStatus.REJECTED
    change.last_rejected_at = now
    change.resolved_at = now
    change.previous_rejections = (change.previous_rejections or 0) + 1
    link.touch()
    commit_or_conflict('Household link')

    current_app.logger.info(f"[link-reject] link={link.id} change={change.id} rejections={change.previous_rejections}")
    emit_notification(
        change.proposed_by_household_id,
        'link_change_rejected',
        f"Your proposal to make {change.setting.value} {change.proposed_value.value} was rejected",
        link_id=link.id, change_id=change.id,
    )
    return change


def expire_overdue_changes(now=None) -> List[PendingChange]:
    now = now or utcnow()
    overdue = PendingChange.query.filter(
        PendingChange.status == ChangeStatus.PENDING,
        PendingChange.expires_at < now,
    ).all()
    for change in overdue:
        change.status = ChangeStatus.EXPIRED
        change.resolved_at = now
        change.link.touch()
    if overdue:
        db.session.commit()
        current_app.logger.info(f"[link-expire] expired={len(overdue)}")
    return overdue


# ---- Unlinking ----

def unlink_child(child_id: int, household_id: int) -> HouseholdLink:
    """Detach the child from ``household_id``; the link row stays as history."""
    link = HouseholdLink.active_for(household_id, child_id=child_id).first()
    if link is None:
        raise NotFoundError('Active household link not found', {'child_id': child_id})

    link.status = LinkStatus.UNLINKED
    link.touch()
    household = db.session.get(Household, household_id)
    profile = household.profile_for_member(child_id) if household is not None else None
    if profile is not None:
        household.remove_profile(profile)
    child = db.session.get(FamilyMember, child_id)
    if child is not None:
        child.remove_linked_household(household_id)
    commit_or_conflict('Household link')

    current_app.logger.info(f"[link-unlink] link={link.id} child={child_id} household={household_id}")
    for party in (link.household1_id, link.household2_id):
        emit_notification(party, 'child_unlinked', 'A child was unlinked from a household',
                          link_id=link.id, child_id=child_id)
    return link
