from momentum import db
from flask_login import UserMixin
from sqlalchemy.orm import attribute_keyed_dict
from sqlalchemy.orm.attributes import flag_modified
from datetime import datetime, timezone
import enum
import random
import string


def utcnow():
    """Naive UTC timestamp; every DateTime column in this schema is UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum(enum_cls, name):
    # Persist the enum *values* ('PendingApproval', 'shared', ...) rather than member names
    return db.Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
    )


def _iso(value):
    return value.isoformat() if value else None


class MemberRole(str, enum.Enum):
    PARENT = 'Parent'
    CHILD = 'Child'


class TaskStatus(str, enum.Enum):
    PENDING = 'Pending'
    PENDING_APPROVAL = 'PendingApproval'
    APPROVED = 'Approved'


OPEN_TASK_STATUSES = (TaskStatus.PENDING, TaskStatus.PENDING_APPROVAL)


class SharingCategory(str, enum.Enum):
    POINTS = 'points'
    XP = 'xp'
    STREAKS = 'streaks'
    TASKS = 'tasks'
    QUESTS = 'quests'
    ROUTINES = 'routines'
    STORE = 'store'
    WISHLIST = 'wishlist'
    CALENDAR = 'calendar'


class SharingValue(str, enum.Enum):
    SHARED = 'shared'
    SEPARATE = 'separate'


class ChangeStatus(str, enum.Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    EXPIRED = 'expired'


class LinkStatus(str, enum.Enum):
    ACTIVE = 'active'
    UNLINKED = 'unlinked'


class LinkCodeStatus(str, enum.Enum):
    ACTIVE = 'active'
    USED = 'used'
    EXPIRED = 'expired'


class SyncStatus(str, enum.Enum):
    PENDING = 'pending'
    APPLIED = 'applied'
    SKIPPED = 'skipped'
    FAILED = 'failed'


task_assignee = db.Table(
    'task_assignee',
    db.Column('task_id', db.Integer, db.ForeignKey('task.id', ondelete='CASCADE'), primary_key=True),
    db.Column('profile_id', db.Integer, db.ForeignKey('member_profile.id', ondelete='CASCADE'), primary_key=True),
)


class FamilyMember(UserMixin, db.Model):
    """Global identity of a person; points and streaks live on their MemberProfiles."""
    __tablename__ = 'family_member'
    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(64), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=True, index=True)
    role = db.Column(_enum(MemberRole, 'member_role'), nullable=False)
    linked_households = db.relationship(
        'LinkedHousehold',
        back_populates='member',
        foreign_keys='LinkedHousehold.family_member_id',
        order_by='LinkedHousehold.id',
        cascade='all, delete-orphan',
    )

    def linked_household(self, household_id):
        return LinkedHousehold.query.filter_by(family_member_id=self.id, household_id=household_id).first()

    def add_linked_household(self, household_id, link_code, linked_by_id, linked_at=None):
        entry = LinkedHousehold(
            household_id=household_id,
            link_code=link_code,
            linked_by_id=linked_by_id,
            linked_at=linked_at or utcnow(),
        )
        self.linked_households.append(entry)
        return entry

    def remove_linked_household(self, household_id):
        entry = self.linked_household(household_id)
        if entry is not None:
            self.linked_households.remove(entry)
        return entry

    def to_dict(self):
        return {
            'id': self.id,
            'first_name': self.first_name,
            'role': self.role.value,
            'linked_households': [h.to_dict() for h in self.linked_households],
        }


class LinkedHousehold(db.Model):
    """A child's record of a household it was linked into by code."""
    __tablename__ = 'linked_household'
    __table_args__ = (
        db.UniqueConstraint('family_member_id', 'household_id', name='uq_linked_household_member'),
    )
    id = db.Column(db.Integer, primary_key=True)
    family_member_id = db.Column(db.Integer, db.ForeignKey('family_member.id'), nullable=False, index=True)
    household_id = db.Column(db.Integer, db.ForeignKey('household.id'), nullable=False)
    link_code = db.Column(db.String(6), nullable=False)
    linked_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    linked_by_id = db.Column(db.Integer, db.ForeignKey('family_member.id'), nullable=True)
    member = db.relationship('FamilyMember', back_populates='linked_households', foreign_keys=[family_member_id])

    def to_dict(self):
        return {
            'household_id': self.household_id,
            'link_code': self.link_code,
            'linked_at': _iso(self.linked_at),
            'linked_by': self.linked_by_id,
        }


class Household(db.Model):
    """Aggregate root for member profiles and their point/streak economy.

    ``version`` is an optimistic-concurrency counter. Every mutator goes
    through :meth:`touch` so a change to an owned profile still rewrites the
    household row and a stale concurrent write fails at flush time.
    """
    __tablename__ = 'household'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    version = db.Column(db.Integer, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    profiles = db.relationship(
        'MemberProfile',
        back_populates='household',
        order_by='MemberProfile.id',
        cascade='all, delete-orphan',
    )

    __mapper_args__ = {'version_id_col': version}

    def touch(self):
        self.updated_at = utcnow()
        flag_modified(self, 'updated_at')

    def profile(self, profile_id):
        if profile_id is None:
            return None
        profile = db.session.get(MemberProfile, profile_id)
        if profile is None or profile.household_id != self.id:
            return None
        return profile

    def profile_for_member(self, family_member_id):
        return MemberProfile.query.filter_by(household_id=self.id, family_member_id=family_member_id).first()

    def add_profile(self, family_member_id, display_name, role, profile_color='#4F46E5'):
        profile = MemberProfile(
            family_member_id=family_member_id,
            display_name=display_name,
            role=role,
            profile_color=profile_color,
        )
        self.profiles.append(profile)
        self.touch()
        return profile

    def remove_profile(self, profile):
        self.profiles.remove(profile)
        self.touch()

    def credit_points(self, profile, delta):
        """The single write path for ``points_total``."""
        profile.points_total = (profile.points_total or 0) + int(delta)
        self.touch()
        return profile.points_total

    def record_streak(self, profile, transition):
        profile.current_streak = transition.current_streak
        profile.longest_streak = transition.longest_streak
        profile.last_completion_date = transition.last_completion_date
        profile.streak_multiplier = transition.multiplier
        self.touch()

    def to_dict(self, include_profiles=True):
        data = {
            'id': self.id,
            'name': self.name,
            'version': self.version,
        }
        if include_profiles:
            data['profiles'] = [p.to_dict() for p in self.profiles]
        return data


class MemberProfile(db.Model):
    __tablename__ = 'member_profile'
    __table_args__ = (
        db.UniqueConstraint('household_id', 'family_member_id', name='uq_profile_household_member'),
    )
    id = db.Column(db.Integer, primary_key=True)
    household_id = db.Column(db.Integer, db.ForeignKey('household.id'), nullable=False, index=True)
    family_member_id = db.Column(db.Integer, db.ForeignKey('family_member.id'), nullable=False, index=True)
    display_name = db.Column(db.String(64), nullable=False)
    profile_color = db.Column(db.String(16), nullable=False, default='#4F46E5')
    role = db.Column(_enum(MemberRole, 'member_role'), nullable=False)
    points_total = db.Column(db.Integer, nullable=False, default=0)
    current_streak = db.Column(db.Integer, nullable=False, default=0)
    longest_streak = db.Column(db.Integer, nullable=False, default=0)
    last_completion_date = db.Column(db.Date, nullable=True)
    streak_multiplier = db.Column(db.Float, nullable=False, default=1.0)

    household = db.relationship('Household', back_populates='profiles')
    member = db.relationship('FamilyMember')
    tasks = db.relationship('Task', secondary=task_assignee, back_populates='assignees')
    routines = db.relationship('Routine', back_populates='assigned_to', cascade='all, delete-orphan')

    @property
    def is_parent(self):
        return self.role == MemberRole.PARENT

    def to_dict(self):
        return {
            'id': self.id,
            'household_id': self.household_id,
            'family_member_id': self.family_member_id,
            'display_name': self.display_name,
            'profile_color': self.profile_color,
            'role': self.role.value,
            'points_total': self.points_total or 0,
            'current_streak': self.current_streak or 0,
            'longest_streak': self.longest_streak or 0,
            'last_completion_date': _iso(self.last_completion_date),
            'streak_multiplier': self.streak_multiplier or 1.0,
        }


def generate_link_code(length=6):
    """Generate a unique, short child link code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not LinkCode.query.filter_by(code=code).first():
            return code


class LinkCode(db.Model):
    __tablename__ = 'link_code'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(6), unique=True, nullable=False, index=True)
    child_id = db.Column(db.Integer, db.ForeignKey('family_member.id'), nullable=False, index=True)
    household_id = db.Column(db.Integer, db.ForeignKey('household.id'), nullable=False)
    created_by_id = db.Column(db.Integer, db.ForeignKey('family_member.id'), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)
    status = db.Column(_enum(LinkCodeStatus, 'link_code_status'), nullable=False, default=LinkCodeStatus.ACTIVE)
    used_by_household_id = db.Column(db.Integer, db.ForeignKey('household.id'), nullable=True)
    used_at = db.Column(db.DateTime, nullable=True)

    def __init__(self, **kwargs):
        super(LinkCode, self).__init__(**kwargs)
        if not self.code:
            self.code = generate_link_code()

    def is_valid(self, now):
        return self.status == LinkCodeStatus.ACTIVE and self.expires_at > now

    def mark_used(self, household_id, now):
        self.status = LinkCodeStatus.USED
        self.used_by_household_id = household_id
        self.used_at = now

    def to_dict(self):
        return {
            'code': self.code,
            'child_id': self.child_id,
            'household_id': self.household_id,
            'expires_at': _iso(self.expires_at),
            'status': self.status.value,
        }


class HouseholdLink(db.Model):
    """Negotiated relationship between two households sharing one child."""
    __tablename__ = 'household_link'
    __table_args__ = (
        db.UniqueConstraint('child_id', 'household1_id', 'household2_id', name='uq_link_child_households'),
        db.CheckConstraint('household1_id <> household2_id', name='ck_link_distinct_households'),
        db.Index('ix_link_household1_status', 'household1_id', 'status'),
        db.Index('ix_link_household2_status', 'household2_id', 'status'),
    )
    id = db.Column(db.Integer, primary_key=True)
    child_id = db.Column(db.Integer, db.ForeignKey('family_member.id'), nullable=False, index=True)
    household1_id = db.Column(db.Integer, db.ForeignKey('household.id'), nullable=False)
    household2_id = db.Column(db.Integer, db.ForeignKey('household.id'), nullable=False)
    link_code = db.Column(db.String(6), nullable=False)
    created_by_id = db.Column(db.Integer, db.ForeignKey('family_member.id'), nullable=False)
    accepted_by_id = db.Column(db.Integer, db.ForeignKey('family_member.id'), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    accepted_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    status = db.Column(_enum(LinkStatus, 'link_status'), nullable=False, default=LinkStatus.ACTIVE)
    version = db.Column(db.Integer, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    settings = db.relationship(
        'SharingSetting',
        back_populates='link',
        collection_class=attribute_keyed_dict('category'),
        cascade='all, delete-orphan',
    )
    pending_changes = db.relationship(
        'PendingChange',
        back_populates='link',
        order_by='PendingChange.id',
        cascade='all, delete-orphan',
    )
    proposal_history = db.relationship(
        'ProposalHistoryEntry',
        order_by='ProposalHistoryEntry.id',
        cascade='all, delete-orphan',
    )

    __mapper_args__ = {'version_id_col': version}

    def __init__(self, **kwargs):
        super(HouseholdLink, self).__init__(**kwargs)
        for category in SharingCategory:
            if category not in self.settings:
                self.settings[category] = SharingSetting(category=category, value=SharingValue.SEPARATE)

    @classmethod
    def active_for(cls, household_id, child_id=None):
        query = cls.query.filter(
            cls.status == LinkStatus.ACTIVE,
            db.or_(cls.household1_id == household_id, cls.household2_id == household_id),
        )
        if child_id is not None:
            query = query.filter(cls.child_id == child_id)
        return query.order_by(cls.id)

    @property
    def is_active(self):
        return self.status == LinkStatus.ACTIVE

    def touch(self):
        self.updated_at = utcnow()
        flag_modified(self, 'updated_at')

    def involves(self, household_id):
        return household_id in (self.household1_id, self.household2_id)

    def counterpart_of(self, household_id):
        if household_id == self.household1_id:
            return self.household2_id
        if household_id == self.household2_id:
            return self.household1_id
        return None

    def sharing(self, category):
        return self.settings[SharingCategory(category)].value

    def is_shared(self, category):
        return self.sharing(category) == SharingValue.SHARED

    def apply_setting(self, category, value):
        self.settings[SharingCategory(category)].value = SharingValue(value)
        self.touch()

    def change(self, change_id):
        if change_id is None:
            return None
        change = db.session.get(PendingChange, change_id)
        if change is None or change.link_id != self.id:
            return None
        return change

    def add_change(self, setting, proposed_value, proposed_by_id, proposed_by_household_id,
                   proposed_at, expires_at, previous_rejections=0):
        change = PendingChange(
            setting=setting,
            current_value=self.sharing(setting),
            proposed_value=proposed_value,
            proposed_by_id=proposed_by_id,
            proposed_by_household_id=proposed_by_household_id,
            proposed_at=proposed_at,
            expires_at=expires_at,
            status=ChangeStatus.PENDING,
            previous_rejections=previous_rejections,
        )
        self.pending_changes.append(change)
        self.proposal_history.append(ProposalHistoryEntry(
            setting=setting,
            proposed_at=proposed_at,
            proposed_by_id=proposed_by_id,
            proposed_by_household_id=proposed_by_household_id,
        ))
        self.touch()
        return change

    def recent_proposal_count(self, setting, household_id, since):
        return ProposalHistoryEntry.query.filter(
            ProposalHistoryEntry.link_id == self.id,
            ProposalHistoryEntry.setting == setting,
            ProposalHistoryEntry.proposed_by_household_id == household_id,
            ProposalHistoryEntry.proposed_at > since,
        ).count()

    def last_rejection(self, setting, household_id):
        return PendingChange.query.filter(
            PendingChange.link_id == self.id,
            PendingChange.setting == setting,
            PendingChange.proposed_by_household_id == household_id,
            PendingChange.status == ChangeStatus.REJECTED,
        ).order_by(PendingChange.last_rejected_at.desc(), PendingChange.id.desc()).first()

    def expire_overdue(self, now):
        expired = []
        for change in self.pending_changes:
            if change.status == ChangeStatus.PENDING and change.expires_at < now:
                change.status = ChangeStatus.EXPIRED
                change.resolved_at = now
                expired.append(change)
        if expired:
            self.touch()
        return expired

    def to_dict(self, include_history=True):
        data = {
            'id': self.id,
            'child_id': self.child_id,
            'household1_id': self.household1_id,
            'household2_id': self.household2_id,
            'link_code': self.link_code,
            'status': self.status.value,
            'version': self.version,
            'created_at': _iso(self.created_at),
            'accepted_at': _iso(self.accepted_at),
            'sharing_settings': {c.value: self.sharing(c).value for c in SharingCategory},
            'pending_changes': [c.to_dict() for c in self.pending_changes],
        }
        if include_history:
            data['proposal_history'] = [h.to_dict() for h in self.proposal_history]
        return data


class SharingSetting(db.Model):
    __tablename__ = 'sharing_setting'
    link_id = db.Column(db.Integer, db.ForeignKey('household_link.id'), primary_key=True)
    category = db.Column(_enum(SharingCategory, 'sharing_category'), primary_key=True)
    value = db.Column(_enum(SharingValue, 'sharing_value'), nullable=False, default=SharingValue.SEPARATE)
    link = db.relationship('HouseholdLink', back_populates='settings')


class PendingChange(db.Model):
    __tablename__ = 'pending_change'
    id = db.Column(db.Integer, primary_key=True)
    link_id = db.Column(db.Integer, db.ForeignKey('household_link.id'), nullable=False, index=True)
    setting = db.Column(_enum(SharingCategory, 'sharing_category'), nullable=False)
    current_value = db.Column(_enum(SharingValue, 'sharing_value'), nullable=False)
    proposed_value = db.Column(_enum(SharingValue, 'sharing_value'), nullable=False)
    proposed_by_id = db.Column(db.Integer, db.ForeignKey('family_member.id'), nullable=False)
    proposed_by_household_id = db.Column(db.Integer, db.ForeignKey('household.id'), nullable=False)
    proposed_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    status = db.Column(_enum(ChangeStatus, 'change_status'), nullable=False, default=ChangeStatus.PENDING)
    expires_at = db.Column(db.DateTime, nullable=False)
    previous_rejections = db.Column(db.Integer, nullable=False, default=0)
    last_rejected_at = db.Column(db.DateTime, nullable=True)
    resolved_at = db.Column(db.DateTime, nullable=True)
    link = db.relationship('HouseholdLink', back_populates='pending_changes')

    @property
    def is_pending(self):
        return self.status == ChangeStatus.PENDING

    def to_dict(self):
        return {
            'id': self.id,
            'setting': self.setting.value,
            'current_value': self.current_value.value,
            'proposed_value': self.proposed_value.value,
            'proposed_by': self.proposed_by_id,
            'proposed_by_household': self.proposed_by_household_id,
            'proposed_at': _iso(self.proposed_at),
            'status': self.status.value,
            'expires_at': _iso(self.expires_at),
            'previous_rejections': self.previous_rejections or 0,
            'last_rejected_at': _iso(self.last_rejected_at),
        }


class ProposalHistoryEntry(db.Model):
    """Append-only audit of proposals; the proposal rate limit counts these."""
    __tablename__ = 'proposal_history'
    __table_args__ = (
        db.Index('ix_history_rate_window', 'link_id', 'setting', 'proposed_by_household_id', 'proposed_at'),
    )
    id = db.Column(db.Integer, primary_key=True)
    link_id = db.Column(db.Integer, db.ForeignKey('household_link.id'), nullable=False)
    setting = db.Column(_enum(SharingCategory, 'sharing_category'), nullable=False)
    proposed_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    proposed_by_id = db.Column(db.Integer, db.ForeignKey('family_member.id'), nullable=False)
    proposed_by_household_id = db.Column(db.Integer, db.ForeignKey('household.id'), nullable=False)

    def to_dict(self):
        return {
            'setting': self.setting.value,
            'proposed_at': _iso(self.proposed_at),
            'proposed_by': self.proposed_by_id,
            'proposed_by_household': self.proposed_by_household_id,
        }


class Task(db.Model):
    __tablename__ = 'task'
    id = db.Column(db.Integer, primary_key=True)
    household_id = db.Column(db.Integer, db.ForeignKey('household.id'), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    points_value = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(_enum(TaskStatus, 'task_status'), nullable=False, default=TaskStatus.PENDING, index=True)
    completed_by_id = db.Column(db.Integer, db.ForeignKey('member_profile.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    assignees = db.relationship('MemberProfile', secondary=task_assignee, back_populates='tasks', order_by='MemberProfile.id')
    completed_by = db.relationship('MemberProfile', foreign_keys=[completed_by_id])

    def is_assigned(self, profile_id):
        return any(p.id == profile_id for p in self.assignees)

    def to_dict(self):
        return {
            'id': self.id,
            'household_id': self.household_id,
            'title': self.title,
            'description': self.description,
            'points_value': self.points_value,
            'status': self.status.value,
            'assigned_to': [p.id for p in self.assignees],
            'completed_by': self.completed_by_id,
            'updated_at': _iso(self.updated_at),
        }


class Routine(db.Model):
    __tablename__ = 'routine'
    id = db.Column(db.Integer, primary_key=True)
    household_id = db.Column(db.Integer, db.ForeignKey('household.id'), nullable=False, index=True)
    assigned_to_id = db.Column(db.Integer, db.ForeignKey('member_profile.id', ondelete='CASCADE'), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    points_reward = db.Column(db.Integer, nullable=False, default=10)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_completed_at = db.Column(db.DateTime, nullable=True)
    assigned_to = db.relationship('MemberProfile', back_populates='routines')

    def to_dict(self):
        return {
            'id': self.id,
            'household_id': self.household_id,
            'assigned_to': self.assigned_to_id,
            'title': self.title,
            'points_reward': self.points_reward,
            'is_active': self.is_active,
            'last_completed_at': _iso(self.last_completed_at),
        }


class SyncIntent(db.Model):
    """Outbox row: one points delta to mirror into one linked household."""
    __tablename__ = 'sync_intent'
    id = db.Column(db.Integer, primary_key=True)
    link_id = db.Column(db.Integer, db.ForeignKey('household_link.id'), nullable=False)
    child_id = db.Column(db.Integer, db.ForeignKey('family_member.id'), nullable=False)
    source_household_id = db.Column(db.Integer, db.ForeignKey('household.id'), nullable=False)
    target_household_id = db.Column(db.Integer, db.ForeignKey('household.id'), nullable=False)
    delta = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(64), nullable=True)
    status = db.Column(_enum(SyncStatus, 'sync_status'), nullable=False, default=SyncStatus.PENDING, index=True)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    processed_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'link_id': self.link_id,
            'child_id': self.child_id,
            'source_household_id': self.source_household_id,
            'target_household_id': self.target_household_id,
            'delta': self.delta,
            'reason': self.reason,
            'status': self.status.value,
            'attempts': self.attempts or 0,
        }
