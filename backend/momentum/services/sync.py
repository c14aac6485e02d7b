"""Cross-household synchronization of a shared child's points.

An award in one household appends a SyncIntent per active link whose
``points`` setting is shared, inside the award's own transaction. Once the
award has committed, :func:`dispatch` tries those intents straight away; any
that fail stay pending for the outbox worker. Nothing in here raises back into
the award path.
"""

from typing import Iterable, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from momentum import db, socketio
from momentum.events import emit_member_update, emit_notification
from momentum.models import (
    Household,
    HouseholdLink,
    MemberProfile,
    SharingCategory,
    SyncIntent,
    SyncStatus,
    Task,
    utcnow,
)


def enqueue_points_sync(source_household_id: int, child_id: int, delta: int, reason: str,
                        now=None) -> List[SyncIntent]:
    """Queue ``delta`` for every household sharing points with the source. Caller commits."""
    if not delta:
        return []
    now = now or utcnow()
    intents = []
    # Keep the award unflushed until the caller commits
    with db.session.no_autoflush:
        shared = [link for link in HouseholdLink.active_for(source_household_id, child_id=child_id)
                  if link.is_shared(SharingCategory.POINTS)]
    for link in shared:
        intent = SyncIntent(
            link_id=link.id,
            child_id=child_id,
            source_household_id=source_household_id,
            target_household_id=link.counterpart_of(source_household_id),
            delta=delta,
            reason=reason,
            status=SyncStatus.PENDING,
            attempts=0,
            created_at=now,
        )
        db.session.add(intent)
        intents.append(intent)
    return intents


def dispatch(intents: Iterable[SyncIntent], now=None) -> List[SyncIntent]:
    """Best-effort inline delivery of intents committed by an award.

    The award is already committed, so nothing raised here may reach the
    caller; intents that cannot be delivered now stay pending for the outbox.
    """
    try:
        intent_ids = [i.id for i in intents if i.id is not None]
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("[sync-dispatch] committed intents unreadable, left for the outbox")
        return []
    return [process_intent(intent_id, now=now) for intent_id in intent_ids]


def drain_outbox(limit: int = 100, now=None) -> List[SyncIntent]:
    pending_ids = [
        row.id for row in SyncIntent.query.filter_by(status=SyncStatus.PENDING)
        .order_by(SyncIntent.id).limit(limit).all()
    ]
    if pending_ids:
        current_app.logger.info(f"[outbox-drain] pending={len(pending_ids)}")
    return [process_intent(intent_id, now=now) for intent_id in pending_ids]


def process_intent(intent_id: int, now=None) -> Optional[SyncIntent]:
    now = now or utcnow()
    try:
        intent = db.session.get(SyncIntent, intent_id)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(f"[sync-fail] intent={intent_id} could not be loaded")
        return None
    if intent is None or intent.status != SyncStatus.PENDING:
        return intent
    link_id, target_id = intent.link_id, intent.target_household_id
    try:
        profile = _apply_intent(intent, now)
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception(f"[sync-fail] intent={intent_id} link={link_id} target={target_id}")
        return _record_failure(intent_id, exc, now)

    if profile is not None:
        _notify_target(intent, profile)
    return intent


def _apply_intent(intent: SyncIntent, now) -> Optional[MemberProfile]:
    link = db.session.get(HouseholdLink, intent.link_id)
    target = db.session.get(Household, intent.target_household_id)
    if link is None or not link.is_active or target is None:
        _skip(intent, now, 'link is no longer active')
        return None
    profile = target.profile_for_member(intent.child_id)
    if profile is None:
        _skip(intent, now, 'child has no profile in the linked household')
        return None

    total = target.credit_points(profile, intent.delta)
    intent.status = SyncStatus.APPLIED
    intent.attempts = (intent.attempts or 0) + 1
    intent.processed_at = now
    current_app.logger.info(
        f"[sync-apply] intent={intent.id} child={intent.child_id} "
        f"{intent.source_household_id}->{intent.target_household_id} delta={intent.delta} total={total}"
    )
    return profile


def _skip(intent: SyncIntent, now, why: str) -> None:
    intent.status = SyncStatus.SKIPPED
    intent.attempts = (intent.attempts or 0) + 1
    intent.last_error = why
    intent.processed_at = now
    current_app.logger.warning(f"[sync-skip] intent={intent.id} target={intent.target_household_id} {why}")


def _record_failure(intent_id: int, exc: Exception, now) -> Optional[SyncIntent]:
    try:
        intent = db.session.get(SyncIntent, intent_id)
        if intent is None:
            return None
        intent.attempts = (intent.attempts or 0) + 1
        intent.last_error = str(exc)[:500]
        max_attempts = int(current_app.config.get('SYNC_MAX_ATTEMPTS', 5))
        if intent.attempts >= max_attempts:
            intent.status = SyncStatus.FAILED
            intent.processed_at = now
            current_app.logger.error(f"[sync-giveup] intent={intent_id} attempts={intent.attempts}")
        db.session.commit()
        return intent
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(f"[sync-fail] could not record failure for intent={intent_id}")
        return None


def _notify_target(intent: SyncIntent, profile: MemberProfile) -> None:
    try:
        emit_member_update(intent.target_household_id, profile)
        emit_notification(
            intent.target_household_id,
            'points_synced',
            f"{profile.display_name} earned {intent.delta} points in a linked household",
            member_id=profile.id,
            delta=intent.delta,
            points_total=profile.points_total,
        )
    except Exception:
        current_app.logger.exception(f"[sync-notify] intent={intent.id} event emission failed")


def shared_tasks_for(household_id: int) -> List[Task]:
    """Tasks in linked households assigned to the shared child, where tasks are shared."""
    shared = []
    for link in HouseholdLink.active_for(household_id):
        if not link.is_shared(SharingCategory.TASKS):
            continue
        other_id = link.counterpart_of(household_id)
        other = db.session.get(Household, other_id)
        profile = other.profile_for_member(link.child_id) if other else None
        if profile is None:
            continue
        shared.extend(
            Task.query.filter(Task.household_id == other_id, Task.assignees.any(MemberProfile.id == profile.id))
            .order_by(Task.created_at.desc()).all()
        )
    return shared


def start_outbox_worker(app) -> None:
    """Drain the outbox periodically in a Socket.IO background task.

    - No-ops in TESTING mode
    - SYNC_DRAIN_INTERVAL_SEC <= 0 disables the loop
    """
    if app.config.get('TESTING'):
        return
    interval = int(app.config.get('SYNC_DRAIN_INTERVAL_SEC', 30))
    if interval <= 0:
        return

    def _worker():
        while True:
            socketio.sleep(interval)
            with app.app_context():
                try:
                    drain_outbox()
                except Exception:
                    app.logger.exception("[outbox-drain] drain pass failed")
                finally:
                    db.session.remove()

    app.logger.info(f"[outbox-worker] started interval={interval}s")
    socketio.start_background_task(_worker)
