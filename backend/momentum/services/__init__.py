"""Household domain services: streaks, tasks, links and cross-household sync.

HTTP routes and socket handlers call into these modules; transport concerns
stay out of here apart from emitting domain events after a commit.
"""

from sqlalchemy.orm.exc import StaleDataError

from momentum import db
from momentum.errors import ConflictError


def commit_or_conflict(what: str) -> None:
    """Commit the unit of work; a stale aggregate version becomes a ConflictError."""
    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        raise ConflictError(f'{what} was changed by another request; reload and retry.')
