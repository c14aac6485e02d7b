"""Streak transitions and point multipliers.

Pure functions only: callers pass in the profile's current streak state and
get back the new state, nothing here touches the database.
"""

import math
from datetime import date, datetime, timezone
from typing import NamedTuple, Optional


class StreakTier(NamedTuple):
    days: int
    multiplier: float
    label: str


# Minimum consecutive days -> multiplier. Must stay sorted by days.
STREAK_TIERS = (
    StreakTier(0, 1.0, 'Getting Started'),
    StreakTier(3, 1.5, 'On Fire'),
    StreakTier(7, 2.0, 'Unstoppable'),
    StreakTier(14, 2.5, 'Legendary'),
    StreakTier(30, 3.0, 'Champion'),
)

MAINTAIN = 'maintain'
INCREMENT = 'increment'
RESET = 'reset'


class StreakTransition(NamedTuple):
    change: Optional[str]  # None when the day is not complete yet
    current_streak: int
    longest_streak: int
    last_completion_date: Optional[date]
    multiplier: float


def tier_for(streak: int) -> StreakTier:
    tier = STREAK_TIERS[0]
    for candidate in STREAK_TIERS:
        if streak >= candidate.days:
            tier = candidate
        else:
            break
    return tier


def multiplier_for(streak: int) -> float:
    return tier_for(streak).multiplier


def apply_multiplier(base_points: int, multiplier: float) -> int:
    return int(math.floor(base_points * multiplier))


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def classify_change(last_completion_date: Optional[date], today: date) -> str:
    """Compare calendar days: same day maintains, the next day increments."""
    if last_completion_date is None:
        return RESET
    gap = (today - last_completion_date).days
    if gap == 0:
        return MAINTAIN
    if gap == 1:
        return INCREMENT
    return RESET


def compute_transition(
    current_streak: int,
    longest_streak: int,
    last_completion_date: Optional[date],
    all_assigned_tasks_done_today: bool,
    today: Optional[date] = None,
) -> StreakTransition:
    """Work out the member's streak after an approval.

    Nothing changes until every task assigned to the member is done for the
    day; the reported multiplier then still follows the unchanged streak.
    Repeated completions on one day keep the streak where it is.
    """
    current_streak = current_streak or 0
    longest_streak = longest_streak or 0
    if not all_assigned_tasks_done_today:
        return StreakTransition(None, current_streak, longest_streak, last_completion_date,
                                multiplier_for(current_streak))

    today = today or utc_today()
    change = classify_change(last_completion_date, today)
    if change == MAINTAIN:
        new_streak = current_streak
    elif change == INCREMENT:
        new_streak = current_streak + 1
    else:
        new_streak = 1

    return StreakTransition(
        change,
        new_streak,
        max(longest_streak, new_streak),
        today,
        multiplier_for(new_streak),
    )
