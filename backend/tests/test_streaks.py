from datetime import date, timedelta

import pytest

from momentum.services.streaks import (
    INCREMENT,
    MAINTAIN,
    RESET,
    apply_multiplier,
    compute_transition,
    multiplier_for,
    tier_for,
)

TODAY = date(2025, 3, 10)


@pytest.mark.parametrize('streak, expected', [
    (0, 1.0), (2, 1.0), (3, 1.5), (6, 1.5), (7, 2.0),
    (13, 2.0), (14, 2.5), (29, 2.5), (30, 3.0), (365, 3.0),
])
def test_multiplier_tiers(streak, expected):
    assert multiplier_for(streak) == expected


def test_tier_labels():
    assert tier_for(0).label == 'Getting Started'
    assert tier_for(30).label == 'Champion'


def test_apply_multiplier_floors():
    assert apply_multiplier(15, 1.5) == 22
    assert apply_multiplier(20, 2.0) == 40
    assert apply_multiplier(0, 3.0) == 0


def test_not_all_done_leaves_streak_alone():
    t = compute_transition(5, 9, TODAY - timedelta(days=1), False, today=TODAY)
    assert t.change is None
    assert (t.current_streak, t.longest_streak) == (5, 9)
    assert t.last_completion_date == TODAY - timedelta(days=1)
    assert t.multiplier == 1.5


def test_first_completion_starts_streak():
    t = compute_transition(0, 0, None, True, today=TODAY)
    assert t.change == RESET
    assert (t.current_streak, t.longest_streak, t.multiplier) == (1, 1, 1.0)
    assert t.last_completion_date == TODAY


def test_consecutive_day_increments_into_next_tier():
    t = compute_transition(6, 6, TODAY - timedelta(days=1), True, today=TODAY)
    assert t.change == INCREMENT
    assert (t.current_streak, t.longest_streak, t.multiplier) == (7, 7, 2.0)


def test_same_day_maintains():
    t = compute_transition(4, 10, TODAY, True, today=TODAY)
    assert t.change == MAINTAIN
    assert (t.current_streak, t.longest_streak, t.multiplier) == (4, 10, 1.5)


def test_gap_resets_but_keeps_longest():
    t = compute_transition(12, 12, TODAY - timedelta(days=3), True, today=TODAY)
    assert t.change == RESET
    assert (t.current_streak, t.longest_streak, t.multiplier) == (1, 12, 1.0)
