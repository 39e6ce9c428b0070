"""Tests for consecutive day streaks."""

from datetime import date, timedelta

import pytest

from setup_screener.models.signals import IndicatorSnapshot
from setup_screener.services.streaks import compute_streak

TODAY = date(2024, 6, 12)


def _make_series(changes, highs=None, lows=None):
    """Snapshots ending yesterday, one per change, oldest first."""
    n = len(changes)
    highs = highs or [10.0] * n
    lows = lows or [9.0] * n
    return [
        IndicatorSnapshot(
            ticker="TEST",
            date=TODAY - timedelta(days=n - i),
            change=changes[i],
            high=highs[i],
            low=lows[i],
        )
        for i in range(n)
    ]


def test_no_history_is_all_zero():
    today = IndicatorSnapshot(ticker="TEST", date=TODAY, change=1.0, high=11.0)
    streak = compute_streak(today, [])
    assert streak.up_days == 0
    assert streak.down_days == 0
    assert streak.up_high == 0.0
    assert streak.down_low == 0.0


def test_up_streak_tracks_max_high():
    history = _make_series([-1.0, 0.5, 0.7], highs=[9.0, 10.5, 11.2])
    today = IndicatorSnapshot(ticker="TEST", date=TODAY, change=0.3, high=10.9, low=10.0)
    streak = compute_streak(today, history)
    assert streak.up_days == 3
    assert streak.down_days == 0
    assert streak.up_high == pytest.approx(11.2)
    assert streak.down_low == 0.0


def test_down_streak_tracks_min_low():
    history = _make_series([0.4, -0.2, -0.3], lows=[9.5, 8.8, 8.1])
    today = IndicatorSnapshot(ticker="TEST", date=TODAY, change=-0.1, low=8.4)
    streak = compute_streak(today, history)
    assert streak.down_days == 3
    assert streak.up_days == 0
    assert streak.down_low == pytest.approx(8.1)
    assert streak.up_high == 0.0


def test_flat_day_breaks_streak():
    history = _make_series([1.0, 1.0, 0.0, 1.0])
    today = IndicatorSnapshot(ticker="TEST", date=TODAY, change=1.0, high=12.0)
    streak = compute_streak(today, history)
    assert streak.up_days == 2


def test_flat_today_means_no_streak():
    history = _make_series([1.0, 1.0])
    today = IndicatorSnapshot(ticker="TEST", date=TODAY, change=0.0)
    streak = compute_streak(today, history)
    assert streak.up_days == 0
    assert streak.down_days == 0


def test_today_not_appended_twice():
    history = _make_series([1.0, 1.0])
    today = IndicatorSnapshot(ticker="TEST", date=TODAY, change=1.0, high=10.0)
    streak = compute_streak(today, history + [today])
    assert streak.up_days == 3


def test_unsorted_history_is_sorted():
    history = list(reversed(_make_series([-1.0, 1.0, 1.0])))
    today = IndicatorSnapshot(ticker="TEST", date=TODAY, change=1.0, high=10.0)
    streak = compute_streak(today, history)
    assert streak.up_days == 3
