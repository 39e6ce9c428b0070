"""Consecutive up/down day streaks and their price extremes."""

from setup_screener.models.signals import IndicatorSnapshot, StreakState


def compute_streak(snapshot: IndicatorSnapshot, history: list[IndicatorSnapshot]) -> StreakState:
    """Walk back from today while the daily change keeps the same sign.

    ``history`` is the trailing window in any order; today's snapshot is
    appended when the window does not already end on today's date. A flat day
    or a change of direction ends the streak.
    """
    series = sorted(history, key=lambda s: s.date)
    if not series:
        return StreakState()
    if series[-1].date != snapshot.date:
        series.append(snapshot)

    up_days = down_days = 0
    up_high = 0.0
    down_low = float("inf")

    for day in reversed(series):
        if day.change > 0:
            if down_days:
                break
            up_days += 1
            up_high = max(up_high, day.high)
        elif day.change < 0:
            if up_days:
                break
            down_days += 1
            down_low = min(down_low, day.low)
        else:
            break

    return StreakState(
        up_days=up_days,
        down_days=down_days,
        up_high=up_high if up_days else 0.0,
        down_low=down_low if down_days else 0.0,
    )
