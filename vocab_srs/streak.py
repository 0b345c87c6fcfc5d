from __future__ import annotations

from datetime import date, timedelta
from typing import NamedTuple


class StreakUpdate(NamedTuple):
    current: int
    longest: int


def next_streak(
    last_activity: date | None,
    today: date,
    current_streak: int = 0,
    longest_streak: int = 0,
) -> StreakUpdate:
    """Daily-activity streak after studying on *today*."""
    if last_activity is None:
        return StreakUpdate(1, max(1, longest_streak))
    if last_activity == today:
        return StreakUpdate(current_streak, longest_streak)
    if last_activity == today - timedelta(days=1):
        current = current_streak + 1
        return StreakUpdate(current, max(longest_streak, current))
    # Gap (or a clock that went backwards): start over
    return StreakUpdate(1, max(longest_streak, 1))
