"""Daily activity streaks."""

from __future__ import annotations

from datetime import date, datetime, timezone

from aventures.db.models import UserProgress


def advance_streak(
    current_streak: int,
    longest_streak: int,
    last_active_on: date | None,
    today: date,
) -> tuple[int, int]:
    """Return (current, longest) after activity on ``today``.

    Same day: unchanged. Next calendar day: +1. Any gap, or no prior
    activity: restarts at 1. ``longest`` never drops below ``current``.
    """
    if last_active_on == today:
        current = max(current_streak, 1)
    elif last_active_on is not None and (today - last_active_on).days == 1:
        current = current_streak + 1
    else:
        current = 1
    return current, max(longest_streak, current)


def record_activity_day(progress: UserProgress, now: datetime | None = None) -> bool:
    """Apply today's activity to the progress row. Returns True if the streak grew."""
    today = (now or datetime.now(timezone.utc)).date()
    before = progress.current_streak
    progress.current_streak, progress.longest_streak = advance_streak(
        progress.current_streak,
        progress.longest_streak,
        progress.last_active_on,
        today,
    )
    progress.last_active_on = today
    return progress.current_streak > before
