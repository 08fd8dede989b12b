"""Period tokens (``today``, ``this_week``, …) resolved to time windows."""

from __future__ import annotations

from datetime import datetime, timedelta

PAST_PERIODS = ("today", "this_week", "last_week", "this_month", "last_month", "all")
FUTURE_PERIODS = ("today", "tomorrow", "this_week", "next_week", "this_month", "all")


def _midnight(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _month_start(moment: datetime, offset: int = 0) -> datetime:
    """First instant of the month *offset* months away from *moment*'s month."""
    index = moment.year * 12 + (moment.month - 1) + offset
    return _midnight(moment).replace(year=index // 12, month=index % 12 + 1, day=1)


def period_window(period: str, now: datetime) -> tuple[datetime, datetime] | None:
    """Return the half-open ``[start, end)`` window for *period*.

    Windows are computed in *now*'s timezone; weeks start on Monday.
    ``"all"`` returns None (no filtering). Unknown tokens raise ``ValueError``.
    """
    today = _midnight(now)
    week = today - timedelta(days=today.weekday())
    day = timedelta(days=1)
    seven = timedelta(days=7)

    if period == "all":
        return None
    if period == "today":
        return today, today + day
    if period == "tomorrow":
        return today + day, today + 2 * day
    if period == "this_week":
        return week, week + seven
    if period == "last_week":
        return week - seven, week
    if period == "next_week":
        return week + seven, week + 2 * seven
    if period == "this_month":
        return _month_start(now), _month_start(now, 1)
    if period == "last_month":
        return _month_start(now, -1), _month_start(now)

    msg = f"Unknown period: {period}"
    raise ValueError(msg)


def in_window(moment: datetime, window: tuple[datetime, datetime] | None) -> bool:
    """True when *moment* falls inside *window* (always True for no window)."""
    if window is None:
        return True
    start, end = window
    return start <= moment < end
