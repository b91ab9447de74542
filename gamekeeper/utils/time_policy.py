"""
Time-elapsed policy for sessions and results.

Pure functions, evaluated fresh on every read. Nothing here touches the
database; the session service applies the resulting transitions.
"""

import math
from datetime import datetime
from typing import Optional

from gamekeeper.utils import constants
from gamekeeper.utils.datetime_utils import ensure_utc, utcnow


def hours_elapsed(reference: datetime, now: Optional[datetime] = None) -> float:
    """
    Hours between a reference timestamp and now, as a real number.

    Args:
        reference: Start timestamp (naive values are read as UTC)
        now: Current time; defaults to utcnow()

    Returns:
        Elapsed hours (negative if reference lies in the future)
    """
    now = ensure_utc(now) if now is not None else utcnow()
    return (now - ensure_utc(reference)).total_seconds() / 3600.0


def _window_passed(reference: datetime, now: Optional[datetime], window_hours: Optional[float]) -> bool:
    if window_hours is None:
        window_hours = constants.RESOLUTION_WINDOW_HOURS
    return hours_elapsed(reference, now) >= window_hours


def should_auto_approve(
    created_at: datetime, now: Optional[datetime] = None, window_hours: Optional[float] = None
) -> bool:
    """True once a PENDING result's session is older than the resolution window."""
    return _window_passed(created_at, now, window_hours)


def should_auto_void(
    created_at: datetime, now: Optional[datetime] = None, window_hours: Optional[float] = None
) -> bool:
    """True once a session with no result is older than the resolution window."""
    return _window_passed(created_at, now, window_hours)


def _plural(count, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_time_elapsed(hours: float) -> str:
    """
    Render elapsed hours for humans.

    Examples:
        >>> format_time_elapsed(0.5)
        '30 minutes'
        >>> format_time_elapsed(2.3)
        '2.3 hours'
        >>> format_time_elapsed(26)
        '1 day, 2 hours'
        >>> format_time_elapsed(48)
        '2 days'
    """
    if hours < 1:
        return _plural(math.floor(round(hours * 60, 6)), "minute")

    if hours < 24:
        # Truncate (not round) to one decimal; round() first absorbs float noise like 22.999999
        tenths = math.floor(round(hours * 10, 6)) / 10
        return _plural(f"{tenths:g}", "hour") if tenths != 1 else "1 hour"

    days = math.floor(hours / 24)
    remaining_hours = math.floor(hours % 24)
    if remaining_hours == 0:
        return _plural(days, "day")
    return f"{_plural(days, 'day')}, {_plural(remaining_hours, 'hour')}"


def derive_session_status(
    session_created_at: datetime,
    is_active: bool,
    result_status: Optional[str] = None,
    ended_manually: bool = False,
    now: Optional[datetime] = None,
) -> str:
    """
    Compute the effective status of a session without writing anything.

    A PENDING result past the window reads as APPROVED; an active session
    with no result past the window reads as VOID.

    Args:
        session_created_at: When the session was created
        is_active: Stored active flag
        result_status: Stored Result.status, or None if no result exists
        ended_manually: True if the creator ended the session
        now: Current time; defaults to utcnow()

    Returns:
        One of the SessionStatus values
    """
    if result_status is not None:
        if result_status == "PENDING" and should_auto_approve(session_created_at, now):
            return "APPROVED"
        return result_status

    if is_active:
        return "VOID" if should_auto_void(session_created_at, now) else "ACTIVE"

    # Inactive without a result: either ended by the creator or auto-voided earlier
    return "INACTIVE" if ended_manually else "VOID"
