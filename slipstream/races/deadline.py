"""Pick deadline checks.

These are pure functions of a race and the wall-clock time of the request.
Callers pass ``now`` taken at the moment of each pick mutation; nothing here
is cached.
"""

from __future__ import annotations

import datetime
from typing import TYPE_CHECKING

from slipstream.core.utils import as_utc_datetime

from .models import RaceStatus, race_status

if TYPE_CHECKING:
    from .models import Race


def can_pick(race: Race, now: datetime.datetime) -> bool:
    """Return True while the race is upcoming and its deadline is ahead."""
    if race_status(race) is not RaceStatus.UPCOMING:
        return False
    deadline = as_utc_datetime(race.get("pickDeadline"))
    if deadline is None:
        return False
    return as_utc_datetime(now) < deadline  # type: ignore[operator]


def time_until_deadline(race: Race, now: datetime.datetime) -> datetime.timedelta:
    """Time left until the pick deadline, zero once it has passed."""
    deadline = as_utc_datetime(race.get("pickDeadline"))
    if deadline is None:
        return datetime.timedelta(0)
    remaining = deadline - as_utc_datetime(now)  # type: ignore[operator]
    return max(remaining, datetime.timedelta(0))


def format_time_remaining(remaining: datetime.timedelta) -> str:
    """Format time remaining as e.g. "2d 5h 30m", "5h 30m" or "30m"."""
    total_seconds = int(remaining.total_seconds())
    if total_seconds <= 0:
        return "Deadline passed"

    minutes = total_seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h {minutes % 60}m"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    return f"{minutes}m"
