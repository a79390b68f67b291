"""Time-gap parsing, formatting and per-pick scoring for Slipstream."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional

from slipstream.core.constants import (
    DEFAULT_GREEN_JERSEY_POINTS,
    PENALTY_DNF,
    PENALTY_MISSED_PICK,
)

if TYPE_CHECKING:
    from slipstream.picks.models import PickScore

    from .parser import StageResult

_SAME_TIME = {"s.t.", "st", "", "-"}


def parse_time_gap(gap: Optional[str]) -> int:
    """Parse a gap like "+1:23", "1:02:34", "34" or "s.t." into seconds.

    Anything that cannot be read counts as the same time as the winner.
    """
    if gap is None:
        return 0
    if isinstance(gap, (int, float)):
        return max(int(gap), 0)

    clean = gap.replace("+", "").strip().lower()
    if clean in _SAME_TIME:
        return 0

    try:
        parts = [int(part) for part in clean.split(":")]
    except ValueError:
        logging.warning(f"Could not parse time gap: {gap!r}")
        return 0

    if len(parts) == 1:
        return parts[0]
    if len(parts) == 2:
        return parts[0] * 60 + parts[1]
    if len(parts) == 3:
        return parts[0] * 3600 + parts[1] * 60 + parts[2]
    logging.warning(f"Could not parse time gap: {gap!r}")
    return 0


def format_time(seconds: int) -> str:
    """Format seconds as "M:SS", or "H:MM:SS" from one hour up."""
    if seconds <= 0:
        return "0:00"
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_time_gap(seconds: int) -> str:
    """Format a gap for standings, with a leading "+" when non-zero."""
    if seconds <= 0:
        return "0:00"
    return f"+{format_time(seconds)}"


def green_jersey_points(
    finish_position: Optional[int], table: Optional[dict[int, int]] = None
) -> int:
    """Points for a finish position; zero outside the table."""
    if not finish_position or finish_position < 1:
        return 0
    if table is None:
        table = DEFAULT_GREEN_JERSEY_POINTS
    return table.get(finish_position, 0)


def penalty_seconds(finishers: Iterable[StageResult], penalty_minutes: int) -> int:
    """Worst finishing gap of the race plus the fixed penalty surcharge."""
    worst_gap = max((r.time_gap_seconds for r in finishers), default=0)
    return worst_gap + penalty_minutes * 60


def penalty_score(reason: str, seconds: int) -> PickScore:
    """Score for a pick that earns the penalty."""
    return {
        "timeLostSeconds": seconds,
        "timeLostFormatted": format_time(seconds),
        "greenJerseyPoints": 0,
        "riderFinishPosition": None,
        "isPenalty": True,
        "penaltyReason": reason,
    }


def score_pick(
    rider_id: Optional[str],
    result: Optional[StageResult],
    penalty: int,
    points_table: Optional[dict[int, int]] = None,
) -> PickScore:
    """Score one pick given the finisher its rider matched, if any.

    ``penalty`` is the precomputed penalty time in seconds.
    """
    if not rider_id:
        return penalty_score(PENALTY_MISSED_PICK, penalty)
    if result is None:
        return penalty_score(PENALTY_DNF, penalty)

    return {
        "timeLostSeconds": result.time_gap_seconds,
        "timeLostFormatted": format_time(result.time_gap_seconds),
        "greenJerseyPoints": green_jersey_points(result.finish_position, points_table),
        "riderFinishPosition": result.finish_position,
        "isPenalty": False,
        "penaltyReason": None,
    }
