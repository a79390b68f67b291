"""Data models for the race calendar."""

from __future__ import annotations

from enum import Enum
from typing import Any, TypedDict

from slipstream.core.types import FirestoreDocument
from slipstream.errors import InvalidTransitionError, ValidationError


class RaceStatus(str, Enum):
    """Lifecycle state of a race on a Slipstream calendar."""

    UPCOMING = "upcoming"
    LOCKED = "locked"
    FINISHED = "finished"

    @classmethod
    def parse(cls, value: Any) -> RaceStatus:
        """Parse a status string, rejecting anything outside the enum."""
        try:
            return cls(value)
        except ValueError as e:
            raise ValidationError(
                "Invalid status. Must be: upcoming, locked, or finished",
                {"status": value},
            ) from e


# Transitions an admin may request directly. FINISHED -> FINISHED is accepted
# as an explicit re-run marker and changes nothing.
ADMIN_TRANSITIONS: dict[RaceStatus, frozenset[RaceStatus]] = {
    RaceStatus.UPCOMING: frozenset({RaceStatus.LOCKED}),
    RaceStatus.LOCKED: frozenset({RaceStatus.UPCOMING}),
    RaceStatus.FINISHED: frozenset({RaceStatus.LOCKED, RaceStatus.FINISHED}),
}

# Transitions performed by a successful results calculation. This is the only
# way a race reaches FINISHED.
RESULTS_TRANSITIONS: dict[RaceStatus, frozenset[RaceStatus]] = {
    RaceStatus.UPCOMING: frozenset(),
    RaceStatus.LOCKED: frozenset({RaceStatus.FINISHED}),
    RaceStatus.FINISHED: frozenset({RaceStatus.FINISHED}),
}


def validate_transition(
    race_slug: str,
    current: RaceStatus,
    requested: RaceStatus,
    via_results: bool = False,
) -> None:
    """Raise InvalidTransitionError unless the table allows the move."""
    table = RESULTS_TRANSITIONS if via_results else ADMIN_TRANSITIONS
    if requested not in table[current]:
        raise InvalidTransitionError(race_slug, current.value, requested.value)


class StageResultEntry(TypedDict, total=False):
    """A normalized finisher stored with a race after a results run."""

    riderId: str
    riderName: str | None
    finishPosition: int
    timeGapToWinnerSeconds: int


class Race(FirestoreDocument, total=False):
    """A race document under games/{gameId}/races/{raceSlug}."""

    raceId: str
    raceSlug: str
    raceName: str
    raceDate: Any
    pickDeadline: Any
    status: str
    order: int
    stageResults: list[StageResultEntry]
    resultsCalculatedAt: Any
    calculationStartedAt: Any

    # UI and calculated fields
    deadlinePassed: bool
    timeUntilDeadline: int
    timeUntilDeadlineFormatted: str
    userPick: dict[str, Any] | None


def race_status(race: Race) -> RaceStatus:
    """Read the status of a stored race."""
    return RaceStatus.parse(race.get("status", RaceStatus.UPCOMING.value))
