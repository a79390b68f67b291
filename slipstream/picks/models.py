"""Data models for Slipstream picks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, TypedDict

from slipstream.core.constants import PICK_SCORING_FIELDS
from slipstream.core.types import FirestoreDocument


class Pick(FirestoreDocument, total=False):
    """A pick document in the stagePicks collection."""

    gameId: str
    userId: str
    playername: str
    raceSlug: str
    riderId: Optional[str]
    riderName: Optional[str]
    pickedAt: Any
    locked: bool

    # Scoring fields, written by a results calculation
    timeLostSeconds: Optional[int]
    timeLostFormatted: Optional[str]
    greenJerseyPoints: Optional[int]
    riderFinishPosition: Optional[int]
    isPenalty: Optional[bool]
    penaltyReason: Optional[str]
    processedAt: Any


class PickScore(TypedDict):
    """The scoring outcome of one pick for one race."""

    timeLostSeconds: int
    timeLostFormatted: str
    greenJerseyPoints: int
    riderFinishPosition: Optional[int]
    isPenalty: bool
    penaltyReason: Optional[str]


def pick_id(game_id: str, race_slug: str, user_id: str) -> str:
    """Document id of the single pick a user holds for a race."""
    return f"{game_id}_{race_slug}_{user_id}"


def unscored_fields() -> dict[str, Any]:
    """Scoring fields cleared, for a pick that is open again."""
    return {name: None for name in PICK_SCORING_FIELDS}


@dataclass
class PickSubmission:
    """Dataclass for a player's pick submission."""

    game_id: str
    user_id: str
    race_slug: str
    rider_id: str
    rider_name: Optional[str] = None

    def validate(self) -> None:
        """Validate the submission for obvious errors."""
        if not self.race_slug:
            raise ValueError("raceSlug is required.")
        if not self.rider_id or not self.rider_id.strip():
            raise ValueError("riderId is required.")
