"""Data models for Slipstream games and their participants."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypedDict

from slipstream.core.constants import (
    DEFAULT_GREEN_JERSEY_POINTS,
    DEFAULT_PENALTY_MINUTES,
    DEFAULT_PICK_DEADLINE_MINUTES,
)
from slipstream.core.types import FirestoreDocument


class SlipstreamConfig(TypedDict, total=False):
    """The ``config`` map stored on a Slipstream game document."""

    penaltyMinutes: int
    pickDeadlineMinutes: int
    greenJerseyPoints: dict[str, int]


class Game(FirestoreDocument, total=False):
    """A game document in Firestore."""

    name: str
    gameType: str
    status: str
    config: SlipstreamConfig


class GameParticipant(TypedDict, total=False):
    """A row of the gameParticipants collection."""

    id: str
    gameId: str
    userId: str
    playername: str
    status: str
    lastPickAt: Any
    lastPickRace: str


@dataclass(frozen=True)
class ScoringConfig:
    """Resolved scoring settings for one game."""

    penalty_minutes: int = DEFAULT_PENALTY_MINUTES
    pick_deadline_minutes: int = DEFAULT_PICK_DEADLINE_MINUTES
    green_jersey_points: dict[int, int] = field(
        default_factory=lambda: dict(DEFAULT_GREEN_JERSEY_POINTS)
    )
