"""Data models for Slipstream standings."""

from typing import TypedDict


class StandingEntry(TypedDict):
    """One row of the yellow or green jersey classification."""

    userId: str
    playername: str
    ranking: int
    value: int
    valueFormatted: str
    gapToLeader: int
    gapToLeaderFormatted: str
    picksCount: int
    missedPicksCount: int
