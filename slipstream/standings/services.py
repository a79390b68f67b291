"""Service layer for Slipstream standings."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Iterable

from firebase_admin import firestore

from slipstream.core.constants import PICKS_COLLECTION
from slipstream.games.services import GameService
from slipstream.races.models import RaceStatus
from slipstream.races.services import RaceCalendarService
from slipstream.results.scoring import format_time_gap

from .models import StandingEntry

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

    from slipstream.games.models import GameParticipant
    from slipstream.picks.models import Pick


def _totals(
    picks: Iterable[Pick], participants: Iterable[GameParticipant]
) -> dict[str, dict[str, Any]]:
    """Sum locked picks per active participant, zero-filled."""
    totals: dict[str, dict[str, Any]] = {}
    for participant in participants:
        totals[participant["userId"]] = {
            "userId": participant["userId"],
            "playername": participant.get("playername") or "Unknown",
            "time": 0,
            "points": 0,
            "picksCount": 0,
            "missedPicksCount": 0,
        }

    for pick in picks:
        row = totals.get(pick.get("userId", ""))
        if row is None or not pick.get("locked"):
            continue
        row["time"] += pick.get("timeLostSeconds") or 0
        row["points"] += pick.get("greenJerseyPoints") or 0
        if pick.get("isPenalty"):
            row["missedPicksCount"] += 1
        else:
            row["picksCount"] += 1
    return totals


def _rank(
    rows: list[dict[str, Any]],
    key: str,
    ascending: bool,
    fmt_value: Callable[[int], str],
    fmt_gap: Callable[[int], str],
) -> list[StandingEntry]:
    """Order rows by one total and assign dense rankings."""
    ordered = sorted(
        rows,
        key=lambda r: (
            r[key] if ascending else -r[key],
            r["missedPicksCount"],
            r["playername"].casefold(),
            r["userId"],
        ),
    )
    if not ordered:
        return []

    leader_value = ordered[0][key]
    standings: list[StandingEntry] = []
    ranking = 0
    previous = None
    for row in ordered:
        value = row[key]
        if value != previous:
            ranking += 1
            previous = value
        gap = abs(value - leader_value)
        standings.append(
            {
                "userId": row["userId"],
                "playername": row["playername"],
                "ranking": ranking,
                "value": value,
                "valueFormatted": fmt_value(value),
                "gapToLeader": gap,
                "gapToLeaderFormatted": "-" if gap == 0 else fmt_gap(gap),
                "picksCount": row["picksCount"],
                "missedPicksCount": row["missedPicksCount"],
            }
        )
    return standings


def aggregate_standings(
    picks: Iterable[Pick], participants: Iterable[GameParticipant]
) -> dict[str, list[StandingEntry]]:
    """Fold locked picks into the yellow and green jersey classifications.

    Yellow is the total time lost, lowest first. Green is the total sprint
    points, highest first. Equal totals share a ranking; among them rows are
    ordered by fewer missed picks, then player name, then user id.
    """
    rows = list(_totals(picks, participants).values())
    return {
        "yellowJersey": _rank(
            rows, "time", True, format_time_gap, format_time_gap
        ),
        "greenJersey": _rank(
            rows,
            "points",
            False,
            lambda points: f"{points} pts",
            lambda gap: f"-{gap} pts",
        ),
    }


class StandingsService:
    """Builds standings from the scored picks of a game."""

    @staticmethod
    def get_standings(db: Client, game_id: str) -> dict[str, Any]:
        """Compute the current yellow and green jersey standings."""
        GameService.get_game(db, game_id)
        participants = GameService.list_participants(db, game_id)
        races = RaceCalendarService.list_races(db, game_id)

        locked_picks = [
            doc.to_dict() or {}
            for doc in db.collection(PICKS_COLLECTION)
            .where(filter=firestore.FieldFilter("gameId", "==", game_id))
            .where(filter=firestore.FieldFilter("locked", "==", True))
            .stream()
        ]

        standings = aggregate_standings(locked_picks, participants)
        return {
            **standings,
            "racesCompleted": sum(
                1 for r in races if r.get("status") == RaceStatus.FINISHED.value
            ),
            "totalRaces": len(races),
        }
