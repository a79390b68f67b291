"""Service layer for Slipstream games and participants."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore
from flask import current_app

from slipstream.core.constants import (
    ACTIVE_PARTICIPANT_STATUS,
    GAMES_COLLECTION,
    PARTICIPANTS_COLLECTION,
    SLIPSTREAM_GAME_TYPE,
    USERS_COLLECTION,
)
from slipstream.errors import NotFoundError, ValidationError

from .models import Game, GameParticipant, ScoringConfig

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference


def smart_display_name(user: dict[str, Any]) -> str:
    """Return the name to show for a user in standings and pick lists."""
    return (
        user.get("playername")
        or user.get("username")
        or user.get("name")
        or "Unknown"
    )


def parse_points_table(raw: dict[Any, Any]) -> dict[int, int]:
    """Parse a stored green-jersey table, keyed by position strings."""
    try:
        table = {int(pos): int(points) for pos, points in raw.items()}
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid green jersey points table: {e}") from e

    if any(pos < 1 or points < 0 for pos, points in table.items()):
        raise ValidationError(
            "Green jersey positions must start at 1 and points cannot be negative."
        )
    ordered = [table[pos] for pos in sorted(table)]
    if any(later > earlier for earlier, later in zip(ordered, ordered[1:])):
        raise ValidationError(
            "Green jersey points must not increase with finish position."
        )
    return table


def parse_minutes(value: Any, name: str, minimum: int) -> int:
    """Parse a whole number of minutes from game or app config."""
    invalid = ValidationError(
        f"{name} must be a whole number of minutes.", {name: value}
    )
    if isinstance(value, bool):
        raise invalid
    if isinstance(value, float) and not value.is_integer():
        raise invalid
    try:
        minutes = int(value)
    except (TypeError, ValueError) as e:
        raise invalid from e

    if minutes < minimum:
        raise ValidationError(f"{name} must be at least {minimum}.", {name: value})
    return minutes


class GameService:
    """Handles lookups of Slipstream games and their participants."""

    @staticmethod
    def game_ref(db: Client, game_id: str) -> DocumentReference:
        """Return the document reference for a game."""
        return db.collection(GAMES_COLLECTION).document(game_id)

    @staticmethod
    def get_game(db: Client, game_id: str) -> Game:
        """Fetch a game and make sure it is a Slipstream game."""
        doc = cast("DocumentSnapshot", GameService.game_ref(db, game_id).get())
        if not doc.exists:
            raise NotFoundError("Game not found.", {"gameId": game_id})

        data = cast(Game, doc.to_dict() or {})
        if data.get("gameType") != SLIPSTREAM_GAME_TYPE:
            raise ValidationError(
                "This game is not a Slipstream game.", {"gameId": game_id}
            )
        data["id"] = doc.id
        return data

    @staticmethod
    def get_scoring_config(game: Game) -> ScoringConfig:
        """Resolve scoring settings: game config, then app config, then defaults."""
        game_config = game.get("config") or {}
        app_config = current_app.config

        penalty_minutes = game_config.get(
            "penaltyMinutes", app_config.get("SLIPSTREAM_PENALTY_MINUTES")
        )
        deadline_minutes = game_config.get(
            "pickDeadlineMinutes", app_config.get("SLIPSTREAM_PICK_DEADLINE_MINUTES")
        )
        points = game_config.get("greenJerseyPoints") or app_config.get(
            "SLIPSTREAM_GREEN_JERSEY_POINTS"
        )

        kwargs: dict[str, Any] = {}
        if penalty_minutes is not None:
            kwargs["penalty_minutes"] = parse_minutes(
                penalty_minutes, "penaltyMinutes", 1
            )
        if deadline_minutes is not None:
            kwargs["pick_deadline_minutes"] = parse_minutes(
                deadline_minutes, "pickDeadlineMinutes", 0
            )
        if points:
            kwargs["green_jersey_points"] = parse_points_table(points)
        return ScoringConfig(**kwargs)

    @staticmethod
    def _participants_query(db: Client, game_id: str) -> Any:
        return (
            db.collection(PARTICIPANTS_COLLECTION)
            .where(filter=firestore.FieldFilter("gameId", "==", game_id))
            .where(
                filter=firestore.FieldFilter(
                    "status", "==", ACTIVE_PARTICIPANT_STATUS
                )
            )
        )

    @staticmethod
    def list_participants(db: Client, game_id: str) -> list[GameParticipant]:
        """Fetch active participants, filling missing player names from users."""
        participants: list[GameParticipant] = []
        for doc in GameService._participants_query(db, game_id).stream():
            data = cast(GameParticipant, doc.to_dict() or {})
            data["id"] = doc.id
            participants.append(data)

        missing = [p["userId"] for p in participants if not p.get("playername")]
        if missing:
            names = GameService.get_display_names(db, missing)
            for p in participants:
                if not p.get("playername"):
                    p["playername"] = names.get(p["userId"], "Unknown")

        # Duplicate participant rows for one user count once.
        unique: dict[str, GameParticipant] = {}
        for p in participants:
            unique.setdefault(p["userId"], p)
        return list(unique.values())

    @staticmethod
    def get_participant_ref(
        db: Client, game_id: str, user_id: str
    ) -> tuple[DocumentReference, GameParticipant] | None:
        """Find the active participant row of a user in a game."""
        query = GameService._participants_query(db, game_id).where(
            filter=firestore.FieldFilter("userId", "==", user_id)
        )
        for doc in query.limit(1).stream():
            data = cast(GameParticipant, doc.to_dict() or {})
            data["id"] = doc.id
            return doc.reference, data
        return None

    @staticmethod
    def get_display_names(db: Client, user_ids: list[str]) -> dict[str, str]:
        """Look up display names for users without a stored player name."""
        refs = [db.collection(USERS_COLLECTION).document(uid) for uid in user_ids]
        names = {}
        for doc in db.get_all(refs):
            if doc.exists:
                names[doc.id] = smart_display_name(doc.to_dict() or {})
        return names
