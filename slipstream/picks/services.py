"""Service layer for Slipstream picks."""

from __future__ import annotations

import datetime
from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore
from flask import current_app

from slipstream.activity import log_activity
from slipstream.core.constants import (
    ACTION_PICK,
    ACTION_PICK_CLEARED,
    PICKABLE_GAME_STATUSES,
    PICKS_COLLECTION,
)
from slipstream.core.utils import isoformat, utcnow
from slipstream.errors import (
    NotParticipantError,
    PickWindowClosedError,
    RiderAlreadyUsedError,
    ValidationError,
)
from slipstream.games.services import GameService
from slipstream.races.deadline import can_pick
from slipstream.races.models import Race
from slipstream.races.services import RaceCalendarService

from .models import Pick, PickSubmission, pick_id, unscored_fields

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction

    from slipstream.games.models import GameParticipant


def serialize_pick(pick: Pick) -> dict[str, Any]:
    """Convert a pick document to a JSON-friendly dict."""
    data: dict[str, Any] = dict(pick)
    for key in ("pickedAt", "processedAt"):
        if key in data:
            data[key] = isoformat(data[key])
    return data


def _closed_error(race: Race) -> PickWindowClosedError:
    return PickWindowClosedError(
        race["raceSlug"], race.get("status", "upcoming"), race.get("pickDeadline")
    )


class PickRegistry:
    """Owns the picks of a game and their uniqueness rules."""

    @staticmethod
    def pick_ref(
        db: Client, game_id: str, race_slug: str, user_id: str
    ) -> DocumentReference:
        """Return the reference of the one pick a user may hold for a race."""
        return db.collection(PICKS_COLLECTION).document(
            pick_id(game_id, race_slug, user_id)
        )

    @staticmethod
    def _user_picks_query(db: Client, game_id: str, user_id: str) -> Any:
        return (
            db.collection(PICKS_COLLECTION)
            .where(filter=firestore.FieldFilter("gameId", "==", game_id))
            .where(filter=firestore.FieldFilter("userId", "==", user_id))
        )

    @staticmethod
    def _used_riders_from(picks: list[Pick], race_slug: str) -> dict[str, str]:
        """Map each rider the user already holds to the race it was used on.

        The pick for ``race_slug`` itself is left out so a user may re-pick or
        change the rider on the race they are editing.
        """
        used: dict[str, str] = {}
        for pick in picks:
            if pick.get("raceSlug") == race_slug:
                continue
            if rider_id := pick.get("riderId"):
                used[rider_id] = pick["raceSlug"]
        return used

    @staticmethod
    def _resolve_participant(
        db: Client, game_id: str, user_id: str
    ) -> tuple[DocumentReference, GameParticipant]:
        game = GameService.get_game(db, game_id)
        status = game.get("status")
        if status and status not in PICKABLE_GAME_STATUSES:
            raise ValidationError(
                f"Game is not active (status: {status})", {"gameId": game_id}
            )
        participant = GameService.get_participant_ref(db, game_id, user_id)
        if participant is None:
            raise NotParticipantError(game_id, user_id)
        return participant

    @staticmethod
    def submit_pick(
        db: Client,
        submission: PickSubmission,
        now: datetime.datetime | None = None,
    ) -> Pick:
        """Create or replace a user's pick for a race while its window is open."""
        try:
            submission.validate()
        except ValueError as e:
            raise ValidationError(str(e)) from e

        game_id = submission.game_id
        participant_ref, participant = PickRegistry._resolve_participant(
            db, game_id, submission.user_id
        )
        race = RaceCalendarService.get_race(db, game_id, submission.race_slug)
        now = now or utcnow()
        if not can_pick(race, now):
            raise _closed_error(race)

        race_ref = RaceCalendarService.races_collection(db, game_id).document(
            submission.race_slug
        )
        transaction = db.transaction()
        pick, previous_rider = firestore.transactional(
            PickRegistry._submit_pick_transaction
        )(
            transaction,
            db,
            participant_ref,
            race_ref,
            submission,
            participant.get("playername"),
            now,
        )

        log_activity(
            db,
            ACTION_PICK,
            game_id,
            {
                "raceSlug": submission.race_slug,
                "riderId": submission.rider_id,
                "riderName": pick.get("riderName"),
                "isUpdate": previous_rider is not None,
                "previousRiderId": previous_rider,
            },
            user_id=submission.user_id,
        )
        current_app.logger.info(
            f"User {submission.user_id} picked {submission.rider_id} "
            f"for {submission.race_slug} in game {game_id}."
        )
        return pick

    @staticmethod
    def _submit_pick_transaction(  # noqa: PLR0913
        transaction: Transaction,
        db: Client,
        participant_ref: DocumentReference,
        race_ref: DocumentReference,
        submission: PickSubmission,
        playername: str | None,
        now: datetime.datetime,
    ) -> tuple[Pick, str | None]:
        """Check and upsert a pick inside a transaction.

        Reading and writing the participant document makes every submission of
        one user in one game conflict with the others, so two concurrent picks
        cannot both pass the rider check.
        """
        # All reads happen before any write.
        participant_ref.get(transaction=transaction)
        race_doc = race_ref.get(transaction=transaction)
        race = cast(Race, race_doc.to_dict() or {})
        race.setdefault("raceSlug", submission.race_slug)
        if not can_pick(race, now):
            raise _closed_error(race)

        picks = [
            cast(Pick, doc.to_dict() or {})
            for doc in PickRegistry._user_picks_query(
                db, submission.game_id, submission.user_id
            ).stream(transaction=transaction)
        ]
        used = PickRegistry._used_riders_from(picks, submission.race_slug)
        if submission.rider_id in used:
            raise RiderAlreadyUsedError(submission.rider_id, used[submission.rider_id])

        existing = next(
            (p for p in picks if p.get("raceSlug") == submission.race_slug), None
        )
        pick: Pick = {
            "gameId": submission.game_id,
            "userId": submission.user_id,
            "playername": playername or "",
            "raceSlug": submission.race_slug,
            "riderId": submission.rider_id,
            "riderName": submission.rider_name or submission.rider_id,
            "pickedAt": now,
            "locked": False,
            **unscored_fields(),
        }
        ref = PickRegistry.pick_ref(
            db, submission.game_id, submission.race_slug, submission.user_id
        )
        transaction.set(ref, pick)
        transaction.update(
            participant_ref,
            {"lastPickAt": now, "lastPickRace": submission.race_slug},
        )

        pick["id"] = ref.id
        previous_rider = existing.get("riderId") if existing else None
        return pick, previous_rider

    @staticmethod
    def clear_pick(
        db: Client,
        game_id: str,
        user_id: str,
        race_slug: str,
        now: datetime.datetime | None = None,
    ) -> bool:
        """Remove a user's pending pick while the window is open."""
        participant_ref, _ = PickRegistry._resolve_participant(db, game_id, user_id)
        race = RaceCalendarService.get_race(db, game_id, race_slug)
        now = now or utcnow()
        if not can_pick(race, now):
            raise _closed_error(race)

        race_ref = RaceCalendarService.races_collection(db, game_id).document(
            race_slug
        )
        pick_ref = PickRegistry.pick_ref(db, game_id, race_slug, user_id)
        transaction = db.transaction()
        cleared = firestore.transactional(PickRegistry._clear_pick_transaction)(
            transaction, participant_ref, race_ref, pick_ref, race_slug, now
        )
        if cleared:
            log_activity(
                db,
                ACTION_PICK_CLEARED,
                game_id,
                {"raceSlug": race_slug},
                user_id=user_id,
            )
            current_app.logger.info(
                f"User {user_id} cleared their pick for {race_slug} in game {game_id}."
            )
        return cleared

    @staticmethod
    def _clear_pick_transaction(  # noqa: PLR0913
        transaction: Transaction,
        participant_ref: DocumentReference,
        race_ref: DocumentReference,
        pick_ref: DocumentReference,
        race_slug: str,
        now: datetime.datetime,
    ) -> bool:
        participant_ref.get(transaction=transaction)
        race = cast(Race, race_ref.get(transaction=transaction).to_dict() or {})
        race.setdefault("raceSlug", race_slug)
        if not can_pick(race, now):
            raise _closed_error(race)

        pick_doc = pick_ref.get(transaction=transaction)
        if not pick_doc.exists:
            return False
        transaction.delete(pick_ref)
        transaction.update(participant_ref, {"lastPickAt": now, "lastPickRace": race_slug})
        return True

    @staticmethod
    def list_picks(
        db: Client,
        game_id: str,
        user_id: str | None = None,
        race_slug: str | None = None,
        locked: bool | None = None,
    ) -> list[Pick]:
        """Fetch picks of a game, sorted by race order then player name."""
        races = RaceCalendarService.list_races(db, game_id)
        race_order = {race["raceSlug"]: i for i, race in enumerate(races)}

        query = db.collection(PICKS_COLLECTION).where(
            filter=firestore.FieldFilter("gameId", "==", game_id)
        )
        if user_id:
            query = query.where(filter=firestore.FieldFilter("userId", "==", user_id))
        if race_slug:
            query = query.where(
                filter=firestore.FieldFilter("raceSlug", "==", race_slug)
            )
        if locked is not None:
            query = query.where(filter=firestore.FieldFilter("locked", "==", locked))

        picks = []
        for doc in query.stream():
            data = cast(Pick, doc.to_dict() or {})
            data["id"] = doc.id
            picks.append(data)

        picks.sort(
            key=lambda p: (
                race_order.get(p.get("raceSlug", ""), len(race_order)),
                (p.get("playername") or "").casefold(),
                p.get("userId", ""),
            )
        )
        return picks

    @staticmethod
    def list_picks_for_user(db: Client, game_id: str, user_id: str) -> list[Pick]:
        """Fetch every pick a user holds in a game."""
        return PickRegistry.list_picks(db, game_id, user_id=user_id)

    @staticmethod
    def list_picks_for_race(db: Client, game_id: str, race_slug: str) -> list[Pick]:
        """Fetch every pick made for one race."""
        return PickRegistry.list_picks(db, game_id, race_slug=race_slug)

    @staticmethod
    def used_riders(db: Client, game_id: str, user_id: str) -> dict[str, str]:
        """Riders a user has already spent in a game, mapped to their race."""
        picks = [
            cast(Pick, doc.to_dict() or {})
            for doc in PickRegistry._user_picks_query(db, game_id, user_id).stream()
        ]
        return PickRegistry._used_riders_from(picks, race_slug="")
