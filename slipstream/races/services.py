"""Service layer for the race calendar and its status state machine."""

from __future__ import annotations

import datetime
from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore
from flask import current_app

from slipstream.activity import log_activity
from slipstream.core.constants import (
    ACTION_RACE_DELETED,
    ACTION_RACE_STATUS,
    ACTION_RACES_ADDED,
    PENALTY_MISSED_PICK,
    PICK_SCORING_FIELDS,
    PICKS_COLLECTION,
    RACES_COLLECTION,
)
from slipstream.core.utils import as_utc_datetime, isoformat, utcnow
from slipstream.errors import (
    CalculationInProgressError,
    DuplicateSlugError,
    InvalidScheduleError,
    NotFoundError,
    RaceNotDeletableError,
    ValidationError,
)
from slipstream.games.services import GameService

from .deadline import can_pick, format_time_remaining, time_until_deadline
from .models import Race, RaceStatus, race_status, validate_transition

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.collection import CollectionReference
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction

    from slipstream.games.models import ScoringConfig


def build_race(
    race_data: dict[str, Any], config: ScoringConfig, default_order: int
) -> Race:
    """Turn admin input into a new upcoming race document."""
    race_slug = (race_data.get("raceSlug") or "").strip()
    race_name = (race_data.get("raceName") or "").strip()
    if not race_slug or not race_name:
        raise ValidationError("raceSlug and raceName are required.")
    if "/" in race_slug:
        raise ValidationError("raceSlug cannot contain '/'.", {"raceSlug": race_slug})

    try:
        race_date = as_utc_datetime(race_data.get("raceDate"))
        pick_deadline = as_utc_datetime(race_data.get("pickDeadline"))
    except (TypeError, ValueError) as e:
        raise ValidationError(
            f"Invalid race date: {e}", {"raceSlug": race_slug}
        ) from e
    if race_date is None:
        raise ValidationError("raceDate is required.", {"raceSlug": race_slug})

    if pick_deadline is None:
        pick_deadline = race_date - datetime.timedelta(
            minutes=config.pick_deadline_minutes
        )
    if pick_deadline > race_date:
        raise InvalidScheduleError(race_slug, pick_deadline, race_date)

    order = race_data.get("order")
    return {
        "raceId": race_data.get("raceId") or f"{race_slug}_{race_date.year}",
        "raceSlug": race_slug,
        "raceName": race_name,
        "raceDate": race_date,
        "pickDeadline": pick_deadline,
        "status": RaceStatus.UPCOMING.value,
        "order": int(order) if order is not None else default_order,
    }


_EPOCH = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


def _race_sort_key(race: Race) -> tuple[int, datetime.datetime]:
    return (race.get("order", 0), as_utc_datetime(race.get("raceDate")) or _EPOCH)


def serialize_race(race: Race) -> dict[str, Any]:
    """Convert a race document to a JSON-friendly dict."""
    data: dict[str, Any] = dict(race)
    for key in ("raceDate", "pickDeadline", "resultsCalculatedAt"):
        if key in data:
            data[key] = isoformat(data[key])
    data.pop("calculationStartedAt", None)
    data.pop("createdAt", None)
    data.pop("updatedAt", None)
    return data


class RaceCalendarService:
    """Owns the races of a game and enforces their status transitions."""

    @staticmethod
    def races_collection(db: Client, game_id: str) -> CollectionReference:
        """Return the races sub-collection of a game."""
        return GameService.game_ref(db, game_id).collection(RACES_COLLECTION)

    @staticmethod
    def _race_from_doc(doc: DocumentSnapshot) -> Race:
        data = cast(Race, doc.to_dict() or {})
        data["id"] = doc.id
        data.setdefault("raceSlug", doc.id)
        return data

    @staticmethod
    def get_race(db: Client, game_id: str, race_slug: str) -> Race:
        """Fetch a single race of a game."""
        ref = RaceCalendarService.races_collection(db, game_id).document(race_slug)
        doc = cast("DocumentSnapshot", ref.get())
        if not doc.exists:
            raise NotFoundError(
                "Race is not part of this game.",
                {"gameId": game_id, "raceSlug": race_slug},
            )
        return RaceCalendarService._race_from_doc(doc)

    @staticmethod
    def list_races(db: Client, game_id: str) -> list[Race]:
        """Fetch all races of a game in calendar order."""
        races = [
            RaceCalendarService._race_from_doc(doc)
            for doc in RaceCalendarService.races_collection(db, game_id).stream()
            if doc.exists
        ]
        races.sort(key=_race_sort_key)
        return races

    @staticmethod
    def _read_race(
        transaction: Transaction,
        race_ref: DocumentReference,
        game_id: str,
        race_slug: str,
    ) -> Race:
        doc = cast("DocumentSnapshot", race_ref.get(transaction=transaction))
        if not doc.exists:
            raise NotFoundError(
                "Race is not part of this game.",
                {"gameId": game_id, "raceSlug": race_slug},
            )
        return RaceCalendarService._race_from_doc(doc)

    @staticmethod
    def add_race(db: Client, game_id: str, race_data: dict[str, Any]) -> Race:
        """Add a single race, rejecting duplicate slugs."""
        game = GameService.get_game(db, game_id)
        config = GameService.get_scoring_config(game)

        transaction = db.transaction()
        added, _, _ = firestore.transactional(
            RaceCalendarService._add_races_transaction
        )(transaction, db, game_id, [race_data], config, False)
        race = added[0]

        current_app.logger.info(
            f"Race {race['raceSlug']} added to game {game_id}."
        )
        race["id"] = race["raceSlug"]
        return race

    @staticmethod
    def add_races(
        db: Client, game_id: str, races_data: list[dict[str, Any]]
    ) -> dict[str, int]:
        """Seed several races at once, skipping slugs the game already has."""
        if not races_data:
            raise ValidationError("races array is required and must not be empty.")

        game = GameService.get_game(db, game_id)
        config = GameService.get_scoring_config(game)

        transaction = db.transaction()
        added, skipped, total = firestore.transactional(
            RaceCalendarService._add_races_transaction
        )(transaction, db, game_id, races_data, config, True)

        current_app.logger.info(
            f"Added {len(added)} races to game {game_id} "
            f"({skipped} duplicates skipped)."
        )
        return {
            "racesAdded": len(added),
            "duplicatesSkipped": skipped,
            "totalRaces": total,
        }

    @staticmethod
    def _add_races_transaction(  # noqa: PLR0913
        transaction: Transaction,
        db: Client,
        game_id: str,
        races_data: list[dict[str, Any]],
        config: ScoringConfig,
        skip_duplicates: bool,
    ) -> tuple[list[Race], int, int]:
        """Write new races against the calendar as read in the transaction.

        Two concurrent adds of one slug conflict here, so the later one sees
        the slug as taken instead of overwriting the race.
        """
        collection = RaceCalendarService.races_collection(db, game_id)
        existing = [
            doc.id for doc in collection.stream(transaction=transaction) if doc.exists
        ]
        seen_slugs = set(existing)

        # Validate everything before writing anything.
        new_races = [
            build_race(data, config, len(existing) + i + 1)
            for i, data in enumerate(races_data)
        ]
        added: list[Race] = []
        for race in new_races:
            if race["raceSlug"] in seen_slugs:
                if not skip_duplicates:
                    raise DuplicateSlugError(race["raceSlug"])
                continue
            seen_slugs.add(race["raceSlug"])
            added.append(race)

        for race in added:
            transaction.set(
                collection.document(race["raceSlug"]),
                {**race, "createdAt": firestore.SERVER_TIMESTAMP},
            )
        total = len(existing) + len(added)
        if added:
            log_activity(
                db,
                ACTION_RACES_ADDED,
                game_id,
                {
                    "racesAdded": len(added),
                    "totalRaces": total,
                    "raceSlugs": [r["raceSlug"] for r in added],
                },
                writer=transaction,
            )
        return added, len(new_races) - len(added), total

    @staticmethod
    def race_pick_docs(
        db: Client,
        game_id: str,
        race_slug: str,
        transaction: Transaction | None = None,
    ) -> list[Any]:
        """Fetch the pick documents of one race, pending and scored."""
        return list(
            db.collection(PICKS_COLLECTION)
            .where(filter=firestore.FieldFilter("gameId", "==", game_id))
            .where(filter=firestore.FieldFilter("raceSlug", "==", race_slug))
            .stream(transaction=transaction)
        )

    @staticmethod
    def delete_race(db: Client, game_id: str, race_slug: str) -> None:
        """Delete a race that has not left the upcoming state, with its picks."""
        race_ref = RaceCalendarService.races_collection(db, game_id).document(
            race_slug
        )
        transaction = db.transaction()
        removed = firestore.transactional(RaceCalendarService._delete_race_transaction)(
            transaction, db, game_id, race_ref, race_slug
        )
        current_app.logger.info(
            f"Race {race_slug} deleted from game {game_id} "
            f"with {removed} pending picks."
        )

    @staticmethod
    def _delete_race_transaction(
        transaction: Transaction,
        db: Client,
        game_id: str,
        race_ref: DocumentReference,
        race_slug: str,
    ) -> int:
        """Delete a race and every pick on it as read in the transaction.

        A pick submitted meanwhile reads the race in its own transaction, so
        it either lands before this read and is deleted, or fails afterwards.
        """
        race = RaceCalendarService._read_race(transaction, race_ref, game_id, race_slug)
        status = race_status(race)
        if status is not RaceStatus.UPCOMING:
            raise RaceNotDeletableError(race_slug, status.value)

        picks = RaceCalendarService.race_pick_docs(db, game_id, race_slug, transaction)
        for pick in picks:
            transaction.delete(pick.reference)
        transaction.delete(race_ref)
        log_activity(
            db,
            ACTION_RACE_DELETED,
            game_id,
            {"raceSlug": race_slug, "picksRemoved": len(picks)},
            writer=transaction,
        )
        return len(picks)

    @staticmethod
    def set_status(
        db: Client, game_id: str, race_slug: str, new_status: Any
    ) -> Race:
        """Apply an admin status change through the transition table."""
        requested = RaceStatus.parse(new_status)
        race_ref = RaceCalendarService.races_collection(db, game_id).document(
            race_slug
        )
        transaction = db.transaction()
        race, previous = firestore.transactional(
            RaceCalendarService._set_status_transaction
        )(transaction, db, game_id, race_ref, race_slug, requested)

        if previous is not requested:
            current_app.logger.info(
                f"Race {race_slug} in game {game_id}: "
                f"{previous.value} -> {requested.value}."
            )
        return race

    @staticmethod
    def _set_status_transaction(  # noqa: PLR0913
        transaction: Transaction,
        db: Client,
        game_id: str,
        race_ref: DocumentReference,
        race_slug: str,
        requested: RaceStatus,
    ) -> tuple[Race, RaceStatus]:
        """Check and write a status change against the race as read here.

        A results run writes the race under its lease, so a run that finished
        since the caller last looked is seen here and the change is validated
        against ``finished``.
        """
        race = RaceCalendarService._read_race(transaction, race_ref, game_id, race_slug)
        current = race_status(race)
        validate_transition(race_slug, current, requested)

        lease = race.get("calculationStartedAt")
        if lease is not None and RaceCalendarService.lease_active(lease):
            raise CalculationInProgressError(race_slug, lease)

        if requested is current:
            return race, current

        picks = []
        if requested is RaceStatus.UPCOMING:
            picks = RaceCalendarService.race_pick_docs(
                db, game_id, race_slug, transaction
            )

        # All reads happen before any write.
        transaction.update(
            race_ref,
            {"status": requested.value, "updatedAt": firestore.SERVER_TIMESTAMP},
        )
        reopened = RaceCalendarService._queue_reopen_picks(transaction, picks)
        log_activity(
            db,
            ACTION_RACE_STATUS,
            game_id,
            {
                "raceSlug": race_slug,
                "newStatus": requested.value,
                "previousStatus": current.value,
                "picksReopened": reopened,
            },
            writer=transaction,
        )
        race["status"] = requested.value
        return race, current

    @staticmethod
    def _queue_reopen_picks(transaction: Transaction, picks: list[Any]) -> int:
        """Clear scoring of a race reopened for picking.

        Synthesized missed-pick rows are removed; real picks go back to
        pending so their owners may change them until the deadline.
        """
        count = 0
        for pick in picks:
            data = pick.to_dict() or {}
            if not data.get("locked") and data.get("isPenalty") is None:
                continue
            if data.get("penaltyReason") == PENALTY_MISSED_PICK and not data.get(
                "riderId"
            ):
                transaction.delete(pick.reference)
            else:
                transaction.update(
                    pick.reference,
                    {**dict.fromkeys(PICK_SCORING_FIELDS), "locked": False},
                )
            count += 1
        return count

    @staticmethod
    def lease_active(started_at: Any, now: datetime.datetime | None = None) -> bool:
        """Whether a results-calculation lease taken at ``started_at`` still holds."""
        started = as_utc_datetime(started_at)
        if started is None:
            return False
        now = now or utcnow()
        lease = datetime.timedelta(
            seconds=current_app.config["SLIPSTREAM_CALCULATION_LEASE_SECONDS"]
        )
        return now - started < lease

    @staticmethod
    def get_calendar(
        db: Client,
        game_id: str,
        user_id: str | None = None,
        now: datetime.datetime | None = None,
    ) -> dict[str, Any]:
        """Build the race calendar with deadline info and the user's picks."""
        GameService.get_game(db, game_id)
        now = now or utcnow()
        races = RaceCalendarService.list_races(db, game_id)

        user_picks: dict[str, dict[str, Any]] = {}
        if user_id:
            picks_query = (
                db.collection(PICKS_COLLECTION)
                .where(filter=firestore.FieldFilter("gameId", "==", game_id))
                .where(filter=firestore.FieldFilter("userId", "==", user_id))
            )
            for doc in picks_query.stream():
                data = doc.to_dict() or {}
                user_picks[data["raceSlug"]] = {
                    "riderId": data.get("riderId"),
                    "riderName": data.get("riderName"),
                    "locked": bool(data.get("locked")),
                    "timeLostSeconds": data.get("timeLostSeconds"),
                    "timeLostFormatted": data.get("timeLostFormatted"),
                    "greenJerseyPoints": data.get("greenJerseyPoints"),
                    "riderFinishPosition": data.get("riderFinishPosition"),
                    "isPenalty": data.get("isPenalty"),
                }

        calendar = []
        for race in races:
            remaining = time_until_deadline(race, now)
            entry = serialize_race(race)
            entry.pop("stageResults", None)
            entry["deadlinePassed"] = remaining.total_seconds() <= 0
            entry["canPick"] = can_pick(race, now)
            entry["timeUntilDeadline"] = int(remaining.total_seconds())
            entry["timeUntilDeadlineFormatted"] = format_time_remaining(remaining)
            if user_id:
                entry["userPick"] = user_picks.get(race["raceSlug"])
            calendar.append(entry)

        upcoming = [r for r in calendar if r["canPick"]]
        locked = [
            r
            for r in calendar
            if r["status"] == RaceStatus.LOCKED.value
            or (r["status"] == RaceStatus.UPCOMING.value and r["deadlinePassed"])
        ]
        finished = [r for r in calendar if r["status"] == RaceStatus.FINISHED.value]
        next_race = upcoming[0] if upcoming else None

        return {
            "gameId": game_id,
            "calendar": calendar,
            "summary": {
                "totalRaces": len(calendar),
                "upcomingCount": len(upcoming),
                "lockedCount": len(locked),
                "finishedCount": len(finished),
                "nextRace": {
                    "raceSlug": next_race["raceSlug"],
                    "raceName": next_race["raceName"],
                    "raceDate": next_race["raceDate"],
                    "pickDeadline": next_race["pickDeadline"],
                    "timeUntilDeadlineFormatted": next_race[
                        "timeUntilDeadlineFormatted"
                    ],
                }
                if next_race
                else None,
            },
            "userId": user_id,
        }
