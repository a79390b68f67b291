"""Service layer for calculating Slipstream race results."""

from __future__ import annotations

import datetime
from typing import TYPE_CHECKING, Any, Optional, cast

from firebase_admin import firestore
from flask import current_app

from slipstream.activity import log_activity
from slipstream.core.constants import (
    ACTION_RESULTS_CALCULATED,
    FIRESTORE_BATCH_LIMIT,
    PENALTY_DNF,
    PENALTY_MISSED_PICK,
)
from slipstream.core.utils import as_utc_datetime, utcnow
from slipstream.errors import (
    CalculationAbortedError,
    CalculationInProgressError,
    ResultsNotReadyError,
    ValidationError,
)
from slipstream.games.services import GameService
from slipstream.picks.services import PickRegistry
from slipstream.races.models import Race, RaceStatus, race_status, validate_transition
from slipstream.races.services import RaceCalendarService

from .parser import find_result, index_results, parse_stage_results
from .scoring import penalty_seconds, score_pick

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction

    from slipstream.games.models import GameParticipant, ScoringConfig

    from .parser import StageResult

# (method, reference, data) for a write inside a commit chunk
WriteOp = tuple[str, "DocumentReference", dict[str, Any]]


class ResultsService:
    """Scores every active participant of a race and finishes the race."""

    @staticmethod
    def calculate_results(
        db: Client,
        game_id: str,
        race_slug: str,
        stage_results: Optional[list[dict[str, Any]]] = None,
        now: Optional[datetime.datetime] = None,
    ) -> dict[str, Any]:
        """Score a locked race and move it to finished.

        Passing no ``stage_results`` re-runs the calculation with the results
        stored on the race by the previous run. Re-running with the same
        inputs rewrites every pick with the same scores.
        """
        game = GameService.get_game(db, game_id)
        config = GameService.get_scoring_config(game)
        race = RaceCalendarService.get_race(db, game_id, race_slug)
        status = race_status(race)
        if status is RaceStatus.UPCOMING:
            raise ResultsNotReadyError(race_slug, status.value)

        raw_results = (
            stage_results if stage_results is not None else race.get("stageResults")
        )
        if not raw_results:
            raise ResultsNotReadyError(race_slug, status.value)
        finishers = parse_stage_results(raw_results)

        participants = GameService.list_participants(db, game_id)
        if not participants:
            raise ValidationError(
                "No active participants found.", {"gameId": game_id}
            )
        validate_transition(race_slug, status, RaceStatus.FINISHED, via_results=True)

        now = now or utcnow()
        race_ref = RaceCalendarService.races_collection(db, game_id).document(
            race_slug
        )
        transaction = db.transaction()
        firestore.transactional(ResultsService._claim_lease)(
            transaction, race_ref, race_slug, now
        )

        try:
            summary = ResultsService._score_and_finish(
                db, game_id, race, race_ref, finishers, participants, config, now
            )
        except Exception:
            current_app.logger.error(
                f"Results calculation for {race_slug} in game {game_id} failed; "
                "releasing lease."
            )
            firestore.transactional(ResultsService._release_lease)(
                db.transaction(), race_ref, now
            )
            raise

        current_app.logger.info(
            f"Results for {race_slug} in game {game_id}: "
            f"{summary['participantsProcessed']} participants, "
            f"{summary['missedPicks']} missed picks, "
            f"{summary['dnfPenalties']} DNF penalties."
        )
        return summary

    @staticmethod
    def _claim_lease(
        transaction: Transaction,
        race_ref: DocumentReference,
        race_slug: str,
        now: datetime.datetime,
    ) -> None:
        """Take the exclusive calculation lease on a race."""
        race = cast(Race, race_ref.get(transaction=transaction).to_dict() or {})
        started = race.get("calculationStartedAt")
        if started is not None and RaceCalendarService.lease_active(started, now):
            raise CalculationInProgressError(race_slug, started)

        status = race_status(race)
        if status is RaceStatus.UPCOMING:
            raise ResultsNotReadyError(race_slug, status.value)
        transaction.update(race_ref, {"calculationStartedAt": now})

    @staticmethod
    def _release_lease(
        transaction: Transaction,
        race_ref: DocumentReference,
        lease: datetime.datetime,
    ) -> None:
        """Clear the lease, unless another run has taken it over."""
        race = race_ref.get(transaction=transaction).to_dict() or {}
        started = race.get("calculationStartedAt")
        if as_utc_datetime(started) == as_utc_datetime(lease):
            transaction.update(race_ref, {"calculationStartedAt": None})

    @staticmethod
    def _check_lease(race: Race, race_slug: str, lease: datetime.datetime) -> None:
        """Fail unless the race is still held by the run that took ``lease``."""
        started = race.get("calculationStartedAt")
        status = race.get("status")
        if as_utc_datetime(started) != as_utc_datetime(lease) or status not in (
            RaceStatus.LOCKED.value,
            RaceStatus.FINISHED.value,
        ):
            raise CalculationAbortedError(race_slug, status)

    @staticmethod
    def _score_and_finish(  # noqa: PLR0913
        db: Client,
        game_id: str,
        race: Race,
        race_ref: DocumentReference,
        finishers: list[StageResult],
        participants: list[GameParticipant],
        config: ScoringConfig,
        now: datetime.datetime,
    ) -> dict[str, Any]:
        race_slug = race["raceSlug"]
        penalty = penalty_seconds(finishers, config.penalty_minutes)
        index = index_results(finishers)

        picks_by_user: dict[str, Any] = {}
        for doc in RaceCalendarService.race_pick_docs(db, game_id, race_slug):
            data = doc.to_dict() or {}
            if data.get("userId"):
                picks_by_user[data["userId"]] = doc

        ops: list[WriteOp] = []
        results = []
        picks_with_results = missed = dnf = 0
        for participant in sorted(participants, key=lambda p: p["userId"]):
            user_id = participant["userId"]
            playername = participant.get("playername") or ""
            doc = picks_by_user.get(user_id)
            pick = (doc.to_dict() or {}) if doc is not None else {}
            rider_id = pick.get("riderId")

            result = find_result(index, rider_id) if rider_id else None
            score = score_pick(rider_id, result, penalty, config.green_jersey_points)

            scored = {**score, "locked": True, "processedAt": now}
            if doc is not None:
                ops.append(("update", doc.reference, {**scored, "playername": playername}))
            else:
                ref = PickRegistry.pick_ref(db, game_id, race_slug, user_id)
                ops.append(
                    (
                        "set",
                        ref,
                        {
                            "gameId": game_id,
                            "userId": user_id,
                            "playername": playername,
                            "raceSlug": race_slug,
                            "riderId": None,
                            "riderName": None,
                            "pickedAt": None,
                            **scored,
                        },
                    )
                )

            if score["penaltyReason"] == PENALTY_MISSED_PICK:
                missed += 1
            elif score["penaltyReason"] == PENALTY_DNF:
                dnf += 1
            else:
                picks_with_results += 1
            results.append(
                {
                    "userId": user_id,
                    "playername": playername,
                    "riderId": rider_id,
                    "riderName": pick.get("riderName"),
                    **score,
                }
            )

        # The race update goes last so a partly applied run leaves it locked.
        ops.append(
            (
                "update",
                race_ref,
                {
                    "status": RaceStatus.FINISHED.value,
                    "stageResults": [r.to_entry() for r in finishers],
                    "resultsCalculatedAt": now,
                    "calculationStartedAt": None,
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                },
            )
        )

        summary = {
            "gameId": game_id,
            "raceSlug": race_slug,
            "participantsProcessed": len(results),
            "picksWithResults": picks_with_results,
            "missedPicks": missed,
            "dnfPenalties": dnf,
        }
        ResultsService._commit_in_chunks(db, game_id, race_ref, now, ops, summary)
        return {**summary, "results": results}

    @staticmethod
    def _commit_in_chunks(  # noqa: PLR0913
        db: Client,
        game_id: str,
        race_ref: DocumentReference,
        lease: datetime.datetime,
        ops: list[WriteOp],
        summary: dict[str, Any],
    ) -> None:
        """Commit writes in chunks under the Firestore limit, in order.

        Each chunk is a transaction that first re-reads the race, so a status
        change made while the run was scoring aborts it instead of being
        overwritten.
        """
        # One slot of the last chunk is kept for the activity log entry.
        chunk_size = FIRESTORE_BATCH_LIMIT - 1
        for start in range(0, len(ops), chunk_size):
            last = start + chunk_size >= len(ops)
            firestore.transactional(ResultsService._commit_chunk)(
                db.transaction(),
                db,
                game_id,
                race_ref,
                lease,
                ops[start : start + chunk_size],
                summary if last else None,
            )

    @staticmethod
    def _commit_chunk(  # noqa: PLR0913
        transaction: Transaction,
        db: Client,
        game_id: str,
        race_ref: DocumentReference,
        lease: datetime.datetime,
        ops: list[WriteOp],
        summary: Optional[dict[str, Any]],
    ) -> None:
        race = cast(Race, race_ref.get(transaction=transaction).to_dict() or {})
        ResultsService._check_lease(race, race_ref.id, lease)
        for method, ref, data in ops:
            getattr(transaction, method)(ref, data)
        if summary is not None:
            log_activity(
                db, ACTION_RESULTS_CALCULATED, game_id, summary, writer=transaction
            )
