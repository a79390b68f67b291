"""Tests for the pick registry and the picks blueprint."""

from __future__ import annotations

import unittest

from slipstream.errors import (
    NotParticipantError,
    PickWindowClosedError,
    RiderAlreadyUsedError,
    ValidationError,
)
from slipstream.picks.models import PickSubmission
from slipstream.picks.services import PickRegistry
from slipstream.races.services import RaceCalendarService
from tests.helpers import GAME_ID, SlipstreamTestCase, utc

NOW = utc(2030, 2, 1, 12)


class PickRegistryTestCase(SlipstreamTestCase):
    """Tests for PickRegistry."""

    def setUp(self) -> None:
        super().setUp()
        self.add_race("omloop", utc(2030, 3, 1, 11), order=1)
        self.add_race("kbk", utc(2030, 3, 2, 11), order=2)

    def submit(self, user_id: str, race_slug: str, rider_id: str, now=NOW):
        return PickRegistry.submit_pick(
            self.mock_db,
            PickSubmission(GAME_ID, user_id, race_slug, rider_id, f"Rider {rider_id}"),
            now=now,
        )

    def test_submit_pick(self) -> None:
        pick = self.submit("alice", "omloop", "x")
        self.assertEqual(pick["riderId"], "x")
        self.assertEqual(pick["playername"], "Alice")
        self.assertFalse(pick["locked"])
        self.assertIsNone(pick["timeLostSeconds"])
        self.assertEqual(pick["id"], "game1_omloop_alice")

        stored = self.picks(userId="alice")
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0]["riderName"], "Rider x")

    def test_resubmitting_replaces_the_pick(self) -> None:
        self.submit("alice", "omloop", "x")
        self.submit("alice", "omloop", "y")
        self.submit("alice", "omloop", "x")
        stored = self.picks(userId="alice", raceSlug="omloop")
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0]["riderId"], "x")

    def test_rider_cannot_be_reused_on_another_race(self) -> None:
        self.submit("alice", "omloop", "x")
        with self.assertRaises(RiderAlreadyUsedError) as ctx:
            self.submit("alice", "kbk", "x")
        self.assertEqual(ctx.exception.context["usedOnRace"], "omloop")
        self.assertEqual(self.picks(userId="alice", raceSlug="kbk"), [])

    def test_rider_uniqueness_is_per_user(self) -> None:
        self.submit("alice", "omloop", "x")
        pick = self.submit("bob", "kbk", "x")
        self.assertEqual(pick["riderId"], "x")

    def test_changing_pick_frees_the_previous_rider(self) -> None:
        self.submit("alice", "omloop", "x")
        self.submit("alice", "omloop", "y")
        self.submit("alice", "kbk", "x")
        self.assertEqual(
            PickRegistry.used_riders(self.mock_db, GAME_ID, "alice"),
            {"y": "omloop", "x": "kbk"},
        )

    def test_pick_after_deadline_is_rejected(self) -> None:
        with self.assertRaises(PickWindowClosedError):
            self.submit("alice", "omloop", "x", now=utc(2030, 3, 1, 10))
        self.assertEqual(self.picks(), [])

    def test_pick_on_locked_race_is_rejected(self) -> None:
        self.add_race("strade", utc(2030, 3, 5, 11), status="locked", order=3)
        with self.assertRaises(PickWindowClosedError) as ctx:
            self.submit("alice", "strade", "x")
        self.assertEqual(ctx.exception.context["status"], "locked")

    def test_rejected_change_on_locked_race_keeps_stored_state(self) -> None:
        self.submit("alice", "omloop", "x")
        RaceCalendarService.set_status(self.mock_db, GAME_ID, "omloop", "locked")
        participant = self.mock_db.collection("gameParticipants").document(
            "game1_alice"
        )
        picks_before = self.picks(userId="alice")
        participant_before = participant.get().to_dict()

        # The deadline is still ahead but the race no longer takes picks.
        with self.assertRaises(PickWindowClosedError) as ctx:
            self.submit("alice", "omloop", "y", now=utc(2030, 2, 2))
        self.assertEqual(ctx.exception.context["status"], "locked")
        self.assertEqual(self.picks(userId="alice"), picks_before)
        self.assertEqual(participant.get().to_dict(), participant_before)

    def test_non_participant_is_rejected(self) -> None:
        self.add_participant("dave", status="removed")
        with self.assertRaises(NotParticipantError):
            self.submit("dave", "omloop", "x")

    def test_blank_rider_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self.submit("alice", "omloop", "  ")

    def test_participant_records_last_pick(self) -> None:
        self.submit("alice", "omloop", "x")
        participant = (
            self.mock_db.collection("gameParticipants")
            .document("game1_alice")
            .get()
            .to_dict()
        )
        self.assertEqual(participant["lastPickRace"], "omloop")
        self.assertEqual(participant["lastPickAt"], NOW)

    def test_clear_pick(self) -> None:
        self.submit("alice", "omloop", "x")
        self.assertTrue(
            PickRegistry.clear_pick(self.mock_db, GAME_ID, "alice", "omloop", now=NOW)
        )
        self.assertEqual(self.picks(userId="alice"), [])
        self.assertFalse(
            PickRegistry.clear_pick(self.mock_db, GAME_ID, "alice", "omloop", now=NOW)
        )
        # The rider is free again.
        self.submit("alice", "kbk", "x")

    def test_clear_pick_after_deadline_is_rejected(self) -> None:
        self.submit("alice", "omloop", "x")
        with self.assertRaises(PickWindowClosedError):
            PickRegistry.clear_pick(
                self.mock_db, GAME_ID, "alice", "omloop", now=utc(2030, 3, 1, 10, 30)
            )
        self.assertEqual(len(self.picks(userId="alice")), 1)

    def test_list_picks_sorted_by_race_then_name(self) -> None:
        self.submit("carol", "kbk", "a")
        self.submit("bob", "omloop", "b")
        self.submit("alice", "omloop", "c")
        picks = PickRegistry.list_picks(self.mock_db, GAME_ID)
        self.assertEqual(
            [(p["raceSlug"], p["userId"]) for p in picks],
            [("omloop", "alice"), ("omloop", "bob"), ("kbk", "carol")],
        )
        self.assertEqual(
            len(PickRegistry.list_picks_for_user(self.mock_db, GAME_ID, "bob")), 1
        )
        self.assertEqual(
            len(PickRegistry.list_picks_for_race(self.mock_db, GAME_ID, "omloop")), 2
        )


class PickRoutesTestCase(SlipstreamTestCase):
    """Tests for the pick endpoints."""

    def setUp(self) -> None:
        super().setUp()
        self.add_race("omloop", utc(2099, 3, 1, 11), order=1)
        self.add_race("kbk", utc(2099, 3, 2, 11), order=2)
        self.add_race("strade", utc(2020, 3, 2, 11), order=3)

    def test_submit_and_list(self) -> None:
        self.login("alice")
        response = self.client.post(
            self.url("/pick"),
            json={"raceSlug": "omloop", "riderId": "x", "riderName": "Rider X"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["pick"]["riderName"], "Rider X")

        response = self.client.get(self.url("/picks?userId=alice"))
        data = response.get_json()
        self.assertEqual(data["count"], 1)
        self.assertEqual(data["picks"][0]["raceSlug"], "omloop")

    def test_reused_rider_conflict(self) -> None:
        self.login("alice")
        self.client.post(self.url("/pick"), json={"raceSlug": "omloop", "riderId": "x"})
        response = self.client.post(
            self.url("/pick"), json={"raceSlug": "kbk", "riderId": "x"}
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()["context"]["riderId"], "x")

    def test_closed_window(self) -> None:
        self.login("alice")
        response = self.client.post(
            self.url("/pick"), json={"raceSlug": "strade", "riderId": "x"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["context"]["raceSlug"], "strade")

    def test_not_a_participant(self) -> None:
        self.mock_db.collection("users").document("eve").set({"username": "eve"})
        self.login("eve")
        response = self.client.post(
            self.url("/pick"), json={"raceSlug": "omloop", "riderId": "x"}
        )
        self.assertEqual(response.status_code, 403)

    def test_missing_fields(self) -> None:
        self.login("alice")
        response = self.client.post(self.url("/pick"), json={"raceSlug": "omloop"})
        self.assertEqual(response.status_code, 400)

    def test_clear_pick(self) -> None:
        self.login("alice")
        self.client.post(self.url("/pick"), json={"raceSlug": "omloop", "riderId": "x"})
        response = self.client.delete(self.url("/pick"), json={"raceSlug": "omloop"})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()["cleared"])
        self.assertEqual(self.picks(), [])


if __name__ == "__main__":
    unittest.main()
