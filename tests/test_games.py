"""Tests for game lookups and scoring configuration."""

from __future__ import annotations

from slipstream.errors import NotFoundError, ValidationError
from slipstream.games.services import GameService, parse_minutes, parse_points_table
from tests.helpers import GAME_ID, SlipstreamTestCase


class GameServiceTestCase(SlipstreamTestCase):
    """Tests for GameService."""

    def test_get_game(self) -> None:
        game = GameService.get_game(self.mock_db, GAME_ID)
        self.assertEqual(game["id"], GAME_ID)

    def test_missing_game(self) -> None:
        with self.assertRaises(NotFoundError):
            GameService.get_game(self.mock_db, "nope")

    def test_other_game_type(self) -> None:
        self.create_game("auction", gameType="auction")
        with self.assertRaises(ValidationError):
            GameService.get_game(self.mock_db, "auction")

    def test_scoring_config_from_game(self) -> None:
        self.create_game(
            config={"penaltyMinutes": 3, "greenJerseyPoints": {"1": 25, "2": 20}}
        )
        config = GameService.get_scoring_config(
            GameService.get_game(self.mock_db, GAME_ID)
        )
        self.assertEqual(config.penalty_minutes, 3)
        self.assertEqual(config.pick_deadline_minutes, 60)
        self.assertEqual(config.green_jersey_points, {1: 25, 2: 20})

    def test_scoring_config_from_app(self) -> None:
        self.create_game(config={})
        self.app.config["SLIPSTREAM_PENALTY_MINUTES"] = 2
        config = GameService.get_scoring_config(
            GameService.get_game(self.mock_db, GAME_ID)
        )
        self.assertEqual(config.penalty_minutes, 2)
        self.assertEqual(config.green_jersey_points[1], 10)

    def test_points_table_validation(self) -> None:
        with self.assertRaises(ValidationError):
            parse_points_table({"1": 5, "2": 10})
        with self.assertRaises(ValidationError):
            parse_points_table({"0": 5})
        with self.assertRaises(ValidationError):
            parse_points_table({"first": 5})

    def test_minutes_validation(self) -> None:
        self.assertEqual(parse_minutes("2", "penaltyMinutes", 1), 2)
        self.assertEqual(parse_minutes(0, "pickDeadlineMinutes", 0), 0)
        for bad in ("soon", 1.5, True, None):
            with self.assertRaises(ValidationError):
                parse_minutes(bad, "penaltyMinutes", 1)
        with self.assertRaises(ValidationError):
            parse_minutes(0, "penaltyMinutes", 1)
        with self.assertRaises(ValidationError):
            parse_minutes(-5, "pickDeadlineMinutes", 0)

    def test_negative_penalty_config_is_rejected(self) -> None:
        self.create_game(config={"penaltyMinutes": -1})
        game = GameService.get_game(self.mock_db, GAME_ID)
        with self.assertRaises(ValidationError) as ctx:
            GameService.get_scoring_config(game)
        self.assertEqual(ctx.exception.context, {"penaltyMinutes": -1})

    def test_non_numeric_deadline_config_is_rejected(self) -> None:
        self.create_game(config={"pickDeadlineMinutes": "an hour"})
        game = GameService.get_game(self.mock_db, GAME_ID)
        with self.assertRaises(ValidationError):
            GameService.get_scoring_config(game)

    def test_list_participants_fills_names(self) -> None:
        self.mock_db.collection("gameParticipants").document("game1_dave").set(
            {"gameId": GAME_ID, "userId": "dave", "status": "active"}
        )
        self.mock_db.collection("users").document("dave").set(
            {"username": "dave", "playername": "Dave D"}
        )
        participants = {
            p["userId"]: p for p in GameService.list_participants(self.mock_db, GAME_ID)
        }
        self.assertEqual(set(participants), {"alice", "bob", "carol", "dave"})
        self.assertEqual(participants["dave"]["playername"], "Dave D")


class ErrorHandlerTestCase(SlipstreamTestCase):
    """Tests for the JSON error responses."""

    def test_unknown_route(self) -> None:
        response = self.client.get("/api/nothing-here")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["error"], "Not found.")

    def test_method_not_allowed(self) -> None:
        self.login("alice")
        response = self.client.put(self.url("/standings"))
        self.assertEqual(response.status_code, 405)

    def test_not_a_slipstream_game(self) -> None:
        self.create_game("auction", gameType="auction")
        self.login("alice")
        response = self.client.get("/api/games/auction/slipstream/standings")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["context"]["gameId"], "auction")
