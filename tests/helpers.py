"""Base test case for the Slipstream blueprints and services."""

from __future__ import annotations

import datetime
import unittest
from typing import Any
from unittest.mock import MagicMock, patch

from mockfirestore import MockFirestore

from slipstream import create_app
from tests.mock_utils import (
    MockFieldFilter,
    MockTransaction,
    patch_mockfirestore,
)

patch_mockfirestore()

GAME_ID = "game1"
ADMIN_ID = "admin1"
USER_IDS = ("alice", "bob", "carol")

# Modules that bind ``firestore`` at import time
FIRESTORE_MODULES = (
    "slipstream.firestore",
    "slipstream.activity.firestore",
    "slipstream.games.services.firestore",
    "slipstream.races.services.firestore",
    "slipstream.races.routes.firestore",
    "slipstream.picks.services.firestore",
    "slipstream.picks.routes.firestore",
    "slipstream.results.services.firestore",
    "slipstream.results.routes.firestore",
    "slipstream.standings.services.firestore",
    "slipstream.standings.routes.firestore",
)


def utc(*args: int) -> datetime.datetime:
    """Build an aware UTC datetime."""
    return datetime.datetime(*args, tzinfo=datetime.timezone.utc)


class SlipstreamTestCase(unittest.TestCase):
    """Creates the app against a mock Firestore with one Slipstream game."""

    def setUp(self) -> None:
        """Set up a test client and a comprehensive mock environment."""
        self.mock_db = MockFirestore()
        self.mock_transaction = MockTransaction()
        self.mock_db.transaction = MagicMock(return_value=self.mock_transaction)
        self.mock_db.get_all = lambda refs, **kwargs: [ref.get() for ref in refs]

        self.mock_firestore_module = MagicMock()
        self.mock_firestore_module.client.return_value = self.mock_db
        self.mock_firestore_module.FieldFilter = MockFieldFilter
        self.mock_firestore_module.SERVER_TIMESTAMP = "2026-01-01T00:00:00+00:00"
        self.mock_firestore_module.transactional = lambda f: f

        patchers = [patch("firebase_admin.initialize_app")]
        patchers += [
            patch(target, new=self.mock_firestore_module)
            for target in FIRESTORE_MODULES
        ]
        for p in patchers:
            p.start()
            self.addCleanup(p.stop)

        self.app = create_app(
            {"TESTING": True, "WTF_CSRF_ENABLED": False, "SERVER_NAME": "localhost"}
        )
        self.client = self.app.test_client()
        self.app_context = self.app.app_context()
        self.app_context.push()

        self.mock_db.collection("users").document(ADMIN_ID).set(
            {"username": "admin", "isAdmin": True}
        )
        self.create_game()
        for user_id in USER_IDS:
            self.mock_db.collection("users").document(user_id).set(
                {"username": user_id}
            )
            self.add_participant(user_id)

    def tearDown(self) -> None:
        """Tear down the test client."""
        self.app_context.pop()

    def create_game(self, game_id: str = GAME_ID, **fields: Any) -> None:
        data = {
            "name": "Tour Pick'em",
            "gameType": "slipstream",
            "status": "active",
            "config": {"penaltyMinutes": 1, "pickDeadlineMinutes": 60},
        }
        data.update(fields)
        self.mock_db.collection("games").document(game_id).set(data)

    def add_participant(
        self, user_id: str, status: str = "active", playername: str | None = None
    ) -> None:
        self.mock_db.collection("gameParticipants").document(
            f"{GAME_ID}_{user_id}"
        ).set(
            {
                "gameId": GAME_ID,
                "userId": user_id,
                "playername": playername or user_id.title(),
                "status": status,
            }
        )

    def add_race(  # noqa: PLR0913
        self,
        race_slug: str,
        race_date: datetime.datetime,
        status: str = "upcoming",
        order: int = 1,
        pick_deadline: datetime.datetime | None = None,
        **fields: Any,
    ) -> None:
        """Store a race directly, bypassing the calendar service."""
        data = {
            "raceId": f"{race_slug}_{race_date.year}",
            "raceSlug": race_slug,
            "raceName": race_slug.replace("-", " ").title(),
            "raceDate": race_date,
            "pickDeadline": pick_deadline or race_date - datetime.timedelta(hours=1),
            "status": status,
            "order": order,
        }
        data.update(fields)
        self.races().document(race_slug).set(data)

    def races(self) -> Any:
        return (
            self.mock_db.collection("games").document(GAME_ID).collection("races")
        )

    def race_data(self, race_slug: str) -> dict[str, Any]:
        return self.races().document(race_slug).get().to_dict()

    def picks(self, **filters: Any) -> list[dict[str, Any]]:
        """All stored pick documents matching simple equality filters."""
        picks = []
        for doc in self.mock_db.collection("stagePicks").stream():
            data = doc.to_dict()
            if data and all(data.get(k) == v for k, v in filters.items()):
                picks.append(data)
        return picks

    def login(self, user_id: str, is_admin: bool = False) -> None:
        """Set a logged-in user in the session."""
        with self.client.session_transaction() as sess:
            sess["user_id"] = user_id
            sess["is_admin"] = is_admin

    def url(self, path: str) -> str:
        return f"/api/games/{GAME_ID}/slipstream{path}"
