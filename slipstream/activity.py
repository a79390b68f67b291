"""Activity log entries for player and admin actions on a Slipstream game."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from slipstream.core.constants import ACTIVITY_LOGS_COLLECTION

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction


def log_activity(
    db: Client,
    action: str,
    game_id: str,
    details: dict[str, Any],
    user_id: str | None = None,
    writer: Transaction | None = None,
) -> None:
    """Record an activity log entry, inside ``writer`` when one is given."""
    entry: dict[str, Any] = {
        "action": action,
        "gameId": game_id,
        "details": details,
        "timestamp": firestore.SERVER_TIMESTAMP,
    }
    if user_id:
        entry["userId"] = user_id

    ref = db.collection(ACTIVITY_LOGS_COLLECTION).document()
    if writer is not None:
        writer.set(ref, entry)
    else:
        ref.set(entry)
