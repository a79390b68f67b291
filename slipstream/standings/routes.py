"""Routes for the standings blueprint."""

from __future__ import annotations

from typing import Any

from firebase_admin import firestore
from flask import jsonify

from slipstream.auth.decorators import login_required

from . import bp
from .services import StandingsService


@bp.route("/standings", methods=["GET"])
@login_required
def standings(game_id: str) -> Any:
    """Get the yellow (time) and green (points) jersey standings."""
    db = firestore.client()
    return jsonify(
        {"success": True, "gameId": game_id, **StandingsService.get_standings(db, game_id)}
    )
