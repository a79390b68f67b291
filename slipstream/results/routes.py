"""Routes for the race results blueprint."""

from __future__ import annotations

from typing import Any

from firebase_admin import firestore
from flask import current_app, g, jsonify, request

from slipstream.auth.decorators import login_required
from slipstream.errors import ValidationError

from . import bp
from .services import ResultsService


@bp.route("/races/<race_slug>/results", methods=["POST"])
@login_required(admin_required=True)
def calculate_results(game_id: str, race_slug: str) -> Any:
    """Score a locked race from the posted stage results.

    Posting without ``stageResults`` recalculates from the results stored on
    the race.
    """
    payload = request.get_json(silent=True) or {}
    stage_results = payload.get("stageResults")
    if stage_results is not None and not isinstance(stage_results, list):
        raise ValidationError("stageResults must be a list.")

    db = firestore.client()
    summary = ResultsService.calculate_results(db, game_id, race_slug, stage_results)
    current_app.logger.info(
        f"Admin {g.user['uid']} calculated results for {race_slug} in game {game_id}."
    )
    return jsonify({"success": True, **summary})
