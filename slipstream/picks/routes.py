"""Routes for the picks blueprint."""

from __future__ import annotations

from typing import Any

from firebase_admin import firestore
from flask import g, jsonify, request

from slipstream.auth.decorators import login_required
from slipstream.core.utils import form_error

from . import bp
from .forms import ClearPickForm, PickForm
from .models import PickSubmission
from .services import PickRegistry, serialize_pick


@bp.route("/pick", methods=["POST"])
@login_required
def submit_pick(game_id: str) -> Any:
    """Submit or change the current user's pick for a race."""
    form = PickForm(meta={"csrf": False})
    if not form.validate_on_submit():
        raise form_error(form)

    db = firestore.client()
    submission = PickSubmission(
        game_id=game_id,
        user_id=g.user["uid"],
        race_slug=form.raceSlug.data,
        rider_id=form.riderId.data,
        rider_name=form.riderName.data or None,
    )
    pick = PickRegistry.submit_pick(db, submission)
    return jsonify(
        {
            "success": True,
            "pick": serialize_pick(pick),
            "message": f"Pick submitted: {pick['riderName']} for {pick['raceSlug']}",
        }
    )


@bp.route("/pick", methods=["DELETE"])
@login_required
def clear_pick(game_id: str) -> Any:
    """Clear the current user's pending pick for a race."""
    form = ClearPickForm(meta={"csrf": False})
    if not form.validate_on_submit():
        raise form_error(form)

    db = firestore.client()
    race_slug = form.raceSlug.data
    cleared = PickRegistry.clear_pick(db, game_id, g.user["uid"], race_slug)
    return jsonify({"success": True, "cleared": cleared, "raceSlug": race_slug})


@bp.route("/picks", methods=["GET"])
@login_required
def list_picks(game_id: str) -> Any:
    """List picks of a game, optionally filtered by user, race or lock state."""
    db = firestore.client()
    locked_arg = request.args.get("locked")
    locked = None if locked_arg is None else locked_arg.lower() == "true"
    picks = PickRegistry.list_picks(
        db,
        game_id,
        user_id=request.args.get("userId") or None,
        race_slug=request.args.get("raceSlug") or None,
        locked=locked,
    )
    return jsonify(
        {
            "gameId": game_id,
            "picks": [serialize_pick(p) for p in picks],
            "count": len(picks),
        }
    )
