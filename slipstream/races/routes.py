"""Routes for the race calendar blueprint."""

from __future__ import annotations

from typing import Any

from firebase_admin import firestore
from flask import current_app, g, jsonify, request
from werkzeug.datastructures import ImmutableMultiDict

from slipstream.auth.decorators import login_required
from slipstream.core.utils import form_error
from slipstream.errors import ValidationError

from . import bp
from .forms import RaceForm, RaceStatusForm
from .services import RaceCalendarService, serialize_race


def _race_input(form: RaceForm) -> dict[str, Any]:
    return {
        "raceSlug": form.raceSlug.data,
        "raceName": form.raceName.data,
        "raceId": form.raceId.data or None,
        "raceDate": form.raceDate.data,
        "pickDeadline": form.pickDeadline.data,
        "order": form.order.data,
    }


@bp.route("/races", methods=["GET"])
@login_required
def list_races(game_id: str) -> Any:
    """List the races of a game in calendar order."""
    db = firestore.client()
    races = RaceCalendarService.list_races(db, game_id)
    return jsonify(
        {
            "gameId": game_id,
            "races": [serialize_race(r) for r in races],
            "count": len(races),
        }
    )


@bp.route("/races", methods=["POST"])
@login_required(admin_required=True)
def add_races(game_id: str) -> Any:
    """Add one race, or several with {"races": [...]}."""
    db = firestore.client()
    payload = request.get_json(silent=True) or {}

    if isinstance(payload.get("races"), list):
        races_data = []
        for entry in payload["races"]:
            if not isinstance(entry, dict):
                raise ValidationError("Each race must be an object.")
            form = RaceForm(formdata=ImmutableMultiDict(entry), meta={"csrf": False})
            if not form.validate():
                raise form_error(form)
            races_data.append(_race_input(form))
        summary = RaceCalendarService.add_races(db, game_id, races_data)
        return jsonify({"success": True, "gameId": game_id, **summary}), 201

    form = RaceForm(meta={"csrf": False})
    if not form.validate_on_submit():
        raise form_error(form)
    race = RaceCalendarService.add_race(db, game_id, _race_input(form))
    return jsonify({"success": True, "race": serialize_race(race)}), 201


@bp.route("/races/<race_slug>", methods=["DELETE"])
@login_required(admin_required=True)
def delete_race(game_id: str, race_slug: str) -> Any:
    """Delete a race that is still upcoming."""
    db = firestore.client()
    RaceCalendarService.delete_race(db, game_id, race_slug)
    return jsonify({"success": True, "gameId": game_id, "raceSlug": race_slug})


@bp.route("/races/<race_slug>/status", methods=["POST"])
@login_required(admin_required=True)
def set_race_status(game_id: str, race_slug: str) -> Any:
    """Move a race through the upcoming/locked/finished state machine."""
    form = RaceStatusForm(meta={"csrf": False})
    if not form.validate_on_submit():
        raise form_error(form)

    db = firestore.client()
    race = RaceCalendarService.set_status(db, game_id, race_slug, form.status.data)
    current_app.logger.info(
        f"Admin {g.user['uid']} set race {race_slug} of game {game_id} "
        f"to {race['status']}."
    )
    return jsonify(
        {
            "success": True,
            "race": serialize_race(race),
            "message": f"Race status updated to {race['status']}",
        }
    )


@bp.route("/calendar", methods=["GET"])
@login_required
def calendar(game_id: str) -> Any:
    """Get the race calendar with the user's picks and deadline info."""
    db = firestore.client()
    user_id = request.args.get("userId") or g.user["uid"]
    return jsonify(RaceCalendarService.get_calendar(db, game_id, user_id))
