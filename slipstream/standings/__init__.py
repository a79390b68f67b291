"""Standings blueprint."""

from flask import Blueprint

bp = Blueprint("standings", __name__, url_prefix="/api/games/<game_id>/slipstream")

from . import routes  # noqa: E402, F401
from .services import StandingsService, aggregate_standings  # noqa: E402

__all__ = ["StandingsService", "aggregate_standings", "routes"]
