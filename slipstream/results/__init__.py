"""Race results blueprint."""

from flask import Blueprint

bp = Blueprint("results", __name__, url_prefix="/api/games/<game_id>/slipstream")

from . import routes  # noqa: E402, F401
from .services import ResultsService  # noqa: E402

__all__ = ["ResultsService", "routes"]
