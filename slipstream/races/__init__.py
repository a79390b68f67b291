"""Race calendar blueprint."""

from flask import Blueprint

bp = Blueprint("races", __name__, url_prefix="/api/games/<game_id>/slipstream")

from . import routes  # noqa: E402, F401
from .models import Race, RaceStatus  # noqa: E402
from .services import RaceCalendarService  # noqa: E402

__all__ = ["Race", "RaceCalendarService", "RaceStatus", "routes"]
