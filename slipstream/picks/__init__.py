"""Stage picks blueprint."""

from flask import Blueprint

bp = Blueprint("picks", __name__, url_prefix="/api/games/<game_id>/slipstream")

from . import routes  # noqa: E402, F401
from .models import Pick, PickSubmission  # noqa: E402
from .services import PickRegistry  # noqa: E402

__all__ = ["Pick", "PickRegistry", "PickSubmission", "routes"]
