"""Game and participant lookups shared by the Slipstream areas."""

from .models import Game, GameParticipant, ScoringConfig
from .services import GameService

__all__ = ["Game", "GameParticipant", "GameService", "ScoringConfig"]
