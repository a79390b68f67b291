"""Global constants for the slipstream application."""

# Database-related constants
FIRESTORE_BATCH_LIMIT = 400

# Collection names
USERS_COLLECTION = "users"
GAMES_COLLECTION = "games"
RACES_COLLECTION = "races"
PARTICIPANTS_COLLECTION = "gameParticipants"
PICKS_COLLECTION = "stagePicks"
ACTIVITY_LOGS_COLLECTION = "activityLogs"

# Game-related constants
SLIPSTREAM_GAME_TYPE = "slipstream"
ACTIVE_PARTICIPANT_STATUS = "active"
PICKABLE_GAME_STATUSES = ("active", "bidding", "registration", "open")

# Scoring defaults, overridable per app (config) and per game (game.config)
DEFAULT_PENALTY_MINUTES = 1
DEFAULT_PICK_DEADLINE_MINUTES = 60
DEFAULT_CALCULATION_LEASE_SECONDS = 300
DEFAULT_GREEN_JERSEY_POINTS = {
    1: 10,
    2: 9,
    3: 8,
    4: 7,
    5: 6,
    6: 5,
    7: 4,
    8: 3,
    9: 2,
    10: 1,
}

# Penalty reasons
PENALTY_MISSED_PICK = "missed_pick"
PENALTY_DNF = "dnf"

# Activity log actions
ACTION_PICK = "SLIPSTREAM_PICK"
ACTION_PICK_CLEARED = "SLIPSTREAM_PICK_CLEARED"
ACTION_RACES_ADDED = "SLIPSTREAM_RACES_ADDED"
ACTION_RACE_DELETED = "SLIPSTREAM_RACE_DELETED"
ACTION_RACE_STATUS = "SLIPSTREAM_RACE_STATUS_UPDATE"
ACTION_RESULTS_CALCULATED = "SLIPSTREAM_RESULTS_CALCULATED"

# Pick fields written by a results calculation and cleared when a race reopens
PICK_SCORING_FIELDS = (
    "timeLostSeconds",
    "timeLostFormatted",
    "greenJerseyPoints",
    "riderFinishPosition",
    "isPenalty",
    "penaltyReason",
    "processedAt",
)
