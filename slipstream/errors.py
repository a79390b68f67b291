"""Custom exception classes for the application."""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base application error class."""

    def __init__(self, message, status_code=400, context=None):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.context: dict[str, Any] = context or {}


class ValidationError(AppError):
    """Raised when user input fails validation."""

    def __init__(self, message="Validation failed.", context=None):
        """Initialize the error."""
        super().__init__(message, 400, context)


class DuplicateResourceError(AppError):
    """Raised when trying to create a resource that already exists."""

    def __init__(self, message="Resource already exists.", context=None):
        """Initialize the error."""
        super().__init__(message, 409, context)


class NotFoundError(AppError):
    """Raised when a resource is not found."""

    def __init__(self, message="Resource not found.", context=None):
        """Initialize the error."""
        super().__init__(message, 404, context)


class UnauthorizedError(AppError):
    """Raised when a request has no logged-in user."""

    def __init__(self, message="Login required."):
        """Initialize the error."""
        super().__init__(message, 401)


class ForbiddenError(AppError):
    """Raised when the logged-in user may not perform the action."""

    def __init__(self, message="You are not authorized to perform this action."):
        """Initialize the error."""
        super().__init__(message, 403)


class NotParticipantError(ForbiddenError):
    """Raised when a user who is not an active participant tries to pick."""

    def __init__(self, game_id: str, user_id: str):
        """Initialize the error."""
        super().__init__("User is not a participant in this game.")
        self.context = {"gameId": game_id, "userId": user_id}


# Race calendar


class InvalidScheduleError(ValidationError):
    """Raised when a race's pick deadline falls after the race start."""

    def __init__(self, race_slug: str, pick_deadline: Any, race_date: Any):
        """Initialize the error."""
        super().__init__(
            f"Pick deadline for '{race_slug}' must be at or before the race start.",
            {
                "raceSlug": race_slug,
                "pickDeadline": _iso(pick_deadline),
                "raceDate": _iso(race_date),
            },
        )


class DuplicateSlugError(DuplicateResourceError):
    """Raised when a race slug already exists in the game."""

    def __init__(self, race_slug: str):
        """Initialize the error."""
        super().__init__(
            f"Race '{race_slug}' is already part of this game.",
            {"raceSlug": race_slug},
        )


class RaceNotDeletableError(AppError):
    """Raised when deleting a race that has left the upcoming state."""

    def __init__(self, race_slug: str, status: str):
        """Initialize the error."""
        super().__init__(
            f"Race '{race_slug}' is {status} and can no longer be deleted.",
            409,
            {"raceSlug": race_slug, "status": status},
        )


class InvalidTransitionError(AppError):
    """Raised for a race status change the state machine does not allow."""

    def __init__(self, race_slug: str, current: str, requested: str):
        """Initialize the error."""
        super().__init__(
            f"Race '{race_slug}' cannot move from {current} to {requested}.",
            409,
            {"raceSlug": race_slug, "status": current, "requestedStatus": requested},
        )


# Picks


class PickWindowClosedError(AppError):
    """Raised when a pick is changed after the race locked or the deadline passed."""

    def __init__(self, race_slug: str, status: str, pick_deadline: Any):
        """Initialize the error."""
        super().__init__(
            f"Picks for '{race_slug}' are closed.",
            400,
            {
                "raceSlug": race_slug,
                "status": status,
                "pickDeadline": _iso(pick_deadline),
            },
        )


class RiderAlreadyUsedError(AppError):
    """Raised when a user picks a rider they already used on another race."""

    def __init__(self, rider_id: str, used_on: str | None):
        """Initialize the error."""
        super().__init__(
            "This rider has already been used. Each rider can only be picked once.",
            409,
            {"riderId": rider_id, "usedOnRace": used_on},
        )


# Results


class ResultsNotReadyError(AppError):
    """Raised when results are calculated for a race that is not locked yet."""

    def __init__(self, race_slug: str, status: str):
        """Initialize the error."""
        super().__init__(
            "Race results not available; lock/save results first.",
            409,
            {"raceSlug": race_slug, "status": status},
        )


class CalculationInProgressError(AppError):
    """Raised when another results run holds the race."""

    def __init__(self, race_slug: str, started_at: Any):
        """Initialize the error."""
        super().__init__(
            f"Results for '{race_slug}' are already being calculated.",
            409,
            {"raceSlug": race_slug, "calculationStartedAt": _iso(started_at)},
        )


class CalculationAbortedError(AppError):
    """Raised when a results run loses its lease on the race before finishing."""

    def __init__(self, race_slug: str, status: Any):
        """Initialize the error."""
        super().__init__(
            f"Race '{race_slug}' changed while its results were being written; "
            "run the calculation again.",
            409,
            {"raceSlug": race_slug, "status": status},
        )


def _iso(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value
