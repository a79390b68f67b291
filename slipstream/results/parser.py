"""Normalization of stage results submitted by admins or the results feed."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Any, Optional

from slipstream.errors import ValidationError
from slipstream.races.models import StageResultEntry

from .scoring import parse_time_gap


def to_slug(name: str) -> str:
    """Lowercase, accent-free, hyphenated form of a rider name or id."""
    decomposed = unicodedata.normalize("NFD", name.lower())
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    hyphenated = re.sub(r"\s+", "-", stripped)
    return re.sub(r"[^a-z0-9-]", "", hyphenated)


@dataclass(frozen=True)
class StageResult:
    """One finisher of a race."""

    rider_id: str
    finish_position: int
    time_gap_seconds: int
    rider_name: Optional[str] = None

    def to_entry(self) -> StageResultEntry:
        """The form stored on the race document."""
        return {
            "riderId": self.rider_id,
            "riderName": self.rider_name,
            "finishPosition": self.finish_position,
            "timeGapToWinnerSeconds": self.time_gap_seconds,
        }


def _first(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def _position(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        position = int(value)
    except (TypeError, ValueError):
        # "DNF", "OTL" and friends
        return None
    return position if position >= 1 else None


def _gap(value: Any, rider_id: str) -> int:
    if isinstance(value, bool):
        raise ValidationError("Invalid time gap.", {"riderId": rider_id})
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValidationError(
                "Time gaps cannot be negative.", {"riderId": rider_id}
            )
        return int(value)
    return max(parse_time_gap(value), 0)


def _rider_identity(raw: Any) -> tuple[str, Optional[str]]:
    if not isinstance(raw, dict):
        raise ValidationError("Each stage result must be an object.")

    rider_id = _first(raw, "riderId", "nameID")
    rider_name = _first(raw, "riderName", "shortName", "name")
    if rider_id is None and rider_name is not None:
        rider_id = to_slug(str(rider_name))
    if not rider_id:
        raise ValidationError("Each stage result needs a riderId.", {"entry": raw})
    return str(rider_id), str(rider_name) if rider_name is not None else None


def parse_entry(raw: Any) -> Optional[StageResult]:
    """Read one result row; returns None for riders without a finish."""
    rider_id, rider_name = _rider_identity(raw)
    position = _position(_first(raw, "finishPosition", "place", "rank"))
    if position is None:
        return None

    gap = 0
    if position != 1:
        gap = _gap(
            _first(raw, "timeGapToWinnerSeconds", "timeDifference", "gap"), rider_id
        )
    return StageResult(
        rider_id=rider_id,
        finish_position=position,
        time_gap_seconds=gap,
        rider_name=rider_name,
    )


def parse_stage_results(raw_results: Any) -> list[StageResult]:
    """Normalize a result list to finishers ordered by position.

    Accepts both the canonical rows (``riderId``, ``finishPosition``,
    ``timeGapToWinnerSeconds``) and the scraper rows (``nameID``,
    ``shortName``, ``place``/``rank``, ``timeDifference``/``gap``).
    """
    if not isinstance(raw_results, list):
        raise ValidationError("stageResults must be a list.")

    finishers: list[StageResult] = []
    seen: set[str] = set()
    for raw in raw_results:
        result = parse_entry(raw)
        rider_id = result.rider_id if result else _rider_identity(raw)[0]
        if rider_id in seen:
            raise ValidationError(
                "Rider appears more than once in the results.", {"riderId": rider_id}
            )
        seen.add(rider_id)
        if result is not None:
            finishers.append(result)

    finishers.sort(key=lambda r: (r.finish_position, r.time_gap_seconds))
    return finishers


def index_results(finishers: list[StageResult]) -> dict[str, StageResult]:
    """Index finishers by id, slug of id and slug of name for pick matching."""
    index: dict[str, StageResult] = {}
    for result in finishers:
        index.setdefault(result.rider_id, result)
    for result in finishers:
        index.setdefault(to_slug(result.rider_id), result)
        if result.rider_name:
            index.setdefault(to_slug(result.rider_name), result)
    return index


def find_result(
    index: dict[str, StageResult], rider_id: str
) -> Optional[StageResult]:
    """Match a picked rider against indexed finishers."""
    return index.get(rider_id) or index.get(to_slug(rider_id))
