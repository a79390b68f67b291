"""Tests for stage result normalization."""

from __future__ import annotations

import unittest

from slipstream.errors import ValidationError
from slipstream.results.parser import (
    find_result,
    index_results,
    parse_stage_results,
    to_slug,
)


class StageResultParserTestCase(unittest.TestCase):
    """Tests for parse_stage_results and rider matching."""

    def test_canonical_rows(self) -> None:
        finishers = parse_stage_results(
            [
                {"riderId": "b", "finishPosition": 2, "timeGapToWinnerSeconds": 7},
                {"riderId": "a", "finishPosition": 1, "timeGapToWinnerSeconds": 0},
            ]
        )
        self.assertEqual([r.rider_id for r in finishers], ["a", "b"])
        self.assertEqual(finishers[1].time_gap_seconds, 7)

    def test_scraper_rows(self) -> None:
        finishers = parse_stage_results(
            [
                {"nameID": "tadej-pogacar", "shortName": "Pogačar T.", "place": 1},
                {"nameID": "jonas-vingegaard", "rank": 2, "timeDifference": "+1:23"},
                {"nameID": "wout-van-aert", "place": 3, "gap": "s.t."},
            ]
        )
        self.assertEqual(
            [(r.rider_id, r.finish_position, r.time_gap_seconds) for r in finishers],
            [
                ("tadej-pogacar", 1, 0),
                ("jonas-vingegaard", 2, 83),
                ("wout-van-aert", 3, 0),
            ],
        )

    def test_winner_gap_is_zero(self) -> None:
        finishers = parse_stage_results(
            [{"riderId": "a", "finishPosition": 1, "timeGapToWinnerSeconds": 30}]
        )
        self.assertEqual(finishers[0].time_gap_seconds, 0)

    def test_rows_without_position_are_non_finishers(self) -> None:
        finishers = parse_stage_results(
            [
                {"riderId": "a", "finishPosition": 1},
                {"riderId": "b", "finishPosition": "DNF"},
                {"riderId": "c"},
            ]
        )
        self.assertEqual([r.rider_id for r in finishers], ["a"])

    def test_duplicate_rider_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            parse_stage_results(
                [
                    {"riderId": "a", "finishPosition": 1},
                    {"riderId": "a", "finishPosition": 2},
                ]
            )

    def test_negative_gap_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            parse_stage_results(
                [{"riderId": "a", "finishPosition": 2, "timeGapToWinnerSeconds": -3}]
            )

    def test_rows_must_be_objects(self) -> None:
        with self.assertRaises(ValidationError):
            parse_stage_results(["a"])
        with self.assertRaises(ValidationError):
            parse_stage_results({"riderId": "a"})

    def test_slug_strips_accents(self) -> None:
        self.assertEqual(to_slug("Primož Roglič"), "primoz-roglic")

    def test_find_result_by_id_or_name_slug(self) -> None:
        index = index_results(
            parse_stage_results(
                [
                    {"nameID": "Primoz-Roglic", "shortName": "Primož Roglič", "place": 1},
                    {"riderId": "remco", "riderName": "Remco Evenepoel", "place": 2},
                ]
            )
        )
        self.assertEqual(find_result(index, "Primoz-Roglic").finish_position, 1)
        self.assertEqual(find_result(index, "primoz-roglic").finish_position, 1)
        self.assertEqual(find_result(index, "remco-evenepoel").rider_id, "remco")
        self.assertIsNone(find_result(index, "someone-else"))


if __name__ == "__main__":
    unittest.main()
