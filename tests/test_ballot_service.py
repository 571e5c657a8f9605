"""Tests for ballot validation."""

import pytest

from core.exceptions import ErrorKind, InvalidBallot
from services.ballot_service import BallotEntry, validate_ballot

POINTS = [3, 2, 1]
ROUND_RECS = ["R1", "R2", "R3"]


def entries(*pairs):
    return [BallotEntry(recommendation_id=rec, points=points) for rec, points in pairs]


class TestValidateBallot:
    def test_full_ballot(self):
        ballot = entries(("R1", 3), ("R2", 2), ("R3", 1))
        assert validate_ballot(ballot, POINTS, ROUND_RECS) == ballot

    def test_partial_ballot_allowed(self):
        ballot = entries(("R2", 3))
        assert validate_ballot(ballot, POINTS, ROUND_RECS) == ballot

    def test_points_need_not_be_the_top_values(self):
        validate_ballot(entries(("R1", 1), ("R3", 2)), POINTS, ROUND_RECS)

    def test_empty_ballot(self):
        with pytest.raises(InvalidBallot, match="votes array required"):
            validate_ballot([], POINTS, ROUND_RECS)

    def test_unknown_recommendation(self):
        with pytest.raises(InvalidBallot, match="not found in this round"):
            validate_ballot(entries(("R1", 3), ("OTHER", 2)), POINTS, ROUND_RECS)

    def test_invalid_points(self):
        with pytest.raises(InvalidBallot, match="invalid points 5"):
            validate_ballot(entries(("R1", 5)), POINTS, ROUND_RECS)

    def test_duplicate_recommendation(self):
        with pytest.raises(InvalidBallot, match="same recommendation multiple times"):
            validate_ballot(entries(("R1", 3), ("R1", 2)), POINTS, ROUND_RECS)

    def test_duplicate_points(self):
        with pytest.raises(InvalidBallot, match="same points to multiple recommendations"):
            validate_ballot(entries(("R1", 3), ("R2", 3)), POINTS, ROUND_RECS)

    def test_is_bad_request(self):
        with pytest.raises(InvalidBallot) as exc:
            validate_ballot(entries(("R1", 3), ("R2", 3)), POINTS, ROUND_RECS)
        assert exc.value.kind == ErrorKind.BAD_REQUEST


class TestRuleOrder:
    """When several rules fail, the earliest rule is reported."""

    def test_unknown_recommendation_before_invalid_points(self):
        # entry 1 has bad points, entry 2 a foreign recommendation
        with pytest.raises(InvalidBallot, match="not found in this round"):
            validate_ballot(entries(("R1", 7), ("OTHER", 3)), POINTS, ROUND_RECS)

    def test_invalid_points_before_duplicates(self):
        with pytest.raises(InvalidBallot, match="invalid points"):
            validate_ballot(entries(("R1", 3), ("R1", 9)), POINTS, ROUND_RECS)

    def test_duplicate_recommendation_before_duplicate_points(self):
        with pytest.raises(InvalidBallot, match="same recommendation"):
            validate_ballot(entries(("R1", 3), ("R1", 3)), POINTS, ROUND_RECS)
