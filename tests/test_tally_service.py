"""Tests for tallying and participation."""

import random

from models import Vote
from services.tally_service import calculate_participation, tally_votes


def vote(member, rec, points):
    return Vote(member_id=member, recommendation_id=rec, points=points)


def scenario_votes():
    """3 members, 2 recommendations.

           R1  R2
    A       3   2
    B       3   2   (submitted R2 first)
    C       2   3

    R1 = 3+3+2 = 8, R2 = 2+2+3 = 7
    """
    return [
        vote("A", "R1", 3), vote("A", "R2", 2),
        vote("B", "R2", 2), vote("B", "R1", 3),
        vote("C", "R1", 2), vote("C", "R2", 3),
    ]


class TestTallyVotes:
    def test_scenario_totals(self):
        assert tally_votes(scenario_votes()) == {"R1": 8, "R2": 7}

    def test_empty(self):
        assert tally_votes([]) == {}

    def test_unvoted_recommendations_are_omitted(self):
        totals = tally_votes([vote("A", "R1", 3)], order=["R1", "R2", "R3"])
        assert totals == {"R1": 3}

    def test_invariant_to_submission_order(self):
        votes = scenario_votes()
        shuffled = votes[:]
        random.Random(42).shuffle(shuffled)
        assert tally_votes(shuffled) == tally_votes(votes)

    def test_order_follows_recommendation_order(self):
        votes = [vote("A", "R2", 3), vote("A", "R1", 2), vote("B", "R3", 1)]
        totals = tally_votes(votes, order=["R1", "R2", "R3"])
        assert list(totals) == ["R1", "R2", "R3"]

    def test_member_contribution_matches_ballot_sum(self):
        votes = [vote("A", "R1", 3), vote("A", "R2", 1)]
        assert sum(tally_votes(votes).values()) == 4


class TestParticipation:
    def test_each_member_counted_once(self):
        p = calculate_participation(scenario_votes(), member_count=4)
        assert p.voted == 3
        assert p.total == 4
        assert p.percentage == 75.0

    def test_empty_club(self):
        p = calculate_participation([], member_count=0)
        assert p.percentage == 0.0

    def test_exact_eighty_percent(self):
        votes = [vote(m, "R1", 3) for m in ("A", "B", "C", "D")]
        assert calculate_participation(votes, member_count=5).percentage == 80.0
