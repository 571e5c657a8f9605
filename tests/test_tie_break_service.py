"""Tests for winner selection and tie-breaking."""

import random

import pytest

from core.club_config import TieBreakingMethod
from services.tie_break_service import resolve_winner, top_scorers
from tests.conftest import PickFirst, PickLast


ALL_METHODS = list(TieBreakingMethod)


class TestUniqueMaximum:
    @pytest.mark.parametrize("method", ALL_METHODS)
    def test_unique_max_wins_regardless_of_method(self, method):
        result = resolve_winner({"R1": 8, "R2": 7, "R3": 3}, method, PickLast())
        assert result.winner_id == "R1"
        assert result.max_points == 8
        assert not result.was_tie
        assert result.method is None


class TestTies:
    TIED = {"R1": 5, "R2": 7, "R3": 7, "R4": 7}

    def test_top_scorers_keep_order(self):
        assert top_scorers(self.TIED) == ["R2", "R3", "R4"]

    def test_recommender_decides_picks_first_tied(self):
        # deterministic: the rng is never consulted
        for _ in range(20):
            result = resolve_winner(self.TIED, TieBreakingMethod.RECOMMENDER_DECIDES, random.Random())
            assert result.winner_id == "R2"
        assert result.was_tie
        assert result.tied_ids == ["R2", "R3", "R4"]

    def test_random_uses_injected_rng(self):
        assert resolve_winner(self.TIED, TieBreakingMethod.RANDOM, PickLast()).winner_id == "R4"
        assert resolve_winner(self.TIED, TieBreakingMethod.RANDOM, PickFirst()).winner_id == "R2"

    def test_random_only_picks_tied(self):
        rng = random.Random(0)
        winners = {resolve_winner(self.TIED, TieBreakingMethod.RANDOM, rng).winner_id for _ in range(50)}
        assert winners <= {"R2", "R3", "R4"}

    def test_re_vote_falls_back_to_random(self):
        result = resolve_winner(self.TIED, TieBreakingMethod.RE_VOTE, PickLast())
        assert result.winner_id == "R4"
        assert result.method == TieBreakingMethod.RE_VOTE


def test_empty_totals():
    with pytest.raises(ValueError):
        resolve_winner({}, TieBreakingMethod.RANDOM)
