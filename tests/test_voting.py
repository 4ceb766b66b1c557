"""
tests/test_voting.py — Vote Tally Arithmetic
=============================================
"""

from __future__ import annotations

import pytest

from tomorrow_people.engine.voting import (
    VoteTally,
    apply_vote_change,
    controversy_key,
    percentage,
)


class TestApplyVoteChange:
    def test_first_vote(self):
        tally = apply_vote_change(VoteTally(), None, "agree")
        assert tally == VoteTally(agree=1)
        assert tally.total == 1

    def test_switch_keeps_total(self):
        before = VoteTally(agree=3, disagree=1, passed=2)
        after = apply_vote_change(before, "agree", "disagree")
        assert after == VoteTally(agree=2, disagree=2, passed=2)
        assert after.total == before.total

    def test_retraction(self):
        assert apply_vote_change(VoteTally(passed=1), "pass", None) == VoteTally()

    def test_same_vote_is_noop(self):
        tally = VoteTally(agree=2)
        assert apply_vote_change(tally, "agree", "agree") is tally

    def test_never_negative(self):
        assert apply_vote_change(VoteTally(), "disagree", None) == VoteTally()

    def test_unknown_bucket_raises(self):
        with pytest.raises(ValueError):
            apply_vote_change(VoteTally(), None, "maybe")


class TestPercentage:
    @pytest.mark.parametrize(
        "part, total, expected",
        [
            (0, 0, 0),
            (1, 2, 50),
            (1, 3, 33),
            (2, 3, 67),
            (1, 8, 13),   # 12.5 rounds up
            (5, 5, 100),
        ],
    )
    def test_rounding(self, part, total, expected):
        assert percentage(part, total) == expected


class TestControversyKey:
    def test_even_split_sorts_first(self):
        keys = {
            "split": controversy_key(5, 5, 10),
            "lopsided": controversy_key(9, 1, 10),
            "unanimous": controversy_key(4, 0, 4),
        }
        ordered = sorted(keys, key=keys.get)
        assert ordered == ["split", "lopsided", "unanimous"]

    def test_volume_breaks_ties(self):
        assert controversy_key(10, 10, 20) < controversy_key(1, 1, 2)

    def test_only_passes_sorts_last(self):
        assert controversy_key(0, 0, 3) > controversy_key(9, 1, 10)
