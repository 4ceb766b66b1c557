"""
tomorrow_people.engine.voting — Vote tallies and percentages
=============================================================

Pure arithmetic over an idea's vote counters.  :mod:`idea_service` keeps
the counters on the ``ideas`` row in step with ``idea_votes`` using
:func:`apply_vote_change`; the percentage and controversy helpers feed the
idea list.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from tomorrow_people.database.models import VoteType

_BUCKETS = {
    VoteType.AGREE: "agree",
    VoteType.DISAGREE: "disagree",
    VoteType.PASS: "passed",
}


@dataclass(frozen=True, slots=True)
class VoteTally:
    agree: int = 0
    disagree: int = 0
    passed: int = 0

    @property
    def total(self) -> int:
        return self.agree + self.disagree + self.passed


def apply_vote_change(
    tally: VoteTally, old: str | None, new: str | None,
) -> VoteTally:
    """Move one vote from bucket *old* to bucket *new*.

    ``old=None`` is a first vote, ``new=None`` a retraction.  Switching
    buckets leaves the total unchanged; counts never drop below zero.
    """
    if old == new:
        return tally
    changes: dict[str, int] = {}
    if old is not None:
        attr = _BUCKETS[VoteType(old)]
        changes[attr] = max(getattr(tally, attr) - 1, 0)
    if new is not None:
        attr = _BUCKETS[VoteType(new)]
        changes[attr] = changes.get(attr, getattr(tally, attr)) + 1
    return replace(tally, **changes)


def percentage(part: int, total: int) -> int:
    """Whole-number percentage, rounded half up; 0 when *total* is 0."""
    if total <= 0:
        return 0
    return (part * 200 + total) // (total * 2)


def controversy_key(agree: int, disagree: int, total: int) -> tuple[int, float, int]:
    """Sort key for "most controversial": closest agree/disagree split first,
    then more votes first.  Ideas nobody has voted on sort last."""
    decided = agree + disagree
    if total <= 0 or decided == 0:
        return (1, 1.0, 0)
    return (0, abs(agree - disagree) / decided, -total)
