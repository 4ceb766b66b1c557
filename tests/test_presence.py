"""
tests/test_presence.py — Typing Indicator Summary
==================================================
"""

from __future__ import annotations

import pytest

from tomorrow_people.engine.presence import typing_summary


@pytest.mark.parametrize(
    "names, expected",
    [
        ([], ""),
        (["Ada"], "Ada is typing..."),
        (["Ada", "Ben"], "Ada and Ben are typing..."),
        (["Ada", "Ben", "Cy"], "Ada, Ben, and 1 other are typing..."),
        (["Ada", "Ben", "Cy", "Di", "Ed"], "Ada, Ben, and 3 others are typing..."),
    ],
)
def test_typing_summary(names, expected):
    assert typing_summary(names) == expected
