"""
tomorrow_people.engine.presence — Typing indicator summaries
=============================================================
"""

from __future__ import annotations


def typing_summary(names: list[str]) -> str:
    """Render the "who is typing" line shown under a channel's composer.

    Returns an empty string when nobody is typing.
    """
    if not names:
        return ""
    if len(names) == 1:
        return f"{names[0]} is typing..."
    if len(names) == 2:
        return f"{names[0]} and {names[1]} are typing..."
    others = len(names) - 2
    suffix = "" if others == 1 else "s"
    return f"{names[0]}, {names[1]}, and {others} other{suffix} are typing..."
