from __future__ import annotations

from collections.abc import Collection, Iterable

from .errors import InvariantViolation


def score(groups: Iterable[Collection[str]], roster: Collection[str]) -> dict[str, int]:
    """Score one round.

    Each player earns one point per *other* player in their group, so a
    player nobody agreed with scores 0. ``roster`` holds the ids allowed to
    appear in the groups; anything else means the caller built the groups
    from the wrong submissions.
    """
    deltas: dict[str, int] = {}
    for members in groups:
        if not members:
            raise InvariantViolation("empty group")
        for pid in members:
            if pid not in roster:
                raise InvariantViolation(f"group member {pid!r} is not on the roster")
            if pid in deltas:
                raise InvariantViolation(f"player {pid!r} appears in more than one group")
            deltas[pid] = len(members) - 1
    return deltas
