"""Answer normalization and grouping.

Two answers match when their canonical keys are string-identical. Keys are
case folded, whitespace collapsed and stripped of control characters;
nothing semantic happens here.
Blank answers get a key tagged with a per-submission marker so that two
players who wrote nothing never count as agreeing.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Mapping


BLANK_PREFIX = "\x00blank:"

_WS = re.compile(r"\s+")
_ES_ENDINGS = ("sses", "xes", "zes", "ches", "shes")


def _stem_token(token: str) -> str:
    if len(token) <= 3 or not token.endswith("s") or token.endswith("ss"):
        return token
    if token.endswith(_ES_ENDINGS):
        return token[:-2]
    return token[:-1]


def _drop_controls(text: str) -> str:
    return "".join(ch for ch in text if ch.isspace() or unicodedata.category(ch) != "Cc")


def normalize(raw: str | None, marker: str = "", stem: bool = False) -> str:
    # Control characters never reach a key, so typed text cannot forge a
    # BLANK_PREFIX key.
    t = _WS.sub(" ", _drop_controls(raw or "").casefold()).strip()
    if not t:
        return BLANK_PREFIX + marker
    if stem:
        t = " ".join(_stem_token(tok) for tok in t.split(" "))
    return t


def is_blank(key: str) -> bool:
    return key.startswith(BLANK_PREFIX)


def canonical_keys(submissions: Mapping[str, str | None], stem: bool = False) -> dict[str, str]:
    # The player id is the blank marker: unique within one round.
    return {pid: normalize(raw, marker=pid, stem=stem) for pid, raw in submissions.items()}


def group_keys(keys: Mapping[str, str]) -> tuple[tuple[str, ...], ...]:
    buckets: dict[str, list[str]] = {}
    for pid, key in keys.items():
        buckets.setdefault(key, []).append(pid)

    groups = [tuple(sorted(members)) for members in buckets.values()]
    # Largest first, ties broken by smallest member id.
    groups.sort(key=lambda g: (-len(g), g[0]))
    return tuple(groups)


def group(submissions: Mapping[str, str | None], stem: bool = False) -> tuple[tuple[str, ...], ...]:
    return group_keys(canonical_keys(submissions, stem=stem))
