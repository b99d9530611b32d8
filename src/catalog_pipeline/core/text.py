from __future__ import annotations

import re

_whitespace_re = re.compile(r"\s+")
_non_alnum_re = re.compile(r"[^a-z0-9\s]")


def normalize_name(value: str | None) -> str:
    """Normalize a game title for stable matching across catalogs."""

    v = (value or "").strip().lower()
    v = v.replace("&", "and")
    v = _non_alnum_re.sub("", v)
    v = _whitespace_re.sub(" ", v)
    return v.strip()


def name_similarity(a: str | None, b: str | None) -> float:
    """Token-overlap similarity between two titles, in [0, 1].

    Overlap is counted over distinct normalized tokens and divided by the larger
    token set, so the score is symmetric. Identical normalized names score 1.0.
    A name that normalizes to nothing scores 0.0 against anything, itself
    included, so blank titles never match.
    """

    na = normalize_name(a)
    nb = normalize_name(b)
    if not na or not nb:
        return 0.0
    if na == nb:
        return 1.0

    tokens_a = set(na.split(" "))
    tokens_b = set(nb.split(" "))
    common = len(tokens_a & tokens_b)
    score = common / max(len(tokens_a), len(tokens_b))
    return min(1.0, max(0.0, score))
