from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass
from typing import Any

_int_noise_re = re.compile(r"[,_\s]")


def to_int_or_none(value: Any) -> int | None:
    """
    Lenient integer coercion that fails closed.

    Accepts ints, finite floats (truncated) and numeric strings (thousands
    separators allowed). Empty, non-numeric or non-finite input gives None,
    never 0, so missing metrics stay out of aggregates.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return math.trunc(value) if math.isfinite(value) else None
    if not isinstance(value, str):
        return None

    v = _int_noise_re.sub("", value)
    if not v:
        return None
    try:
        return int(v)
    except ValueError:
        pass
    try:
        f = float(v)
    except ValueError:
        return None
    return math.trunc(f) if math.isfinite(f) else None


def to_float_or_none(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        f = float(value)
    elif isinstance(value, str):
        if not value.strip():
            return None
        try:
            f = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return f if math.isfinite(f) else None


def _text_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


@dataclass(frozen=True)
class ParsedTrendingEntry:
    native_id: int
    name: str | None
    score_rank: float | None
    positive: int | None
    negative: int | None
    userscore: float | None
    owners: str | None
    average_forever: int | None
    average_2weeks: int | None
    median_forever: int | None
    median_2weeks: int | None
    ccu: int | None

    def as_row(self) -> dict[str, Any]:
        return asdict(self)


def parse_trending_entry(entry: Any) -> ParsedTrendingEntry | None:
    """One ranking entry, or None when it lacks a usable app id."""

    if not isinstance(entry, dict):
        return None
    native_id = to_int_or_none(entry.get("appid"))
    if native_id is None:
        return None

    return ParsedTrendingEntry(
        native_id=native_id,
        name=_text_or_none(entry.get("name")),
        score_rank=to_float_or_none(entry.get("score_rank")),
        positive=to_int_or_none(entry.get("positive")),
        negative=to_int_or_none(entry.get("negative")),
        userscore=to_float_or_none(entry.get("userscore")),
        owners=_text_or_none(entry.get("owners")),
        average_forever=to_int_or_none(entry.get("average_forever")),
        average_2weeks=to_int_or_none(entry.get("average_2weeks")),
        median_forever=to_int_or_none(entry.get("median_forever")),
        median_2weeks=to_int_or_none(entry.get("median_2weeks")),
        ccu=to_int_or_none(entry.get("ccu")),
    )


def parse_ranking_payload(payload: dict[str, Any]) -> list[ParsedTrendingEntry]:
    """Valid entries of a ranking payload; duplicates of an app id keep the first."""

    entries: list[ParsedTrendingEntry] = []
    seen: set[int] = set()
    for raw in payload.values():
        parsed = parse_trending_entry(raw)
        if parsed is None or parsed.native_id in seen:
            continue
        seen.add(parsed.native_id)
        entries.append(parsed)
    return entries
