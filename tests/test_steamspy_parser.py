from __future__ import annotations

import pytest

from catalog_pipeline.ingestion.providers.steamspy.parser import (
    parse_ranking_payload,
    parse_trending_entry,
    to_float_or_none,
    to_int_or_none,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (12, 12),
        ("12", 12),
        (" 1,234 ", 1234),
        ("12.9", 12),
        (7.8, 7),
        ("", None),
        ("n/a", None),
        (None, None),
        (True, None),
        (float("nan"), None),
        ("inf", None),
    ],
)
def test_to_int_or_none(value: object, expected: int | None) -> None:
    assert to_int_or_none(value) == expected


def test_to_float_or_none() -> None:
    assert to_float_or_none("95.5") == 95.5
    assert to_float_or_none(3) == 3.0
    assert to_float_or_none("") is None
    assert to_float_or_none("abc") is None


def test_parse_trending_entry_coerces_and_keeps_owners_text() -> None:
    entry = parse_trending_entry(
        {
            "appid": 730,
            "name": "Counter-Strike 2",
            "positive": "7,000,000",
            "negative": 1000000,
            "userscore": 0,
            "owners": "50,000,000 .. 100,000,000",
            "average_forever": "31,000",
            "ccu": "1,200,000",
            "score_rank": "",
        }
    )

    assert entry is not None
    assert entry.native_id == 730
    assert entry.positive == 7_000_000
    assert entry.negative == 1_000_000
    assert entry.userscore == 0.0
    assert entry.owners == "50,000,000 .. 100,000,000"
    assert entry.average_forever == 31_000
    assert entry.ccu == 1_200_000
    assert entry.score_rank is None
    assert entry.median_2weeks is None


def test_parse_ranking_payload_drops_invalid_and_duplicate_entries() -> None:
    entries = parse_ranking_payload(
        {
            "1": {"appid": 1, "name": "First"},
            "dup": {"appid": "1", "name": "Duplicate"},
            "2": {"name": "no appid"},
            "3": None,
            "4": {"appid": 4},
        }
    )

    assert [(e.native_id, e.name) for e in entries] == [(1, "First"), (4, None)]
