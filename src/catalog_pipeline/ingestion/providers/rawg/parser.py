from __future__ import annotations

import json
from datetime import UTC, date, datetime
from typing import Any

from catalog_pipeline.ingestion.providers.base.errors import ProviderMappingError

ApiItem = dict[str, Any]


def to_json_text(value: Any) -> str | None:
    """
    Encode a value as JSON text for the structured-text columns.

    Strings that already hold valid JSON pass through untouched; any other
    string is encoded as a JSON string, so the store never gets malformed text.
    """

    if value is None:
        return None
    if isinstance(value, str):
        try:
            json.loads(value)
        except ValueError:
            return json.dumps(value)
        return value
    return json.dumps(value)


def parse_rawg_datetime(value: Any) -> datetime | None:
    """RAWG `updated` values are naive ISO strings in UTC."""

    if not isinstance(value, str) or not value.strip():
        return None
    v = value.strip()
    if v.endswith("Z"):
        v = v[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(v)
    except ValueError:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_rawg_date(value: Any) -> date | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    return None


def _game_id(item: ApiItem) -> int:
    game_id = item.get("id")
    if isinstance(game_id, bool) or not isinstance(game_id, int):
        raise ProviderMappingError("RAWG game without an integer id", context={"id": game_id})
    return game_id


def parse_listing(item: ApiItem) -> dict[str, Any]:
    """Column values for one `/games` list record."""

    return {
        "external_id": _game_id(item),
        "slug": item.get("slug"),
        "name": item.get("name"),
        "name_original": item.get("name_original"),
        "released": parse_rawg_date(item.get("released")),
        "background_image": item.get("background_image"),
        "suggestions_count": _int_or_none(item.get("suggestions_count")),
        "platforms": to_json_text(item.get("platforms") or []),
        "developers": to_json_text(item.get("developers") or []),
        "publishers": to_json_text(item.get("publishers") or []),
        "genres": to_json_text(item.get("genres") or []),
        "tags": to_json_text(item.get("tags") or []),
        "esrb_rating": to_json_text(item.get("esrb_rating")),
        "website": item.get("website") or None,
        "updated_at": parse_rawg_datetime(item.get("updated")),
    }


def parse_detail(item: ApiItem) -> dict[str, Any]:
    """Column values only the `/games/{id}` detail endpoint provides."""

    alternative_names = item.get("alternative_names")
    if not isinstance(alternative_names, list):
        alternative_names = []

    return {
        "description": item.get("description_raw") or item.get("description"),
        "screenshots_count": _int_or_none(item.get("screenshots_count")) or 0,
        "achievements_count": _int_or_none(item.get("achievements_count")) or 0,
        "game_series_count": _int_or_none(item.get("game_series_count")) or 0,
        "additions_count": _int_or_none(item.get("additions_count")) or 0,
        "parents_count": _int_or_none(item.get("parents_count")) or 0,
        "alternative_names": to_json_text(alternative_names),
    }


def parse_full_entity(item: ApiItem) -> dict[str, Any]:
    """Listing plus detail columns, for rows created straight from a detail fetch."""

    return {**parse_listing(item), **parse_detail(item)}
