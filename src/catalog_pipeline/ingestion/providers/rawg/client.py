from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from catalog_pipeline.core.config import settings
from catalog_pipeline.ingestion.providers.base.client import BaseHttpClient
from catalog_pipeline.ingestion.providers.base.errors import ProviderResponseError

ApiItem = dict[str, Any]


@dataclass(frozen=True)
class RawgPage:
    results: list[ApiItem]
    next_url: str | None

    @property
    def is_terminal(self) -> bool:
        return not self.results and self.next_url is None


def _items(value: Any) -> list[ApiItem]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


class RawgClient:
    def __init__(self, *, http: BaseHttpClient, api_key: str | None = None) -> None:
        self.http = http
        self.api_key = api_key or settings.require_rawg_api_key()

    def get_games_page(
        self,
        *,
        date_from: str,
        date_to: str,
        page_size: int,
        ordering: str = "-updated",
    ) -> RawgPage:
        """First page of `GET /games` filtered to a date range."""

        params = {
            "key": self.api_key,
            "ordering": ordering,
            "dates": f"{date_from},{date_to}",
            "page_size": str(page_size),
        }
        return self._page(self.http.get_json("/games", params=params))

    def get_next_page(self, next_url: str) -> RawgPage:
        """Follow a `next` link; it already carries key and filters."""

        return self._page(self.http.get_json(next_url))

    def get_game(self, game_id: int) -> ApiItem:
        return self.http.get_json(f"/games/{game_id}", params={"key": self.api_key})

    def search_games(self, name: str, *, page_size: int = 10) -> list[ApiItem]:
        payload = self.http.get_json(
            "/games",
            params={"key": self.api_key, "search": name, "page_size": str(page_size)},
        )
        return _items(payload.get("results"))

    @staticmethod
    def _page(payload: dict[str, Any]) -> RawgPage:
        results = payload.get("results")
        if results is not None and not isinstance(results, list):
            raise ProviderResponseError(f"Expected 'results' list, got: {type(results)}")
        next_url = payload.get("next")
        return RawgPage(
            results=_items(results),
            next_url=next_url if isinstance(next_url, str) and next_url else None,
        )
