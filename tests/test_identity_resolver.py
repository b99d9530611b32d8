from __future__ import annotations

from datetime import UTC, datetime

import httpx
import pytest
import sqlalchemy as sa
from sqlalchemy.orm import Session

import catalog_pipeline.db.models  # noqa: F401
from catalog_pipeline.db.base import Base
from catalog_pipeline.db.enums import (
    CatalogEntityStatusEnum,
    ConflictReasonEnum,
    MatchSourceEnum,
)
from catalog_pipeline.db.models.catalog.catalog_entity import CatalogEntity
from catalog_pipeline.db.models.identity.identity_mapping import IdentityMapping
from catalog_pipeline.db.models.identity.match_conflict import MatchConflict
from catalog_pipeline.db.models.trending.trending_snapshot import TrendingSnapshot
from catalog_pipeline.identity.mapping import assign_mapping, find_mapping
from catalog_pipeline.identity.resolver import (
    ResolveStatus,
    auto_match,
    resolve_identity,
    resolve_unmapped_batch,
)
from catalog_pipeline.ingestion.providers.base.client import BaseHttpClient
from catalog_pipeline.ingestion.providers.rawg.client import RawgClient
from catalog_pipeline.ingestion.providers.steamspy.ingest.trending_snapshot import (
    ingest_trending_snapshot,
)


def _make_session() -> Session:
    engine = sa.create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def _client(handler) -> RawgClient:
    http = BaseHttpClient(
        base_url="https://api.rawg.io/api", transport=httpx.MockTransport(handler)
    )
    return RawgClient(http=http, api_key="test")


def _rawg(search: dict[str, list[dict]], details: dict[int, dict] | None = None):
    """Fake RAWG answering searches by name and detail lookups by id."""

    details = details or {}
    requests: list[httpx.URL] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request.url)
        if request.url.path == "/api/games":
            name = request.url.params["search"]
            return httpx.Response(200, json={"results": search.get(name, [])})
        game_id = int(request.url.path.rsplit("/", 1)[-1])
        if game_id not in details:
            return httpx.Response(404, json={"detail": "Not found."})
        return httpx.Response(200, json=details[game_id])

    return handler, requests


def _no_network(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request {request.url}")


def _conflicts(session: Session) -> list[MatchConflict]:
    return list(session.execute(sa.select(MatchConflict).order_by(MatchConflict.id)).scalars())


CS2_SEARCH = [
    {"id": 9999, "slug": "counter-strike-2", "name": "Counter-Strike 2"},
    {"id": 4291, "slug": "counter-strike-global-offensive", "name": "Counter-Strike: GO"},
]
CS2_DETAIL = {
    "id": 9999,
    "slug": "counter-strike-2",
    "name": "Counter-Strike 2",
    "updated": "2024-04-01T10:00:00",
    "description_raw": "Tactical shooter.",
}


def test_auto_match_picks_best_scoring_candidate() -> None:
    handler, requests = _rawg({"Counter-Strike 2": list(reversed(CS2_SEARCH))})

    match = auto_match(_client(handler), "Counter-Strike 2", threshold=0.55, page_size=8)

    assert match is not None
    assert match.target_id == 9999
    assert match.score == 1.0
    assert requests[0].params["page_size"] == "8"


def test_auto_match_keeps_first_candidate_on_ties() -> None:
    handler, _ = _rawg(
        {"Hades": [{"id": 1, "name": "Hades"}, {"id": 2, "name": "HADES"}]}
    )
    match = auto_match(_client(handler), "Hades", threshold=0.55)
    assert match is not None and match.target_id == 1


def test_auto_match_returns_none_below_threshold() -> None:
    handler, _ = _rawg({"Portal": [{"id": 1, "name": "Portal Knights Deluxe Edition"}]})
    assert auto_match(_client(handler), "Portal", threshold=0.55) is None


def test_resolve_identity_matches_and_persists_auto_mapping() -> None:
    session = _make_session()
    handler, requests = _rawg({"Counter-Strike 2": CS2_SEARCH}, {9999: CS2_DETAIL})

    result = resolve_identity(
        session, native_id=730, name="Counter-Strike 2", client=_client(handler)
    )

    assert result.status == ResolveStatus.MATCHED
    assert result.target_id == 9999
    assert result.confidence == 1.0
    assert result.source == MatchSourceEnum.AUTO

    mapping = session.get(IdentityMapping, 730)
    assert mapping is not None
    assert mapping.target_id == 9999
    assert mapping.match_metadata == CS2_SEARCH[0]

    entity = session.get(CatalogEntity, 9999)
    assert entity is not None
    assert entity.status == CatalogEntityStatusEnum.COMPLETE
    assert entity.updated_at is None
    assert entity.description == "Tactical shooter."
    assert [u.path for u in requests] == ["/api/games", "/api/games/9999"]

    cached = resolve_identity(
        session, native_id=730, name="Counter-Strike 2", client=_client(_no_network)
    )
    assert cached.status == ResolveStatus.CACHED
    assert cached.target_id == 9999
    assert cached.confidence == 1.0


def test_resolve_identity_does_not_refetch_existing_catalog_entity() -> None:
    session = _make_session()
    session.add(CatalogEntity(external_id=9999, name="Counter-Strike 2"))
    session.commit()
    handler, requests = _rawg({"Counter-Strike 2": CS2_SEARCH})

    result = resolve_identity(
        session, native_id=730, name="Counter-Strike 2", client=_client(handler)
    )

    assert result.status == ResolveStatus.MATCHED
    assert [u.path for u in requests] == ["/api/games"]


def test_mapping_survives_missing_catalog_detail() -> None:
    session = _make_session()
    handler, _ = _rawg({"Counter-Strike 2": CS2_SEARCH})

    result = resolve_identity(
        session, native_id=730, name="Counter-Strike 2", client=_client(handler)
    )

    assert result.status == ResolveStatus.MATCHED
    assert session.get(CatalogEntity, 9999) is None
    assert find_mapping(session, native_id=730) is not None


def test_weak_candidates_are_logged_as_conflicts_and_not_cached() -> None:
    session = _make_session()
    handler, requests = _rawg({"Obscure Indie": [{"id": 5, "name": "Totally Different"}]})

    for _ in range(2):
        result = resolve_identity(
            session, native_id=123, name="Obscure Indie", client=_client(handler)
        )
        assert result.status == ResolveStatus.UNRESOLVED
        assert result.target_id is None

    assert session.get(IdentityMapping, 123) is None
    conflicts = _conflicts(session)
    assert len(conflicts) == 2
    assert conflicts[0].reason == ConflictReasonEnum.NO_GOOD_CANDIDATE
    assert conflicts[0].payload == {"name": "Obscure Indie"}
    assert len(requests) == 2


def test_search_failure_is_logged_with_error() -> None:
    session = _make_session()
    client = _client(lambda request: httpx.Response(500, text="down"))

    result = resolve_identity(session, native_id=55, name="Anything", client=client)

    assert result.status == ResolveStatus.UNRESOLVED
    [conflict] = _conflicts(session)
    assert conflict.reason == ConflictReasonEnum.EXCEPTION
    assert conflict.payload["name"] == "Anything"
    assert "500" in conflict.payload["err"]


def test_manual_assignment_overwrites_and_is_found_by_either_id() -> None:
    session = _make_session()
    handler, _ = _rawg({"Counter-Strike 2": CS2_SEARCH})
    resolve_identity(session, native_id=730, name="Counter-Strike 2", client=_client(handler))

    mapping = assign_mapping(session, native_id=730, target_id=4291)

    assert mapping.source == MatchSourceEnum.MANUAL
    assert mapping.confidence == 1.0
    assert mapping.target_id == 4291

    by_target = find_mapping(session, target_id=4291)
    assert by_target is not None and by_target.source_native_id == 730
    assert find_mapping(session, target_id=9999) is None
    assert find_mapping(session, native_id=1, target_id=4291) is not None

    cached = resolve_identity(session, native_id=730, name="whatever", client=_client(_no_network))
    assert cached.source == MatchSourceEnum.MANUAL


def test_assign_mapping_validates_confidence_and_find_requires_a_key() -> None:
    session = _make_session()
    with pytest.raises(ValueError):
        assign_mapping(session, native_id=1, target_id=2, confidence=1.5)
    with pytest.raises(ValueError):
        find_mapping(session)


def test_resolve_unmapped_batch_uses_latest_batch_and_skips_mapped() -> None:
    session = _make_session()
    ingest_trending_snapshot(
        session,
        payload={"1": {"appid": 1, "name": "Stale Game"}},
        now=datetime(2024, 6, 1, tzinfo=UTC),
    )
    ingest_trending_snapshot(
        session,
        payload={
            "730": {"appid": 730, "name": "Counter-Strike 2"},
            "570": {"appid": 570, "name": "Dota 2"},
            "999": {"appid": 999, "name": "No Such Game"},
        },
        now=datetime(2024, 6, 1, 6, tzinfo=UTC),
    )
    assign_mapping(session, native_id=570, target_id=10213)

    handler, requests = _rawg({"Counter-Strike 2": CS2_SEARCH}, {9999: CS2_DETAIL})
    pauses: list[float] = []

    result = resolve_unmapped_batch(
        session,
        client=_client(handler),
        batch_size=1,
        pause_s=0.25,
        sleep=pauses.append,
    )

    assert result.processed == 3
    assert result.skipped == 1
    assert result.matched == 1
    assert result.unresolved == 1
    assert pauses == [0.25]

    searched = sorted(u.params["search"] for u in requests if "search" in u.params)
    assert searched == ["Counter-Strike 2", "No Such Game"]
    assert session.get(IdentityMapping, 1) is None
    assert session.get(IdentityMapping, 730) is not None
    [conflict] = _conflicts(session)
    assert conflict.source_native_id == 999


def test_resolve_unmapped_batch_reads_rows_written_outside_ingest() -> None:
    session = _make_session()
    snapshot_time = datetime(2024, 6, 1, 12, tzinfo=UTC)
    session.execute(
        sa.insert(TrendingSnapshot).values(
            batch_id="legacy", native_id=730, name="Counter-Strike 2", snapshot_time=snapshot_time
        )
    )
    session.commit()

    handler, _ = _rawg({"Counter-Strike 2": CS2_SEARCH})
    result = resolve_unmapped_batch(session, client=_client(handler), sleep=lambda s: None)

    assert result.batch_id == "legacy"
    assert result.matched == 1


def test_resolve_unmapped_batch_with_no_snapshots_is_a_noop() -> None:
    session = _make_session()
    result = resolve_unmapped_batch(session, client=_client(_no_network))
    assert (result.processed, result.matched, result.skipped, result.unresolved) == (0, 0, 0, 0)
