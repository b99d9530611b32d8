from __future__ import annotations

import ssl
from datetime import UTC, datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest
import sqlalchemy as sa
from sqlalchemy.orm import Session

import catalog_pipeline.db.models  # noqa: F401
from catalog_pipeline.db.base import Base, as_utc
from catalog_pipeline.db.enums import JobStatusEnum
from catalog_pipeline.db.models.trending.trending_snapshot import TrendingSnapshot
from catalog_pipeline.db.repos.trending.trending_snapshot_repo import TrendingSnapshotRepository
from catalog_pipeline.ingestion.providers.base.client import BaseHttpClient
from catalog_pipeline.ingestion.providers.steamspy.client import SteamSpyClient, build_ssl_context
from catalog_pipeline.ingestion.providers.steamspy.ingest.trending_snapshot import (
    compute_bucket_timestamp,
    ingest_trending_snapshot,
    new_batch_id,
)


def _make_session() -> Session:
    engine = sa.create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def _count(session: Session) -> int:
    return session.execute(sa.select(sa.func.count()).select_from(TrendingSnapshot)).scalar_one()


def _payload(*appids: int) -> dict:
    return {str(a): {"appid": a, "name": f"App {a}", "ccu": a * 10} for a in appids}


@pytest.mark.parametrize(
    ("now", "bucket"),
    [
        (datetime(2024, 6, 1, 13, 10, tzinfo=UTC), datetime(2024, 6, 1, 12, tzinfo=UTC)),
        (datetime(2024, 6, 1, 0, 0, tzinfo=UTC), datetime(2024, 6, 1, 0, tzinfo=UTC)),
        (datetime(2024, 6, 1, 5, 59, 59, tzinfo=UTC), datetime(2024, 6, 1, 0, tzinfo=UTC)),
        (datetime(2024, 6, 1, 23, 30, tzinfo=UTC), datetime(2024, 6, 1, 18, tzinfo=UTC)),
    ],
)
def test_compute_bucket_timestamp_floors_to_six_hours(now: datetime, bucket: datetime) -> None:
    assert compute_bucket_timestamp(now) == bucket


def test_compute_bucket_timestamp_converts_to_utc() -> None:
    local = datetime(2024, 6, 1, 15, 10, tzinfo=timezone(timedelta(hours=2)))
    assert compute_bucket_timestamp(local) == datetime(2024, 6, 1, 12, tzinfo=UTC)


def test_batch_ids_sort_by_creation_time() -> None:
    t0 = datetime(2024, 6, 1, tzinfo=UTC)
    ids = [new_batch_id(t0 + timedelta(hours=6 * i)) for i in range(5)]
    assert ids == sorted(ids)
    assert len(set(ids)) == 5


def test_ingest_writes_one_batch_and_is_idempotent_within_bucket() -> None:
    session = _make_session()
    payload = {"5": {"appid": "5", "name": "X", "ccu": "12"}}

    first = ingest_trending_snapshot(
        session, payload=payload, now=datetime(2024, 6, 1, 13, 10, tzinfo=UTC)
    )

    assert first.status == JobStatusEnum.INSERTED
    assert first.bucket == datetime(2024, 6, 1, 12, tzinfo=UTC)
    assert first.rows_inserted == 1

    row = session.execute(sa.select(TrendingSnapshot)).scalar_one()
    assert row.native_id == 5
    assert row.name == "X"
    assert row.ccu == 12
    assert row.batch_id == first.batch_id
    assert as_utc(row.snapshot_time) == datetime(2024, 6, 1, 13, 10, tzinfo=UTC)

    second = ingest_trending_snapshot(
        session, payload=payload, now=datetime(2024, 6, 1, 14, 0, tzinfo=UTC)
    )
    assert second.status == JobStatusEnum.SKIPPED
    assert _count(session) == 1


def test_ingest_without_idempotency_writes_another_batch() -> None:
    session = _make_session()
    now = datetime(2024, 6, 1, 13, 10, tzinfo=UTC)

    ingest_trending_snapshot(session, payload=_payload(1), now=now)
    result = ingest_trending_snapshot(
        session, payload=_payload(1), now=now + timedelta(minutes=5), enforce_idempotency=False
    )

    assert result.status == JobStatusEnum.INSERTED
    assert len(TrendingSnapshotRepository(session).batch_ids()) == 2


def test_ingest_next_bucket_is_not_skipped() -> None:
    session = _make_session()
    ingest_trending_snapshot(
        session, payload=_payload(1), now=datetime(2024, 6, 1, 17, 59, tzinfo=UTC)
    )
    result = ingest_trending_snapshot(
        session, payload=_payload(1), now=datetime(2024, 6, 1, 18, 0, tzinfo=UTC)
    )
    assert result.status == JobStatusEnum.INSERTED


def test_ingest_empty_or_invalid_payload_writes_nothing() -> None:
    session = _make_session()
    now = datetime(2024, 6, 1, tzinfo=UTC)

    assert ingest_trending_snapshot(session, payload={}, now=now).status == JobStatusEnum.EMPTY
    invalid = {"a": {"name": "no appid"}, "b": "junk", "c": {"appid": "abc"}}
    result = ingest_trending_snapshot(session, payload=invalid, now=now)

    assert result.status == JobStatusEnum.EMPTY
    assert result.entries_seen == 3
    assert _count(session) == 0


def test_retention_keeps_only_newest_batches() -> None:
    session = _make_session()
    t0 = datetime(2024, 6, 1, tzinfo=UTC)

    results = [
        ingest_trending_snapshot(
            session, payload=_payload(1, 2), now=t0 + timedelta(hours=6 * i), keep_snapshots=3
        )
        for i in range(5)
    ]

    kept = TrendingSnapshotRepository(session).batch_ids()
    assert sorted(kept) == sorted(r.batch_id for r in results[-3:])
    assert _count(session) == 6
    assert results[-1].rows_deleted == 2


def test_retention_with_fewer_batches_than_limit_deletes_nothing() -> None:
    session = _make_session()
    t0 = datetime(2024, 6, 1, tzinfo=UTC)
    for i in range(2):
        result = ingest_trending_snapshot(
            session, payload=_payload(1), now=t0 + timedelta(hours=6 * i), keep_snapshots=5
        )
        assert result.rows_deleted == 0
    assert len(TrendingSnapshotRepository(session).batch_ids()) == 2


def test_retention_disabled_with_zero() -> None:
    session = _make_session()
    t0 = datetime(2024, 6, 1, tzinfo=UTC)
    for i in range(4):
        ingest_trending_snapshot(
            session, payload=_payload(1), now=t0 + timedelta(hours=6 * i), keep_snapshots=0
        )
    assert len(TrendingSnapshotRepository(session).batch_ids()) == 4


def test_failed_insert_rolls_back_the_whole_batch(monkeypatch: pytest.MonkeyPatch) -> None:
    session = _make_session()
    original = TrendingSnapshotRepository.insert_rows

    def insert_then_fail(self: TrendingSnapshotRepository, rows: list[dict]) -> int:
        original(self, rows)
        raise RuntimeError("connection lost")

    monkeypatch.setattr(TrendingSnapshotRepository, "insert_rows", insert_then_fail)

    with pytest.raises(RuntimeError):
        ingest_trending_snapshot(
            session, payload=_payload(1, 2, 3), now=datetime(2024, 6, 1, tzinfo=UTC)
        )

    assert _count(session) == 0


def test_ingest_fetches_ranking_from_steamspy() -> None:
    session = _make_session()
    seen: list[httpx.URL] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        return httpx.Response(200, json=_payload(730, 570))

    http = BaseHttpClient(base_url="https://steamspy.com", transport=httpx.MockTransport(handler))
    result = ingest_trending_snapshot(
        session, client=SteamSpyClient(http=http), now=datetime(2024, 6, 1, tzinfo=UTC)
    )

    assert result.status == JobStatusEnum.INSERTED
    assert result.rows_inserted == 2
    assert seen[0].path == "/api.php"
    assert seen[0].params["request"] == "top100in2weeks"


def test_steamspy_empty_list_means_no_entries() -> None:
    http = BaseHttpClient(
        base_url="https://steamspy.com",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[])),
    )
    assert SteamSpyClient(http=http).get_ranking() == {}


def test_build_ssl_context_keeps_default_trust_when_extra_ca_is_missing(tmp_path: Path) -> None:
    assert isinstance(build_ssl_context(None), ssl.SSLContext)
    assert isinstance(build_ssl_context(tmp_path / "missing.pem"), ssl.SSLContext)

    bogus = tmp_path / "bogus.pem"
    bogus.write_text("not a certificate")
    assert isinstance(build_ssl_context(bogus), ssl.SSLContext)
