from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from catalog_pipeline.core.config import settings
from catalog_pipeline.db.base import as_utc
from catalog_pipeline.db.enums import JobStatusEnum
from catalog_pipeline.db.repos.trending.trending_snapshot_repo import TrendingSnapshotRepository
from catalog_pipeline.ingestion.providers.base.client import BaseHttpClient
from catalog_pipeline.ingestion.providers.steamspy.client import (
    SteamSpyClient,
    make_steamspy_http,
)
from catalog_pipeline.ingestion.providers.steamspy.parser import parse_ranking_payload

logger = logging.getLogger(__name__)

BUCKET_HOURS = 6
BUCKET_WIDTH = timedelta(hours=BUCKET_HOURS)


@dataclass(frozen=True)
class IngestTrendingSnapshotResult:
    status: JobStatusEnum
    bucket: datetime
    batch_id: str | None = None
    entries_seen: int = 0
    rows_inserted: int = 0
    rows_deleted: int = 0


def compute_bucket_timestamp(now: datetime) -> datetime:
    """Floor `now` (in UTC) to the start of its 6-hour bucket."""

    now = as_utc(now)
    return now.replace(
        hour=(now.hour // BUCKET_HOURS) * BUCKET_HOURS, minute=0, second=0, microsecond=0
    )


def new_batch_id(now: datetime) -> str:
    """
    UUID-shaped id whose leading 64 bits are the creation time in microseconds.

    Sorting batch ids lexically therefore sorts batches by creation, which the
    retention trim relies on.
    """

    micros = int(as_utc(now).timestamp() * 1_000_000)
    return str(uuid.UUID(int=(micros << 64) | uuid.uuid4().int >> 64))


def ingest_trending_snapshot(
    session: Session,
    *,
    client: SteamSpyClient | None = None,
    payload: dict[str, Any] | None = None,
    now: datetime | None = None,
    enforce_idempotency: bool | None = None,
    keep_snapshots: int | None = None,
) -> IngestTrendingSnapshotResult:
    """Capture the SteamSpy top-100 ranking as one batch for the current 6h bucket.

    If a row already exists inside the bucket (and idempotency is enforced) the
    run does nothing. Otherwise every valid entry is written in one INSERT and
    one transaction under a fresh batch id; on failure the transaction is rolled
    back and the error re-raised. After a successful insert only the newest
    `keep_snapshots` batches are retained (0 disables trimming).
    """

    now = as_utc(now or datetime.now(tz=UTC))
    if enforce_idempotency is None:
        enforce_idempotency = settings.trending_enforce_idempotency
    if keep_snapshots is None:
        keep_snapshots = settings.trending_keep_snapshots

    repo = TrendingSnapshotRepository(session)
    bucket = compute_bucket_timestamp(now)
    logger.info("Starting SteamSpy fetch for bucket %s", bucket.isoformat())

    if enforce_idempotency and repo.exists_between(bucket, bucket + BUCKET_WIDTH):
        logger.info("Snapshot for bucket %s already exists, skipping", bucket.isoformat())
        return IngestTrendingSnapshotResult(status=JobStatusEnum.SKIPPED, bucket=bucket)

    if payload is None:
        created_http: BaseHttpClient | None = None
        if client is None:
            created_http = make_steamspy_http()
            client = SteamSpyClient(http=created_http)
        try:
            payload = client.get_ranking()
        finally:
            if created_http is not None:
                created_http.close()

    if not payload:
        logger.warning("SteamSpy returned empty data")
        return IngestTrendingSnapshotResult(status=JobStatusEnum.EMPTY, bucket=bucket)

    entries = parse_ranking_payload(payload)
    if not entries:
        logger.warning("No valid rows after parsing %s entries, skipping insert", len(payload))
        return IngestTrendingSnapshotResult(
            status=JobStatusEnum.EMPTY, bucket=bucket, entries_seen=len(payload)
        )

    batch_id = new_batch_id(now)
    rows = [{**e.as_row(), "snapshot_time": now, "batch_id": batch_id} for e in entries]

    try:
        inserted = repo.insert_rows(rows)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info("Inserted %s rows under batch_id %s", inserted, batch_id)

    deleted = 0
    if keep_snapshots > 0:
        try:
            deleted = repo.trim_to_latest_batches(keep_snapshots)
            session.commit()
        except Exception:
            session.rollback()
            raise
        logger.info("Trending retention deleted %s rows (keep=%s batches)", deleted, keep_snapshots)

    return IngestTrendingSnapshotResult(
        status=JobStatusEnum.INSERTED,
        bucket=bucket,
        batch_id=batch_id,
        entries_seen=len(payload),
        rows_inserted=inserted,
        rows_deleted=deleted,
    )
