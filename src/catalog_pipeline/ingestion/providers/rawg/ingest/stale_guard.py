from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.orm import Session

from catalog_pipeline.core.config import settings
from catalog_pipeline.db.enums import JobStatusEnum
from catalog_pipeline.db.repos.catalog.sync_checkpoint_repo import SyncCheckpointRepository
from catalog_pipeline.ingestion.providers.base.client import BaseHttpClient
from catalog_pipeline.ingestion.providers.rawg.client import RawgClient
from catalog_pipeline.ingestion.providers.rawg.ingest.catalog_backfill import (
    BackfillCatalogResult,
    backfill_catalog,
)
from catalog_pipeline.ingestion.providers.rawg.ingest.catalog_sync import (
    SyncCatalogResult,
    initial_checkpoint,
    make_rawg_client,
    sync_catalog,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncIfStaleResult:
    status: JobStatusEnum
    last_synced_at: datetime | None
    sync: SyncCatalogResult | None = None
    backfill: BackfillCatalogResult | None = None


def sync_catalog_if_stale(
    session: Session,
    *,
    client: RawgClient | None = None,
    max_age: timedelta | None = None,
    now: datetime | None = None,
) -> SyncIfStaleResult:
    """Run sync followed by backfill when the checkpoint is older than `max_age`."""

    if max_age is None:
        max_age = timedelta(hours=settings.catalog_max_age_hours)
    now = now or datetime.now(tz=UTC)

    checkpoints = SyncCheckpointRepository(session)
    checkpoints.ensure(initial_checkpoint())
    session.commit()

    last = checkpoints.last_synced_at()
    if last is not None and now - last <= max_age:
        logger.info("Catalog checkpoint %s is fresh, sync not needed", last)
        return SyncIfStaleResult(status=JobStatusEnum.FRESH, last_synced_at=last)

    created_http: BaseHttpClient | None = None
    if client is None:
        client, created_http = make_rawg_client()
    try:
        sync_result = sync_catalog(session, client=client, today=now.date())
        backfill_result = backfill_catalog(session, client=client)
    finally:
        if created_http is not None:
            created_http.close()

    logger.info(
        "Catalog stale sync finished: sync=%s backfill=%s",
        sync_result.status,
        backfill_result.status,
    )
    return SyncIfStaleResult(
        status=JobStatusEnum.COMPLETED,
        last_synced_at=sync_result.checkpoint or last,
        sync=sync_result,
        backfill=backfill_result,
    )
