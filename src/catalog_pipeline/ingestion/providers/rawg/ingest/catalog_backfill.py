from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from catalog_pipeline.db.enums import JobStatusEnum
from catalog_pipeline.db.locks import CATALOG_BACKFILL_LOCK, JobLock
from catalog_pipeline.db.repos.catalog.catalog_entity_repo import CatalogEntityRepository
from catalog_pipeline.ingestion.providers.base.client import BaseHttpClient
from catalog_pipeline.ingestion.providers.base.errors import ProviderError, ProviderNotFound
from catalog_pipeline.ingestion.providers.rawg.client import RawgClient
from catalog_pipeline.ingestion.providers.rawg.ingest.catalog_sync import make_rawg_client
from catalog_pipeline.ingestion.providers.rawg.parser import parse_detail

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackfillCatalogResult:
    status: JobStatusEnum
    pending: int = 0
    filled: int = 0
    not_found: int = 0
    stopped_at_id: int | None = None
    stop_reason: str | None = None


def backfill_catalog(
    session: Session,
    *,
    client: RawgClient | None = None,
) -> BackfillCatalogResult:
    """Fetch per-game detail for every catalog row still marked `pending`.

    One request at a time, most recently updated first. A 404 skips that row;
    any other upstream failure ends the run early (status `stopped`) and leaves
    the remaining rows for the next run. Each filled row is committed on its own.
    """

    created_http: BaseHttpClient | None = None
    if client is None:
        client, created_http = make_rawg_client()

    entities = CatalogEntityRepository(session)
    lock = JobLock(session, CATALOG_BACKFILL_LOCK)
    try:
        if not lock.acquire():
            logger.info("Catalog backfill already running, skipping")
            return BackfillCatalogResult(status=JobStatusEnum.SKIPPED)

        pending_ids = entities.list_pending_ids()
        if not pending_ids:
            logger.info("Catalog backfill: nothing to backfill")
            return BackfillCatalogResult(status=JobStatusEnum.COMPLETED)

        filled = 0
        not_found = 0
        for external_id in pending_ids:
            try:
                detail = client.get_game(external_id)
                values = parse_detail(detail)
            except ProviderNotFound:
                logger.warning("Catalog backfill: game %s not found upstream", external_id)
                not_found += 1
                continue
            except ProviderError as e:
                logger.warning("Catalog backfill: %s, stopping at game %s", e, external_id)
                return BackfillCatalogResult(
                    status=JobStatusEnum.STOPPED,
                    pending=len(pending_ids),
                    filled=filled,
                    not_found=not_found,
                    stopped_at_id=external_id,
                    stop_reason=str(e),
                )

            entities.apply_detail(external_id, values)
            session.commit()
            filled += 1
            logger.debug("Catalog backfill: filled %s (%s)", external_id, detail.get("name"))

        logger.info(
            "Catalog backfill completed: pending=%s filled=%s not_found=%s",
            len(pending_ids),
            filled,
            not_found,
        )
        return BackfillCatalogResult(
            status=JobStatusEnum.COMPLETED,
            pending=len(pending_ids),
            filled=filled,
            not_found=not_found,
        )
    finally:
        lock.release()
        if created_http is not None:
            created_http.close()
