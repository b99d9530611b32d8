from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime

from sqlalchemy.orm import Session

from catalog_pipeline.core.config import settings
from catalog_pipeline.db.enums import JobStatusEnum
from catalog_pipeline.db.locks import CATALOG_SYNC_LOCK, JobLock
from catalog_pipeline.db.repos.catalog.catalog_entity_repo import CatalogEntityRepository
from catalog_pipeline.db.repos.catalog.sync_checkpoint_repo import SyncCheckpointRepository
from catalog_pipeline.ingestion.providers.base.client import BaseHttpClient
from catalog_pipeline.ingestion.providers.base.errors import (
    ProviderMappingError,
    ProviderNotFound,
    ProviderServerError,
)
from catalog_pipeline.ingestion.providers.rawg.client import RawgClient
from catalog_pipeline.ingestion.providers.rawg.parser import parse_listing

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncCatalogResult:
    status: JobStatusEnum
    pages: int = 0
    entities_upserted: int = 0
    checkpoint: datetime | None = None


def make_rawg_client() -> tuple[RawgClient, BaseHttpClient]:
    http = BaseHttpClient(base_url=settings.rawg_base_url)
    return RawgClient(http=http), http


def initial_checkpoint() -> datetime:
    return datetime.combine(
        date.fromisoformat(settings.catalog_initial_sync_date), datetime.min.time(), tzinfo=UTC
    )


def sync_catalog(
    session: Session,
    *,
    client: RawgClient | None = None,
    today: date | None = None,
    page_size: int | None = None,
) -> SyncCatalogResult:
    """Incrementally pull RAWG games updated since the checkpoint.

    Pages are processed strictly in order and each page is committed before the
    next fetch, so the checkpoint (recomputed from stored rows) only ever covers
    a persisted prefix. Outcomes:

    - lock held elsewhere: `skipped`, nothing touched
    - feed exhausted (404 past the last page, or an empty terminal page): checkpoint, `completed`
    - RAWG 5xx: checkpoint, `interrupted`; the next scheduled run resumes
    - anything else: checkpoint, then re-raise
    """

    created_http: BaseHttpClient | None = None
    if client is None:
        client, created_http = make_rawg_client()

    checkpoints = SyncCheckpointRepository(session)
    entities = CatalogEntityRepository(session)

    checkpoints.ensure(initial_checkpoint())
    session.commit()

    lock = JobLock(session, CATALOG_SYNC_LOCK)
    try:
        if not lock.acquire():
            logger.info("Catalog sync already running, skipping")
            return SyncCatalogResult(status=JobStatusEnum.SKIPPED)

        try:
            last_synced = checkpoints.last_synced_at() or initial_checkpoint()
            date_from = last_synced.date().isoformat()
            date_to = (today or datetime.now(tz=UTC).date()).isoformat()
            logger.info("Catalog sync started for dates %s..%s", date_from, date_to)

            pages = 0
            upserted = 0
            next_url: str | None = None
            while True:
                try:
                    if next_url is None:
                        page = client.get_games_page(
                            date_from=date_from,
                            date_to=date_to,
                            page_size=page_size or settings.rawg_page_size,
                        )
                    else:
                        page = client.get_next_page(next_url)
                except ProviderNotFound:
                    logger.warning("RAWG 404, end of pagination; checkpointing")
                    break
                except ProviderServerError as e:
                    logger.warning("RAWG temporary failure (%s); checkpointing", e)
                    checkpoint = checkpoints.checkpoint_from_entities()
                    session.commit()
                    return SyncCatalogResult(
                        status=JobStatusEnum.INTERRUPTED,
                        pages=pages,
                        entities_upserted=upserted,
                        checkpoint=checkpoint,
                    )

                if page.is_terminal:
                    break

                for item in page.results:
                    try:
                        values = parse_listing(item)
                    except ProviderMappingError as e:
                        logger.warning("Skipping RAWG record: %s", e)
                        continue
                    entities.upsert_listing(values)
                    upserted += 1
                session.commit()
                pages += 1

                if page.next_url is None:
                    break
                next_url = page.next_url

            checkpoint = checkpoints.checkpoint_from_entities()
            session.commit()
            logger.info(
                "Catalog sync completed: pages=%s upserted=%s checkpoint=%s",
                pages,
                upserted,
                checkpoint,
            )
            return SyncCatalogResult(
                status=JobStatusEnum.COMPLETED,
                pages=pages,
                entities_upserted=upserted,
                checkpoint=checkpoint,
            )

        except Exception as e:
            logger.warning("Catalog sync failed (%s); checkpointing progress", e)
            session.rollback()
            checkpoints.checkpoint_from_entities()
            session.commit()
            raise

    finally:
        lock.release()
        if created_http is not None:
            created_http.close()
