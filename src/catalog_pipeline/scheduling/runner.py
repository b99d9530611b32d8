from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from catalog_pipeline.db.engine import Database
from catalog_pipeline.identity.resolver import resolve_unmapped_batch
from catalog_pipeline.ingestion.providers.rawg.ingest.catalog_sync import sync_catalog
from catalog_pipeline.ingestion.providers.rawg.ingest.stale_guard import sync_catalog_if_stale
from catalog_pipeline.ingestion.providers.steamspy.ingest.trending_snapshot import (
    ingest_trending_snapshot,
)

logger = logging.getLogger(__name__)

JobFn = Callable[[Session], Any]


@dataclass(frozen=True)
class JobSpec:
    name: str
    fn: JobFn


CATALOG_SYNC = JobSpec("catalog-sync", lambda s: sync_catalog(s))
CATALOG_SYNC_IF_STALE = JobSpec("catalog-sync-if-stale", lambda s: sync_catalog_if_stale(s))
TRENDING_INGEST = JobSpec("trending-ingest", lambda s: ingest_trending_snapshot(s))
IDENTITY_RESOLVE = JobSpec("identity-resolve-unmapped", lambda s: resolve_unmapped_batch(s))


class JobRunner:
    """
    Runs one job against a fresh pinned session and reports the outcome.

    Failures are logged here and never propagate: a broken run must not take
    down the scheduler, and the next tick retries from the last checkpoint.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    def run(self, job: JobSpec) -> Any | None:
        logger.info("[%s] started", job.name)
        try:
            with self.db.pinned_session() as session:
                result = job.fn(session)
        except Exception:
            logger.exception("[%s] failed", job.name)
            return None
        logger.info("[%s] finished: %s", job.name, result)
        return result
