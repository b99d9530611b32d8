from __future__ import annotations

import hashlib
import logging
import os
import socket
import uuid
from datetime import UTC, datetime, timedelta
from types import TracebackType

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from catalog_pipeline.core.config import settings
from catalog_pipeline.db.base import as_utc
from catalog_pipeline.db.models.locks.job_lock import JobLockRow

logger = logging.getLogger(__name__)

CATALOG_SYNC_LOCK = "catalog-sync"
CATALOG_BACKFILL_LOCK = "catalog-backfill"

# Fixed keys so deployments sharing a database contend on the same lock.
ADVISORY_LOCK_KEYS: dict[str, int] = {
    CATALOG_SYNC_LOCK: 88442211,
    CATALOG_BACKFILL_LOCK: 88442222,
}


def advisory_key(name: str) -> int:
    """Stable signed 64-bit key for `pg_try_advisory_lock`."""

    known = ADVISORY_LOCK_KEYS.get(name)
    if known is not None:
        return known
    digest = hashlib.blake2b(name.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


def _default_owner() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


class JobLock:
    """
    Named, non-blocking, store-held mutual exclusion for a job.

    - PostgreSQL: session-level advisory lock on the session's connection. The
      server drops it if that connection dies, so a crashed holder cannot lock
      the job out. Use a pinned session (`Database.pinned_session`) so the
      connection does not change between commits.
    - Other dialects: a row in `job_locks`. Rows older than
      `job_lock_stale_after_s` are taken over when that setting is configured;
      otherwise a crashed holder's row must be removed by hand.

    Usage::

        lock = JobLock(session, CATALOG_SYNC_LOCK)
        if not lock.acquire():
            return skipped
        try:
            ...
        finally:
            lock.release()
    """

    def __init__(
        self,
        session: Session,
        name: str,
        *,
        stale_after_s: float | None = None,
        owner: str | None = None,
    ) -> None:
        self.session = session
        self.name = name
        self.stale_after_s = (
            settings.job_lock_stale_after_s if stale_after_s is None else stale_after_s
        )
        self.owner = owner or _default_owner()
        self.held = False

    @property
    def _use_advisory(self) -> bool:
        return self.session.get_bind().dialect.name == "postgresql"

    def acquire(self) -> bool:
        if self.held:
            return True
        if self._use_advisory:
            stmt = select(func.pg_try_advisory_lock(advisory_key(self.name)))
            self.held = bool(self.session.execute(stmt).scalar())
        else:
            self.held = self._acquire_row()
        if not self.held:
            logger.info("Lock %r is held elsewhere", self.name)
        return self.held

    def release(self) -> None:
        if not self.held:
            return
        if not self.session.is_active:
            # A failed flush/statement left the transaction unusable.
            self.session.rollback()
        if self._use_advisory:
            stmt = select(func.pg_advisory_unlock(advisory_key(self.name)))
            self.session.execute(stmt)
        else:
            self.session.execute(
                delete(JobLockRow)
                .where(JobLockRow.name == self.name, JobLockRow.owner == self.owner)
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
        self.held = False

    def _acquire_row(self) -> bool:
        now = datetime.now(tz=UTC)
        existing = self.session.execute(
            select(JobLockRow.owner, JobLockRow.acquired_at).where(JobLockRow.name == self.name)
        ).first()
        if existing is not None:
            if existing.owner == self.owner:
                return True
            if not self._is_stale(existing.acquired_at, now):
                return False
            logger.warning(
                "Taking over stale lock %r from %s (acquired %s)",
                self.name,
                existing.owner,
                existing.acquired_at,
            )
            self.session.execute(
                delete(JobLockRow)
                .where(JobLockRow.name == self.name, JobLockRow.owner == existing.owner)
                .execution_options(synchronize_session=False)
            )

        try:
            self.session.execute(
                insert(JobLockRow).values(name=self.name, owner=self.owner, acquired_at=now)
            )
            self.session.commit()
        except IntegrityError:
            # Another process inserted between our check and insert.
            self.session.rollback()
            return False
        return True

    def _is_stale(self, acquired_at: datetime, now: datetime) -> bool:
        if self.stale_after_s is None:
            return False
        return as_utc(acquired_at) + timedelta(seconds=self.stale_after_s) < now

    def __enter__(self) -> bool:
        return self.acquire()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
