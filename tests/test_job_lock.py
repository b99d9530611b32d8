from __future__ import annotations

from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy.orm import Session

import catalog_pipeline.db.models  # noqa: F401
from catalog_pipeline.db.base import Base
from catalog_pipeline.db.locks import (
    CATALOG_BACKFILL_LOCK,
    CATALOG_SYNC_LOCK,
    JobLock,
    advisory_key,
)
from catalog_pipeline.db.models.locks.job_lock import JobLockRow


def _make_session() -> Session:
    engine = sa.create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def test_advisory_keys_are_fixed_for_catalog_jobs_and_stable_otherwise() -> None:
    assert advisory_key(CATALOG_SYNC_LOCK) == 88442211
    assert advisory_key(CATALOG_BACKFILL_LOCK) == 88442222
    assert advisory_key("custom-job") == advisory_key("custom-job")
    assert -(2**63) <= advisory_key("custom-job") < 2**63


def test_lock_is_exclusive_until_released() -> None:
    session = _make_session()
    first = JobLock(session, "job", owner="a")
    second = JobLock(session, "job", owner="b")

    assert first.acquire()
    assert first.acquire()
    assert not second.acquire()

    first.release()
    assert second.acquire()
    second.release()
    assert session.execute(sa.select(sa.func.count()).select_from(JobLockRow)).scalar_one() == 0


def test_different_names_do_not_contend() -> None:
    session = _make_session()
    assert JobLock(session, CATALOG_SYNC_LOCK, owner="a").acquire()
    assert JobLock(session, CATALOG_BACKFILL_LOCK, owner="b").acquire()


def test_stale_row_is_taken_over_only_when_configured() -> None:
    session = _make_session()
    session.execute(
        sa.insert(JobLockRow).values(
            name="job", owner="crashed", acquired_at=datetime(2020, 1, 1, tzinfo=UTC)
        )
    )
    session.commit()

    assert not JobLock(session, "job", owner="b").acquire()

    taker = JobLock(session, "job", owner="b", stale_after_s=3600)
    assert taker.acquire()
    owner = session.execute(sa.select(JobLockRow.owner).where(JobLockRow.name == "job"))
    assert owner.scalar_one() == "b"


def test_release_after_failed_statement_still_frees_the_lock() -> None:
    session = _make_session()
    lock = JobLock(session, "job", owner="a")
    assert lock.acquire()

    try:
        session.execute(sa.text("SELECT * FROM no_such_table"))
    except sa.exc.OperationalError:
        pass

    lock.release()
    assert JobLock(session, "job", owner="b").acquire()


def test_lock_as_context_manager() -> None:
    session = _make_session()
    with JobLock(session, "job", owner="a") as acquired:
        assert acquired
        assert not JobLock(session, "job", owner="b").acquire()
    assert JobLock(session, "job", owner="b").acquire()
