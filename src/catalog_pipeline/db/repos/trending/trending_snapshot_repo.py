from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, insert, select
from sqlalchemy.orm import Session

from catalog_pipeline.db.base import as_utc
from catalog_pipeline.db.models.trending.trending_snapshot import TrendingSnapshot
from catalog_pipeline.db.repos.base import BaseRepository


class TrendingSnapshotRepository(BaseRepository[TrendingSnapshot]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=TrendingSnapshot)

    def exists_between(self, start: datetime, end: datetime) -> bool:
        """Any row with `start <= snapshot_time < end`."""

        return self.exists_where(
            TrendingSnapshot.snapshot_time >= as_utc(start),
            TrendingSnapshot.snapshot_time < as_utc(end),
        )

    def insert_rows(self, rows: Sequence[Mapping[str, Any]]) -> int:
        """One multi-row INSERT statement."""

        if not rows:
            return 0
        self.session.execute(insert(TrendingSnapshot).values([dict(r) for r in rows]))
        return len(rows)

    def trim_to_latest_batches(self, keep: int) -> int:
        """Delete every row whose batch is older than the newest `keep` batches."""

        latest = (
            select(TrendingSnapshot.batch_id)
            .distinct()
            .order_by(TrendingSnapshot.batch_id.desc())
            .limit(keep)
            .subquery()
        )
        cutoff = select(func.min(latest.c.batch_id)).scalar_subquery()
        stmt = (
            delete(TrendingSnapshot)
            .where(TrendingSnapshot.batch_id < cutoff)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return int(result.rowcount or 0)

    def latest_batch_id(self) -> str | None:
        stmt = (
            select(TrendingSnapshot.batch_id)
            .group_by(TrendingSnapshot.batch_id)
            .order_by(func.max(TrendingSnapshot.snapshot_time).desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def latest_snapshot_time(self) -> datetime | None:
        stmt = select(func.max(TrendingSnapshot.snapshot_time))
        return self.session.execute(stmt).scalar_one_or_none()

    def entries_for_batch(self, batch_id: str, *, limit: int) -> list[tuple[int, str | None]]:
        stmt = (
            select(TrendingSnapshot.native_id, TrendingSnapshot.name)
            .where(TrendingSnapshot.batch_id == batch_id)
            .order_by(TrendingSnapshot.native_id)
            .limit(limit)
        )
        return [(int(r.native_id), r.name) for r in self.session.execute(stmt)]

    def entries_at(self, snapshot_time: datetime, *, limit: int) -> list[tuple[int, str | None]]:
        stmt = (
            select(TrendingSnapshot.native_id, TrendingSnapshot.name)
            .where(TrendingSnapshot.snapshot_time == snapshot_time)
            .order_by(TrendingSnapshot.native_id)
            .limit(limit)
        )
        return [(int(r.native_id), r.name) for r in self.session.execute(stmt)]

    def batch_ids(self) -> list[str]:
        stmt = select(TrendingSnapshot.batch_id).distinct().order_by(TrendingSnapshot.batch_id)
        return list(self.session.execute(stmt).scalars().all())
