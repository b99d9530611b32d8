from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from catalog_pipeline.db.base import as_utc
from catalog_pipeline.db.models.catalog.catalog_entity import CatalogEntity
from catalog_pipeline.db.models.catalog.sync_checkpoint import SYNC_CHECKPOINT_ID, SyncCheckpoint
from catalog_pipeline.db.repos.base import BaseRepository


class SyncCheckpointRepository(BaseRepository[SyncCheckpoint]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=SyncCheckpoint)

    def ensure(self, initial: datetime) -> None:
        self.insert_ignore(
            {"id": SYNC_CHECKPOINT_ID, "last_synced_at": as_utc(initial)},
            index_elements=["id"],
        )

    def last_synced_at(self) -> datetime | None:
        stmt = select(SyncCheckpoint.last_synced_at).where(SyncCheckpoint.id == SYNC_CHECKPOINT_ID)
        value = self.session.execute(stmt).scalar_one_or_none()
        return None if value is None else as_utc(value)

    def checkpoint_from_entities(self) -> datetime | None:
        """
        Set the checkpoint to the newest upstream timestamp actually stored.

        Computed inside the UPDATE so it can never run ahead of persisted rows.
        With no timestamped rows yet the current value is kept.
        """

        newest = (
            select(func.max(CatalogEntity.updated_at))
            .where(CatalogEntity.updated_at.is_not(None))
            .scalar_subquery()
        )
        stmt = (
            update(SyncCheckpoint)
            .where(SyncCheckpoint.id == SYNC_CHECKPOINT_ID)
            .values(last_synced_at=func.coalesce(newest, SyncCheckpoint.last_synced_at))
            .execution_options(synchronize_session=False)
        )
        self.session.execute(stmt)
        return self.last_synced_at()
