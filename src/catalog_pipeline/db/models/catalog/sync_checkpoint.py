from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from catalog_pipeline.db.base import Base

SYNC_CHECKPOINT_ID = 1


class SyncCheckpoint(Base):
    """Singleton high-water mark of synced upstream `updated` timestamps."""

    __tablename__ = "sync_checkpoint"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (CheckConstraint("id = 1", name="ck_sync_checkpoint_singleton"),)
