from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Float, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from catalog_pipeline.db.base import Base


class TrendingSnapshot(Base):
    __tablename__ = "trending_snapshot"

    # Time-ordered id: lexical order is creation order.
    batch_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    # SteamSpy app id.
    native_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    snapshot_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)

    score_rank: Mapped[float | None] = mapped_column(Float, nullable=True)
    positive: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    negative: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    userscore: Mapped[float | None] = mapped_column(Float, nullable=True)
    # Ownership estimate as a range, e.g. "1,000,000 .. 2,000,000".
    owners: Mapped[str | None] = mapped_column(Text, nullable=True)
    average_forever: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    average_2weeks: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    median_forever: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    median_2weeks: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    ccu: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    __table_args__ = (
        Index("ix_trending_snapshot_snapshot_time", "snapshot_time"),
        Index("ix_trending_snapshot_native_id_snapshot_time", "native_id", "snapshot_time"),
    )
