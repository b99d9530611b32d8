from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, DateTime, Enum, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from catalog_pipeline.db.base import Base, JsonType
from catalog_pipeline.db.enums import ConflictReasonEnum


class MatchConflict(Base):
    __tablename__ = "match_conflicts"

    id: Mapped[int] = mapped_column(primary_key=True)

    source_native_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payload: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    reason: Mapped[ConflictReasonEnum] = mapped_column(
        Enum(
            ConflictReasonEnum,
            name="conflict_reason_enum",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_match_conflicts_source_native_id_created_at", "source_native_id", "created_at"),
    )
