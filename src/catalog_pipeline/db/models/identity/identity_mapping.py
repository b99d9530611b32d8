from __future__ import annotations

from typing import Any

from sqlalchemy import BigInteger, Enum, Float, Index
from sqlalchemy.orm import Mapped, mapped_column

from catalog_pipeline.db.base import Base, JsonType, TimestampMixin
from catalog_pipeline.db.enums import MatchSourceEnum


class IdentityMapping(Base, TimestampMixin):
    """SteamSpy app id -> RAWG game id."""

    __tablename__ = "identity_mapping"

    source_native_id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=False
    )
    target_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    source: Mapped[MatchSourceEnum] = mapped_column(
        Enum(
            MatchSourceEnum,
            name="match_source_enum",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=MatchSourceEnum.MANUAL,
    )
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)

    # `metadata` is reserved on declarative classes.
    match_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JsonType, key="match_metadata", nullable=True
    )

    __table_args__ = (Index("ix_identity_mapping_target_id", "target_id"),)
