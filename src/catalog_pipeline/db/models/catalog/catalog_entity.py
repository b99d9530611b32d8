from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import BigInteger, Date, DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from catalog_pipeline.db.base import Base
from catalog_pipeline.db.enums import CatalogEntityStatusEnum


class CatalogEntity(Base):
    __tablename__ = "catalog_entities"

    # Upstream RAWG id; stable and assigned by the provider.
    external_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    slug: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name_original: Mapped[str | None] = mapped_column(String(255), nullable=True)
    released: Mapped[date | None] = mapped_column(Date, nullable=True)
    background_image: Mapped[str | None] = mapped_column(Text, nullable=True)
    suggestions_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Multi-valued fields, stored as JSON text (see `to_json_text`).
    platforms: Mapped[str | None] = mapped_column(Text, nullable=True)
    developers: Mapped[str | None] = mapped_column(Text, nullable=True)
    publishers: Mapped[str | None] = mapped_column(Text, nullable=True)
    genres: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[str | None] = mapped_column(Text, nullable=True)
    esrb_rating: Mapped[str | None] = mapped_column(Text, nullable=True)
    alternative_names: Mapped[str | None] = mapped_column(Text, nullable=True)

    website: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Detail-only counts, filled by backfill.
    screenshots_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    achievements_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    game_series_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    additions_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    parents_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[CatalogEntityStatusEnum] = mapped_column(
        Enum(
            CatalogEntityStatusEnum,
            name="catalog_entity_status_enum",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=CatalogEntityStatusEnum.PENDING,
        server_default=CatalogEntityStatusEnum.PENDING.value,
    )

    # Upstream `updated` timestamp; drives the sync checkpoint.
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_catalog_entities_status_updated_at", "status", "updated_at"),
        Index("ix_catalog_entities_updated_at", "updated_at"),
    )
