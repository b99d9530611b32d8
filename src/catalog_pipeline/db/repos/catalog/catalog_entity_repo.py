from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from catalog_pipeline.db.base import as_utc
from catalog_pipeline.db.enums import CatalogEntityStatusEnum
from catalog_pipeline.db.models.catalog.catalog_entity import CatalogEntity
from catalog_pipeline.db.repos.base import BaseRepository

# Fields carried by a catalog list page; all overwritten on conflict.
LISTING_COLUMNS: tuple[str, ...] = (
    "slug",
    "name",
    "name_original",
    "released",
    "background_image",
    "suggestions_count",
    "platforms",
    "developers",
    "publishers",
    "genres",
    "tags",
    "esrb_rating",
    "website",
    "updated_at",
)

# Fields only the per-game detail endpoint returns.
DETAIL_COLUMNS: tuple[str, ...] = (
    "description",
    "screenshots_count",
    "achievements_count",
    "game_series_count",
    "additions_count",
    "parents_count",
    "alternative_names",
)


class CatalogEntityRepository(BaseRepository[CatalogEntity]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=CatalogEntity)

    def upsert_listing(self, values: Mapping[str, Any]) -> None:
        self.upsert(
            values,
            index_elements=["external_id"],
            update_columns=[c for c in LISTING_COLUMNS if c in values],
        )

    def insert_if_missing(self, values: Mapping[str, Any]) -> bool:
        return self.insert_ignore(values, index_elements=["external_id"])

    def exists(self, external_id: int) -> bool:
        return self.exists_where(CatalogEntity.external_id == external_id)

    def max_updated_at(self) -> datetime | None:
        stmt = select(func.max(CatalogEntity.updated_at)).where(
            CatalogEntity.updated_at.is_not(None)
        )
        value = self.session.execute(stmt).scalar_one_or_none()
        return None if value is None else as_utc(value)

    def list_pending_ids(self) -> list[int]:
        stmt = (
            select(CatalogEntity.external_id)
            .where(CatalogEntity.status == CatalogEntityStatusEnum.PENDING)
            .order_by(CatalogEntity.updated_at.desc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def apply_detail(self, external_id: int, values: Mapping[str, Any]) -> None:
        """Fill detail-only columns and mark the row complete."""

        changes = {k: v for k, v in values.items() if k in DETAIL_COLUMNS}
        stmt = (
            update(CatalogEntity)
            .where(CatalogEntity.external_id == external_id)
            .values(**changes, status=CatalogEntityStatusEnum.COMPLETE)
            .execution_options(synchronize_session=False)
        )
        self.session.execute(stmt)
