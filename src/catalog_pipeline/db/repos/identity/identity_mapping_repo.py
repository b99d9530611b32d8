from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from catalog_pipeline.db.enums import MatchSourceEnum
from catalog_pipeline.db.models.identity.identity_mapping import IdentityMapping
from catalog_pipeline.db.repos.base import BaseRepository


class IdentityMappingRepository(BaseRepository[IdentityMapping]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=IdentityMapping)

    def by_native_id(self, native_id: int) -> IdentityMapping | None:
        stmt = select(IdentityMapping).where(IdentityMapping.source_native_id == native_id)
        # Bypass the identity map: another writer may have upserted since.
        stmt = stmt.execution_options(populate_existing=True)
        return self.session.execute(stmt).scalars().first()

    def by_target_id(self, target_id: int) -> IdentityMapping | None:
        return self.first_where(IdentityMapping.target_id == target_id)

    def mapped_native_ids(self, native_ids: Iterable[int]) -> set[int]:
        ids = list(native_ids)
        if not ids:
            return set()
        stmt = select(IdentityMapping.source_native_id).where(
            IdentityMapping.source_native_id.in_(ids)
        )
        return set(self.session.execute(stmt).scalars().all())

    def upsert_mapping(
        self,
        *,
        native_id: int,
        target_id: int,
        source: MatchSourceEnum,
        confidence: float,
        metadata: dict[str, Any] | None,
    ) -> IdentityMapping:
        """Last writer wins."""

        self.upsert(
            {
                "source_native_id": native_id,
                "target_id": target_id,
                "source": source,
                "confidence": confidence,
                "match_metadata": metadata,
            },
            index_elements=["source_native_id"],
            update_columns=["target_id", "source", "confidence", "match_metadata"],
            extra_set={"updated_at": func.now()},
        )
        mapping = self.by_native_id(native_id)
        assert mapping is not None
        return mapping
