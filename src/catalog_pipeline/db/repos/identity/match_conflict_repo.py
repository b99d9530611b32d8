from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from catalog_pipeline.db.enums import ConflictReasonEnum
from catalog_pipeline.db.models.identity.match_conflict import MatchConflict
from catalog_pipeline.db.repos.base import BaseRepository


class MatchConflictRepository(BaseRepository[MatchConflict]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=MatchConflict)

    def append(
        self, *, native_id: int, payload: dict[str, Any], reason: ConflictReasonEnum
    ) -> MatchConflict:
        return self.add(MatchConflict(source_native_id=native_id, payload=payload, reason=reason))
