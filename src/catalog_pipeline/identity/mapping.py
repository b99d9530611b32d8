from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from catalog_pipeline.db.enums import MatchSourceEnum
from catalog_pipeline.db.models.identity.identity_mapping import IdentityMapping
from catalog_pipeline.db.repos.identity.identity_mapping_repo import IdentityMappingRepository


def assign_mapping(
    session: Session,
    *,
    native_id: int,
    target_id: int,
    source: MatchSourceEnum = MatchSourceEnum.MANUAL,
    confidence: float = 1.0,
    metadata: dict[str, Any] | None = None,
) -> IdentityMapping:
    """Set (or overwrite) the mapping for `native_id`; defaults to a manual assignment."""

    if not 0.0 <= confidence <= 1.0:
        raise ValueError(f"confidence must be within [0, 1], got {confidence}")

    mapping = IdentityMappingRepository(session).upsert_mapping(
        native_id=native_id,
        target_id=target_id,
        source=source,
        confidence=confidence,
        metadata=metadata,
    )
    session.commit()
    return mapping


def find_mapping(
    session: Session,
    *,
    native_id: int | None = None,
    target_id: int | None = None,
) -> IdentityMapping | None:
    """Look a mapping up by either side; the native id is tried first."""

    if native_id is None and target_id is None:
        raise ValueError("find_mapping requires native_id or target_id")

    repo = IdentityMappingRepository(session)
    if native_id is not None:
        mapping = repo.by_native_id(native_id)
        if mapping is not None:
            return mapping
    if target_id is not None:
        return repo.by_target_id(target_id)
    return None
