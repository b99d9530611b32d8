from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from sqlalchemy.orm import Session

from catalog_pipeline.core.config import settings
from catalog_pipeline.core.text import name_similarity
from catalog_pipeline.db.enums import CatalogEntityStatusEnum, ConflictReasonEnum, MatchSourceEnum
from catalog_pipeline.db.models.identity.identity_mapping import IdentityMapping
from catalog_pipeline.db.repos.catalog.catalog_entity_repo import CatalogEntityRepository
from catalog_pipeline.db.repos.identity.identity_mapping_repo import IdentityMappingRepository
from catalog_pipeline.db.repos.identity.match_conflict_repo import MatchConflictRepository
from catalog_pipeline.db.repos.trending.trending_snapshot_repo import TrendingSnapshotRepository
from catalog_pipeline.ingestion.providers.base.client import BaseHttpClient
from catalog_pipeline.ingestion.providers.base.errors import ProviderError, ProviderNotFound
from catalog_pipeline.ingestion.providers.rawg.client import RawgClient
from catalog_pipeline.ingestion.providers.rawg.ingest.catalog_sync import make_rawg_client
from catalog_pipeline.ingestion.providers.rawg.parser import parse_full_entity

logger = logging.getLogger(__name__)

ApiItem = dict[str, Any]


class ResolveStatus(StrEnum):
    CACHED = "cached"
    MATCHED = "matched"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class MatchCandidate:
    target_id: int
    score: float
    candidate: ApiItem


@dataclass(frozen=True)
class ResolveIdentityResult:
    native_id: int
    status: ResolveStatus
    target_id: int | None = None
    confidence: float | None = None
    source: MatchSourceEnum | None = None


@dataclass(frozen=True)
class ResolveUnmappedBatchResult:
    batch_id: str | None
    processed: int
    matched: int
    skipped: int
    unresolved: int


def auto_match(
    client: RawgClient,
    name: str,
    *,
    threshold: float,
    page_size: int | None = None,
) -> MatchCandidate | None:
    """Best RAWG search hit for `name`, or None when nothing clears `threshold`.

    Ties keep the first candidate in upstream relevance order.
    """

    page_size = page_size or settings.identity_search_page_size
    candidates = client.search_games(name, page_size=page_size)

    best: MatchCandidate | None = None
    for c in candidates:
        target_id = c.get("id")
        if isinstance(target_id, bool) or not isinstance(target_id, int):
            continue
        score = name_similarity(name, c.get("name") or c.get("slug") or "")
        if best is None or score > best.score:
            best = MatchCandidate(target_id=target_id, score=score, candidate=c)

    if best is None or best.score < threshold:
        return None
    return best


def ensure_catalog_entity(session: Session, client: RawgClient, target_id: int) -> bool:
    """Make sure the mapped RAWG game has a catalog row; True if one was created.

    Upstream absence or failure is ignored: the mapping stands on its own and
    the catalog sync may pick the game up later.
    """

    entities = CatalogEntityRepository(session)
    if entities.exists(target_id):
        return False
    try:
        detail = client.get_game(target_id)
        values = parse_full_entity(detail)
    except ProviderNotFound:
        logger.info("RAWG game %s not found upstream; no catalog row created", target_id)
        return False
    except ProviderError as e:
        logger.warning("Could not fetch RAWG game %s: %s", target_id, e)
        return False

    # updated_at stays NULL; only rows written by the sync feed the checkpoint.
    values.pop("updated_at", None)
    created = entities.insert_if_missing({**values, "status": CatalogEntityStatusEnum.COMPLETE})
    session.commit()
    return created


def _mapping_result(mapping: IdentityMapping, status: ResolveStatus) -> ResolveIdentityResult:
    return ResolveIdentityResult(
        native_id=mapping.source_native_id,
        status=status,
        target_id=mapping.target_id,
        confidence=mapping.confidence,
        source=mapping.source,
    )


def _record_match(
    session: Session,
    client: RawgClient,
    *,
    native_id: int,
    name: str,
    match: MatchCandidate | None,
    error: BaseException | None,
) -> ResolveIdentityResult:
    """Persist the outcome of one search: an `auto` mapping or a conflict row."""

    if match is None:
        if error is not None:
            payload: dict[str, Any] = {"name": name, "err": str(error)}
            reason = ConflictReasonEnum.EXCEPTION
        else:
            payload = {"name": name}
            reason = ConflictReasonEnum.NO_GOOD_CANDIDATE
        MatchConflictRepository(session).append(native_id=native_id, payload=payload, reason=reason)
        session.commit()
        logger.info("No mapping for %s (%r): %s", native_id, name, reason)
        return ResolveIdentityResult(native_id=native_id, status=ResolveStatus.UNRESOLVED)

    mapping = IdentityMappingRepository(session).upsert_mapping(
        native_id=native_id,
        target_id=match.target_id,
        source=MatchSourceEnum.AUTO,
        confidence=match.score,
        metadata=match.candidate,
    )
    session.commit()
    ensure_catalog_entity(session, client, match.target_id)
    logger.info(
        "Mapped %s (%r) -> RAWG %s (confidence=%.2f)", native_id, name, match.target_id, match.score
    )
    return _mapping_result(mapping, ResolveStatus.MATCHED)


def _safe_auto_match(
    client: RawgClient, name: str, threshold: float
) -> tuple[MatchCandidate | None, BaseException | None]:
    try:
        return auto_match(client, name, threshold=threshold), None
    except Exception as e:
        return None, e


def resolve_identity(
    session: Session,
    *,
    native_id: int,
    name: str,
    client: RawgClient | None = None,
    threshold: float | None = None,
) -> ResolveIdentityResult:
    """Map a SteamSpy app id to a RAWG game id.

    An existing mapping is returned as-is without touching the network. On a
    miss the RAWG search results are scored against `name`; failures are logged
    to `match_conflicts` and never cached, so the next call searches again.
    """

    existing = IdentityMappingRepository(session).by_native_id(native_id)
    if existing is not None:
        return _mapping_result(existing, ResolveStatus.CACHED)

    if threshold is None:
        threshold = settings.identity_auto_match_threshold

    created_http: BaseHttpClient | None = None
    if client is None:
        client, created_http = make_rawg_client()
    try:
        match, error = _safe_auto_match(client, name, threshold)
        return _record_match(
            session, client, native_id=native_id, name=name, match=match, error=error
        )
    finally:
        if created_http is not None:
            created_http.close()


def _chunks(items: Sequence[tuple[int, str]], size: int) -> list[Sequence[tuple[int, str]]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


def resolve_unmapped_batch(
    session: Session,
    *,
    client: RawgClient | None = None,
    limit: int | None = None,
    threshold: float | None = None,
    batch_size: int | None = None,
    pause_s: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ResolveUnmappedBatchResult:
    """Auto-match every unmapped app id of the latest trending batch.

    Falls back to the rows of the latest snapshot time when no batch id is
    recorded. Searches run `batch_size` at a time in parallel with a pause
    between groups; all database writes stay on the calling thread.
    """

    limit = settings.identity_batch_limit if limit is None else limit
    threshold = settings.identity_auto_match_threshold if threshold is None else threshold
    batch_size = max(1, settings.identity_batch_size if batch_size is None else batch_size)
    pause_s = settings.identity_batch_pause_s if pause_s is None else pause_s

    trending = TrendingSnapshotRepository(session)
    batch_id = trending.latest_batch_id()
    if batch_id is not None:
        rows = trending.entries_for_batch(batch_id, limit=limit)
    else:
        latest = trending.latest_snapshot_time()
        if latest is None:
            return ResolveUnmappedBatchResult(
                batch_id=None, processed=0, matched=0, skipped=0, unresolved=0
            )
        rows = trending.entries_at(latest, limit=limit)

    mapped = IdentityMappingRepository(session).mapped_native_ids(r[0] for r in rows)
    todo = [(native_id, name or "") for native_id, name in rows if native_id not in mapped]
    skipped = len(rows) - len(todo)

    created_http: BaseHttpClient | None = None
    if client is None:
        client, created_http = make_rawg_client()

    matched = 0
    unresolved = 0
    try:
        with ThreadPoolExecutor(max_workers=batch_size) as pool:
            groups = _chunks(todo, batch_size)
            for index, group in enumerate(groups):
                outcomes = list(
                    pool.map(lambda item: _safe_auto_match(client, item[1], threshold), group)
                )
                for (native_id, name), (match, error) in zip(group, outcomes):
                    result = _record_match(
                        session, client, native_id=native_id, name=name, match=match, error=error
                    )
                    if result.status == ResolveStatus.MATCHED:
                        matched += 1
                    else:
                        unresolved += 1
                if pause_s > 0 and index < len(groups) - 1:
                    sleep(pause_s)
    finally:
        if created_http is not None:
            created_http.close()

    logger.info(
        "Resolved unmapped batch %s: processed=%s matched=%s skipped=%s unresolved=%s",
        batch_id,
        len(rows),
        matched,
        skipped,
        unresolved,
    )
    return ResolveUnmappedBatchResult(
        batch_id=batch_id,
        processed=len(rows),
        matched=matched,
        skipped=skipped,
        unresolved=unresolved,
    )
