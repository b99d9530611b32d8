from __future__ import annotations

from enum import StrEnum


class CatalogEntityStatusEnum(StrEnum):
    # Listed by a sync page but detail fields not fetched yet.
    PENDING = "pending"
    COMPLETE = "complete"


class MatchSourceEnum(StrEnum):
    MANUAL = "manual"
    AUTO = "auto"


class ConflictReasonEnum(StrEnum):
    NO_GOOD_CANDIDATE = "no-good-candidate"
    EXCEPTION = "exception"


class JobStatusEnum(StrEnum):
    COMPLETED = "completed"
    INTERRUPTED = "interrupted"
    STOPPED = "stopped"
    SKIPPED = "skipped"
    INSERTED = "inserted"
    EMPTY = "empty"
    FRESH = "fresh"
