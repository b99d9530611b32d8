from catalog_pipeline.db.models.catalog.catalog_entity import CatalogEntity
from catalog_pipeline.db.models.catalog.sync_checkpoint import SyncCheckpoint
from catalog_pipeline.db.models.identity.identity_mapping import IdentityMapping
from catalog_pipeline.db.models.identity.match_conflict import MatchConflict
from catalog_pipeline.db.models.locks.job_lock import JobLockRow
from catalog_pipeline.db.models.trending.trending_snapshot import TrendingSnapshot

__all__ = [
    "CatalogEntity",
    "IdentityMapping",
    "JobLockRow",
    "MatchConflict",
    "SyncCheckpoint",
    "TrendingSnapshot",
]
