from catalog_pipeline.db.base import Base
from catalog_pipeline.db.engine import (
    Database,
    DatabaseConfig,
    create_db_engine,
    create_session_factory,
)

__all__ = [
    "Base",
    "Database",
    "DatabaseConfig",
    "create_db_engine",
    "create_session_factory",
]
