from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session

from catalog_pipeline.core.config import settings
from catalog_pipeline.db import Database, DatabaseConfig


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_database() -> Database:
    return Database(DatabaseConfig(database_url=settings.database_url, echo=settings.db_echo))


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Context-managed DB session for CLI commands.
    Pinned to one connection, rolls back on exception, disposes the engine on exit.
    """
    db = build_database()
    try:
        with db.pinned_session() as session:
            yield session
    finally:
        db.dispose()
