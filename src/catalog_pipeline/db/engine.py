from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker


@dataclass(frozen=True)
class DatabaseConfig:
    database_url: str
    echo: bool = False


def create_db_engine(cfg: DatabaseConfig) -> Engine:
    url = cfg.database_url.replace("postgres://", "postgresql://", 1)
    return create_engine(url, echo=cfg.echo, pool_pre_ping=True, pool_recycle=1800)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


class Database:
    """
    Process-wide store handle.

    Built once at startup and passed to whatever runs jobs; nothing looks it up
    globally. Sessions handed out by `pinned_session` stay on a single pooled
    connection for their whole life, so connection-scoped advisory locks taken
    through them survive intermediate commits and die with the connection.
    """

    def __init__(self, cfg: DatabaseConfig) -> None:
        self.config = cfg
        self.engine = create_db_engine(cfg)
        self._session_factory = create_session_factory(self.engine)

    @contextmanager
    def pinned_session(self) -> Iterator[Session]:
        """Yield a session bound to one connection; roll back on error, always close."""

        with self.engine.connect() as connection:
            session = self._session_factory(bind=connection)
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def dispose(self) -> None:
        self.engine.dispose()
