from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import Insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from catalog_pipeline.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    def __init__(self, session: Session, model: type[ModelT]) -> None:
        self.session = session
        self.model = model

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    def add(self, obj: ModelT, *, flush: bool = True) -> ModelT:
        self.session.add(obj)
        if flush:
            self.session.flush()
        return obj

    def get(self, id_: Any) -> ModelT | None:
        return self.session.get(self.model, id_)

    def first_where(self, *predicates: ColumnElement[bool]) -> ModelT | None:
        stmt = select(self.model).where(*predicates).limit(1)
        return self.session.execute(stmt).scalars().first()

    def exists_where(self, *predicates: ColumnElement[bool]) -> bool:
        stmt = select(1).select_from(self.model).where(*predicates).limit(1)
        return self.session.execute(stmt).first() is not None

    def insert_stmt(self) -> Insert:
        """Dialect-specific INSERT supporting ON CONFLICT clauses."""

        if self.dialect_name == "postgresql":
            return postgresql.insert(self.model)
        if self.dialect_name == "sqlite":
            return sqlite.insert(self.model)
        raise NotImplementedError(f"Upserts are not supported on dialect {self.dialect_name!r}")

    def upsert(
        self,
        values: Mapping[str, Any],
        *,
        index_elements: Sequence[str],
        update_columns: Sequence[str],
        extra_set: Mapping[str, Any] | None = None,
    ) -> None:
        """Single-statement insert-or-overwrite keyed on `index_elements`."""

        stmt = self.insert_stmt().values(**values)
        set_: dict[str, Any] = {c: stmt.excluded[c] for c in update_columns}
        if extra_set:
            set_.update(extra_set)
        stmt = stmt.on_conflict_do_update(index_elements=list(index_elements), set_=set_)
        self.session.execute(stmt)

    def insert_ignore(self, values: Mapping[str, Any], *, index_elements: Sequence[str]) -> bool:
        """Insert unless the key exists; returns whether a row was written."""

        stmt = self.insert_stmt().values(**values)
        stmt = stmt.on_conflict_do_nothing(index_elements=list(index_elements))
        result = self.session.execute(stmt)
        return bool(result.rowcount)

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
