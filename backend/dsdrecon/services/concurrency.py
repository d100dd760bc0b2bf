# Overview: Service-layer concurrency helpers; row locks, retry, and atomic upserts.

from __future__ import annotations

import time
from typing import Any, Callable

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


# Dialects with a native INSERT ... ON CONFLICT DO UPDATE ... RETURNING
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    SQLite serializes writers on the database file instead.
    """
    return query.with_for_update()


def lock_row(model, ident):
    """
    Lock one row by primary key for the rest of the transaction; returns it or None.

    SQLite ignores FOR UPDATE and its driver opens the transaction lazily, so
    there a no-op UPDATE of the row takes the database write lock before the
    caller reads anything. A second writer waits on the busy timeout until
    the first commits.
    """
    table = model.__table__
    if db.session.get_bind().dialect.name == "sqlite":
        # Assign onupdate columns to themselves so the no-op leaves them alone
        noop = {c.name: c for c in table.c if c.primary_key or c.onupdate is not None}
        db.session.execute(sa.update(table).where(table.c.id == ident).values(noop))
    return lock_for_update(db.session.query(model).filter(model.id == ident)).first()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). The session is rolled back before each
    retry, so `func` must be a complete unit of work.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


class _LiteralExcluded:
    """Stands in for the EXCLUDED pseudo-row when emulating an upsert."""

    def __init__(self, table: sa.Table, values: dict[str, Any]):
        self._table = table
        self._values = values

    def __getattr__(self, name: str):
        return sa.literal(self._values.get(name), type_=self._table.c[name].type)


def upsert(
    model,
    values: dict[str, Any],
    *,
    conflict_columns: list[str],
    build_update: Callable[[Any], dict[str, Any]],
) -> int:
    """
    Atomic insert-or-update keyed by a unique constraint; returns the row id.

    `build_update(excluded)` returns the SET clause for the conflict case;
    `excluded` exposes the would-be-inserted values as column expressions.

    WHY: read-then-insert lets two concurrent requests both miss and both
    insert. ON CONFLICT resolves the race inside the database.

    Dialects without ON CONFLICT fall back to a SAVEPOINT insert followed by
    an UPDATE of the conflicting row.
    """
    table = model.__table__
    db.session.flush()

    dialect = db.session.get_bind().dialect.name
    insert_factory = _UPSERT_INSERTS.get(dialect)

    if insert_factory is not None:
        stmt = insert_factory(table).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c[name] for name in conflict_columns],
            set_=build_update(stmt.excluded),
        ).returning(table.c.id)
        return db.session.execute(stmt).scalar_one()

    where = [table.c[name] == values[name] for name in conflict_columns]
    try:
        with db.session.begin_nested():
            result = db.session.execute(sa.insert(table).values(**values))
        return result.inserted_primary_key[0]
    except IntegrityError:
        db.session.execute(
            sa.update(table).where(*where).values(build_update(_LiteralExcluded(table, values)))
        )
        return db.session.execute(sa.select(table.c.id).where(*where)).scalar_one()
