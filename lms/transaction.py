"""Transaction boundary used by the borrowing engine.

The engine never locks anything in-process. Every checkout, return and
renewal runs between one ``begin`` and one ``commit``/``rollback`` against the
store, and the store's write lock is the only synchronization point.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Protocol

logger = logging.getLogger(__name__)


class TransactionBoundary(Protocol):
    def begin(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class SqliteTransaction:
    """Begin/commit/rollback on a connection opened with ``isolation_level=None``.

    ``BEGIN IMMEDIATE`` takes the database write lock before the first read, so
    the availability check and the decrement of a checkout cannot interleave
    with another connection's checkout. Waiting for the lock is bounded by the
    connection's busy timeout.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def begin(self) -> None:
        self.conn.execute("BEGIN IMMEDIATE")

    def commit(self) -> None:
        self.conn.execute("COMMIT")

    def rollback(self) -> None:
        if self.conn.in_transaction:
            self.conn.execute("ROLLBACK")


@contextmanager
def atomic(boundary: TransactionBoundary) -> Iterator[None]:
    """Run the body as one unit of work: commit on success, roll back on any error."""
    boundary.begin()
    try:
        yield
    except BaseException:
        boundary.rollback()
        raise
    try:
        boundary.commit()
    except BaseException:
        logger.warning("Commit failed, rolling back")
        boundary.rollback()
        raise
