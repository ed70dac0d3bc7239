"""Data access for the copies ledger and the loan ledger.

Every method opens its own cursor on the connection it was given; no statement
object is shared between calls or threads. Transactions are the caller's
concern: these methods run inside whatever unit of work is currently open.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterator, List, Optional

from lms.errors import CopyRecordNotFound, DuplicateLoan, LedgerInconsistency, LoanNotFound
from lms.models import CopyRecord, LoanKey, LoanRecord, LoanView

logger = logging.getLogger(__name__)


class CopiesLedger:
    """Total and available copy counts per (book, branch)."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def get(self, book_id: int, branch_id: int) -> Optional[CopyRecord]:
        cursor = self.conn.execute(
            """
            SELECT book_id, branch_id, no_of_copies, no_of_available_copies
            FROM book_copies WHERE book_id = ? AND branch_id = ?
            """,
            (book_id, branch_id),
        )
        row = cursor.fetchone()
        return CopyRecord.from_row(row) if row else None

    def get_all(self, branch_id: Optional[int] = None) -> List[CopyRecord]:
        query = "SELECT book_id, branch_id, no_of_copies, no_of_available_copies FROM book_copies"
        params: tuple = ()
        if branch_id is not None:
            query += " WHERE branch_id = ?"
            params = (branch_id,)
        rows = self.conn.execute(query + " ORDER BY book_id, branch_id", params).fetchall()
        return [CopyRecord.from_row(row) for row in rows]

    def create(self, record: CopyRecord) -> CopyRecord:
        self.conn.execute(
            """
            INSERT INTO book_copies (book_id, branch_id, no_of_copies, no_of_available_copies)
            VALUES (?, ?, ?, ?)
            """,
            (record.book_id, record.branch_id, record.no_of_copies, record.no_of_available_copies),
        )
        return record

    def update(self, record: CopyRecord) -> None:
        cursor = self.conn.execute(
            """
            UPDATE book_copies SET no_of_copies = ?, no_of_available_copies = ?
            WHERE book_id = ? AND branch_id = ?
            """,
            (record.no_of_copies, record.no_of_available_copies, record.book_id, record.branch_id),
        )
        if cursor.rowcount == 0:
            raise CopyRecordNotFound(
                f"No copies of book {record.book_id} at branch {record.branch_id}"
            )

    def decrement_available(self, book_id: int, branch_id: int) -> bool:
        """Take one copy off the shelf. Returns False if none was available."""
        cursor = self.conn.execute(
            """
            UPDATE book_copies SET no_of_available_copies = no_of_available_copies - 1
            WHERE book_id = ? AND branch_id = ? AND no_of_available_copies > 0
            """,
            (book_id, branch_id),
        )
        return cursor.rowcount == 1

    def increment_available(self, book_id: int, branch_id: int) -> bool:
        """Put one copy back on the shelf. Returns False if the shelf was already full."""
        cursor = self.conn.execute(
            """
            UPDATE book_copies SET no_of_available_copies = no_of_available_copies + 1
            WHERE book_id = ? AND branch_id = ? AND no_of_available_copies < no_of_copies
            """,
            (book_id, branch_id),
        )
        return cursor.rowcount == 1


# Loans joined with everything a listing needs to show them
_LOAN_VIEW_QUERY = """
    SELECT l.book_id, l.branch_id, l.card_no, l.date_out, l.due_date,
           b.title, b.author_id, b.publisher_id,
           a.author_name,
           p.publisher_name, p.publisher_address, p.publisher_phone,
           br.branch_name, br.branch_address,
           bo.name, bo.address, bo.phone
    FROM book_loans l
    INNER JOIN books b ON b.book_id = l.book_id
    LEFT JOIN authors a ON a.author_id = b.author_id
    LEFT JOIN publishers p ON p.publisher_id = b.publisher_id
    INNER JOIN branches br ON br.branch_id = l.branch_id
    INNER JOIN borrowers bo ON bo.card_no = l.card_no
"""


def _decode(row: sqlite3.Row, factory):
    """Build a record from a stored row; undecodable dates mean the ledger is corrupt."""
    try:
        return factory(row)
    except (TypeError, ValueError) as e:
        key = (row["book_id"], row["branch_id"], row["card_no"])
        raise LedgerInconsistency(f"Stored loan {key} cannot be decoded: {e}") from e


class LoanLedger:
    """Outstanding loans, at most one per (book, branch, borrower)."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def create(self, record: LoanRecord) -> LoanRecord:
        try:
            self.conn.execute(
                """
                INSERT INTO book_loans (book_id, branch_id, card_no, date_out, due_date)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    record.book_id,
                    record.branch_id,
                    record.card_no,
                    record.date_out.isoformat(),
                    record.due_date.isoformat(),
                ),
            )
        except sqlite3.IntegrityError as e:
            # Foreign key failures are storage problems, not duplicates
            if "UNIQUE" not in str(e) and "PRIMARY KEY" not in str(e):
                raise
            raise DuplicateLoan(f"Loan {record.key} already exists") from e
        return record

    def update(self, record: LoanRecord) -> None:
        cursor = self.conn.execute(
            """
            UPDATE book_loans SET date_out = ?, due_date = ?
            WHERE book_id = ? AND branch_id = ? AND card_no = ?
            """,
            (record.date_out.isoformat(), record.due_date.isoformat(), *record.key),
        )
        if cursor.rowcount == 0:
            raise LoanNotFound(f"No loan for {record.key}")

    def delete(self, key: LoanKey) -> None:
        cursor = self.conn.execute(
            "DELETE FROM book_loans WHERE book_id = ? AND branch_id = ? AND card_no = ?",
            key,
        )
        if cursor.rowcount == 0:
            raise LoanNotFound(f"No loan for {key}")

    def get(self, book_id: int, branch_id: int, card_no: int) -> Optional[LoanRecord]:
        """Return the loan for the key, or None. Several rows for one key is an inconsistency."""
        cursor = self.conn.execute(
            """
            SELECT book_id, branch_id, card_no, date_out, due_date
            FROM book_loans WHERE book_id = ? AND branch_id = ? AND card_no = ?
            """,
            (book_id, branch_id, card_no),
        )
        rows = cursor.fetchall()
        if len(rows) > 1:
            raise LedgerInconsistency(
                f"{len(rows)} loans stored for key {(book_id, branch_id, card_no)}"
            )
        return _decode(rows[0], LoanRecord.from_row) if rows else None

    def count_outstanding(self, book_id: int, branch_id: int) -> int:
        cursor = self.conn.execute(
            "SELECT COUNT(*) FROM book_loans WHERE book_id = ? AND branch_id = ?",
            (book_id, branch_id),
        )
        return cursor.fetchone()[0]

    def iter_views(self, card_no: Optional[int] = None, branch_id: Optional[int] = None) -> Iterator[LoanView]:
        """Stream joined loan rows straight off the cursor."""
        clauses = []
        params = []
        if card_no is not None:
            clauses.append("l.card_no = ?")
            params.append(card_no)
        if branch_id is not None:
            clauses.append("l.branch_id = ?")
            params.append(branch_id)
        query = _LOAN_VIEW_QUERY
        if clauses:
            query += " WHERE " + " AND ".join(clauses)

        cursor = self.conn.execute(query, params)
        try:
            for row in cursor:
                yield _decode(row, LoanView.from_row)
        finally:
            cursor.close()

    def check_readable(self) -> None:
        """Compile a read against the loan table; raises sqlite3.Error if the store cannot serve one."""
        self.conn.execute("SELECT book_id FROM book_loans LIMIT 0").fetchall()
