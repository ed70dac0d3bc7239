from __future__ import annotations

import logging
import sqlite3
from typing import List, Optional

from lms.catalog import Catalog
from lms.engine import BorrowingEngine, LoanListing
from lms.errors import CopiesInUse, InconsistencyError, LedgerInconsistency, LoanError, StorageFailure
from lms.ledgers import CopiesLedger, LoanLedger
from lms.models import Branch, CopyRecord
from lms.result import Err, Ok, Result
from lms.services.base import Role
from lms.transaction import SqliteTransaction, atomic

logger = logging.getLogger(__name__)


class LibrarianService:
    """Branch details and copy inventory for the branch a librarian works at."""

    role = Role.LIBRARIAN

    def __init__(self, connection: sqlite3.Connection, branch_id: int, engine: Optional[BorrowingEngine] = None) -> None:
        self.branch_id = branch_id
        self.catalog = Catalog(connection)
        self.copies_ledger = CopiesLedger(connection)
        self.loan_ledger = LoanLedger(connection)
        self.transaction = SqliteTransaction(connection)
        self.engine = engine or BorrowingEngine(connection, transaction=self.transaction)

    def branch(self) -> Branch:
        return self.catalog.require_branch(self.branch_id)

    def update_branch(self, name: Optional[str] = None, address: Optional[str] = None) -> Branch:
        """Rename and/or move the branch. Blank values keep the current ones."""
        current = self.branch()
        if not (name and name.strip()) and not (address and address.strip()):
            raise ValueError("Nothing to update. Provide a name and/or an address.")
        updated = Branch(
            current.id,
            name.strip() if name and name.strip() else current.name,
            address.strip() if address and address.strip() else current.address,
        )
        return self.catalog.update_branch(updated)

    def copies(self) -> List[CopyRecord]:
        return self.copies_ledger.get_all(branch_id=self.branch_id)

    def set_copies(self, book_id: int, total: int) -> Result:
        """Set how many copies of a book the branch owns.

        The available count moves by the same amount as the total, so copies
        on loan stay on loan. A total below the number on loan is refused.
        """
        if total < 0:
            raise ValueError("Number of copies cannot be negative.")
        self.catalog.require_book(book_id)
        self.branch()

        def work() -> CopyRecord:
            current = self.copies_ledger.get(book_id, self.branch_id)
            if current is None:
                on_loan = self.loan_ledger.count_outstanding(book_id, self.branch_id)
                if on_loan:
                    raise LedgerInconsistency(
                        f"{on_loan} loans of book {book_id} at branch {self.branch_id} have no copies record"
                    )
                return self.copies_ledger.create(CopyRecord(book_id, self.branch_id, total, total))
            if total < current.on_loan:
                raise CopiesInUse(
                    f"{current.on_loan} copies of book {book_id} are on loan; cannot set total to {total}"
                )
            record = CopyRecord(book_id, self.branch_id, total, current.no_of_available_copies + total - current.no_of_copies)
            self.copies_ledger.update(record)
            return record

        try:
            with atomic(self.transaction):
                record = work()
        except InconsistencyError as e:
            logger.critical("set_copies found inconsistent ledgers | book=%s branch=%s | %s", book_id, self.branch_id, e)
            return Err(e)
        except LoanError as e:
            logger.info("set_copies rejected | book=%s branch=%s | %s", book_id, self.branch_id, e)
            return Err(e)
        except sqlite3.Error as e:
            logger.error("set_copies failed in storage | book=%s branch=%s | %s", book_id, self.branch_id, e)
            failure = StorageFailure(f"set_copies failed: {e}")
            failure.__cause__ = e
            return Err(failure)
        logger.info("Copies set | book=%s branch=%s total=%s", book_id, self.branch_id, total)
        return Ok(record)

    def loans(self) -> LoanListing:
        return self.engine.list_all(branch_id=self.branch_id).unwrap()
