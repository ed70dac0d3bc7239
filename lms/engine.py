"""Borrowing transaction engine.

Checkout, return and renewal touch the copies ledger and the loan ledger
together. Each one reads the current state, validates it and writes both
ledgers inside a single unit of work, so a loan never exists without its
inventory decrement (or the other way round), even with several patrons and
librarians working against the same database.

Operations return :class:`~lms.result.Ok` or :class:`~lms.result.Err`; storage
exceptions never escape.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime, timedelta
from typing import Callable, Iterator, Optional

from lms.config import settings
from lms.errors import (
    CopyRecordNotFound,
    DuplicateLoan,
    InconsistencyError,
    InvalidDueDate,
    InvalidRenewalDate,
    LedgerInconsistency,
    LoanError,
    LoanNotFound,
    NoCopiesAvailable,
    StorageFailure,
)
from lms.ledgers import CopiesLedger, LoanLedger
from lms.models import Book, Borrower, Branch, LoanRecord, LoanView
from lms.result import Err, Ok, Result
from lms.transaction import SqliteTransaction, TransactionBoundary, atomic

logger = logging.getLogger(__name__)


class LoanListing:
    """Lazy, restartable sequence of joined loans.

    Nothing is read until iteration starts, and every new iteration runs the
    query again. Order follows the store and is not guaranteed between runs.
    """

    def __init__(self, loans: LoanLedger, card_no: Optional[int] = None, branch_id: Optional[int] = None) -> None:
        self._loans = loans
        self._card_no = card_no
        self._branch_id = branch_id

    def __iter__(self) -> Iterator[LoanView]:
        filters = {"card_no": self._card_no, "branch_id": self._branch_id}
        try:
            yield from self._loans.iter_views(**filters)
        except InconsistencyError as e:
            logger.critical("list found inconsistent ledgers | filters=%s | %s", filters, e)
            raise
        except sqlite3.Error as e:
            logger.error("list failed in storage | filters=%s | %s", filters, e)
            raise StorageFailure(f"list failed: {e}") from e

    def sorted(self, key: Callable[[LoanView], object], reverse: bool = False) -> list:
        return sorted(self, key=key, reverse=reverse)


class BorrowingEngine:
    """Runs loan operations against one store connection.

    The engine keeps no state of its own between calls. Use one engine (and
    one connection) per thread; concurrent engines coordinate only through
    the store's transactions.
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        *,
        transaction: Optional[TransactionBoundary] = None,
        refresh_date_out: Optional[bool] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.copies = CopiesLedger(connection)
        self.loans = LoanLedger(connection)
        self.transaction = transaction or SqliteTransaction(connection)
        if refresh_date_out is None:
            refresh_date_out = settings.renewal_refreshes_date_out
        self.refresh_date_out = refresh_date_out
        self.clock = clock or datetime.now

    # ------------------------- Loan operations ------------------------- #
    def checkout(self, book: Book, branch: Branch, borrower: Borrower, now: datetime, due_date: date) -> Result:
        """Lend one copy of ``book`` at ``branch`` to ``borrower`` until ``due_date``."""
        key = (book.id, branch.id, borrower.card_no)
        if due_date <= now.date():
            return self._fail("checkout", key, InvalidDueDate(
                f"Due date {due_date.isoformat()} must be after {now.date().isoformat()}"
            ))

        def work() -> LoanRecord:
            copy = self.copies.get(book.id, branch.id)
            if copy is None:
                raise CopyRecordNotFound(f"Branch {branch.id} holds no copies of book {book.id}")
            if self.loans.get(*key) is not None:
                raise DuplicateLoan(f"Borrower {borrower.card_no} already has book {book.id} from branch {branch.id}")
            if not copy.is_consistent():
                raise LedgerInconsistency(
                    f"Copy counts out of range for book {book.id} at branch {branch.id}: "
                    f"{copy.no_of_available_copies}/{copy.no_of_copies}"
                )
            if copy.no_of_available_copies == 0 or not self.copies.decrement_available(book.id, branch.id):
                raise NoCopiesAvailable(f"No copies of book {book.id} available at branch {branch.id}")
            return self.loans.create(LoanRecord(book.id, branch.id, borrower.card_no, now, due_date))

        return self._run("checkout", key, work)

    def return_book(self, book: Book, branch: Branch, borrower: Borrower) -> Result:
        """Close the loan for the key and put the copy back on the shelf."""
        key = (book.id, branch.id, borrower.card_no)

        def work() -> LoanRecord:
            loan = self.loans.get(*key)
            if loan is None:
                raise LoanNotFound(f"Borrower {borrower.card_no} has no loan of book {book.id} from branch {branch.id}")
            copy = self.copies.get(book.id, branch.id)
            if copy is None:
                raise LedgerInconsistency(f"Loan {key} exists but branch {branch.id} has no copies record")
            if copy.no_of_available_copies + 1 > copy.no_of_copies:
                raise LedgerInconsistency(
                    f"Returning loan {key} would exceed {copy.no_of_copies} copies "
                    f"({copy.no_of_available_copies} already available)"
                )
            self.loans.delete(key)
            if not self.copies.increment_available(book.id, branch.id):
                raise LedgerInconsistency(f"Copies record for book {book.id} at branch {branch.id} changed during return")
            return loan

        return self._run("return", key, work)

    def renew(
        self,
        book: Book,
        branch: Branch,
        borrower: Borrower,
        new_due_date: Optional[date] = None,
        now: Optional[datetime] = None,
        *,
        extend_by: Optional[timedelta] = None,
    ) -> Result:
        """Move the due date of an existing loan forward. Inventory is not touched.

        Pass either an explicit ``new_due_date`` or ``extend_by``; the latter is
        added to the due date read inside the same unit of work.
        """
        if (new_due_date is None) == (extend_by is None):
            raise ValueError("Pass exactly one of new_due_date and extend_by.")
        key = (book.id, branch.id, borrower.card_no)

        def work() -> LoanRecord:
            loan = self.loans.get(*key)
            if loan is None:
                raise LoanNotFound(f"Borrower {borrower.card_no} has no loan of book {book.id} from branch {branch.id}")
            target = new_due_date if extend_by is None else loan.due_date + extend_by
            if target <= loan.due_date:
                raise InvalidRenewalDate(
                    f"New due date {target.isoformat()} is not after {loan.due_date.isoformat()}"
                )
            date_out = (now or self.clock()) if self.refresh_date_out else None
            renewed = loan.with_due_date(target, date_out)
            self.loans.update(renewed)
            return renewed

        return self._run("renew", key, work)

    def lookup(self, book: Book, branch: Branch, borrower: Borrower) -> Result:
        """Ok(loan), or Ok(None) when the borrower has no such loan."""
        key = (book.id, branch.id, borrower.card_no)
        try:
            return Ok(self.loans.get(*key))
        except LoanError as e:
            return self._fail("lookup", key, e)
        except sqlite3.Error as e:
            return self._storage_failure("lookup", key, e)

    def list_all(self, card_no: Optional[int] = None, branch_id: Optional[int] = None) -> Result:
        """Ok(LoanListing) over every outstanding loan, optionally filtered.

        The store is checked up front so an unreachable loan table comes back
        as Err. Failures hit later, while iterating, raise StorageFailure or
        LedgerInconsistency instead of a raw sqlite3 error.
        """
        try:
            self.loans.check_readable()
        except sqlite3.Error as e:
            return self._storage_failure("list", (card_no, branch_id), e)
        return Ok(LoanListing(self.loans, card_no=card_no, branch_id=branch_id))

    # ------------------------- Helpers ------------------------- #
    def _run(self, operation: str, key: tuple, work: Callable[[], LoanRecord]) -> Result:
        try:
            with atomic(self.transaction):
                value = work()
        except LoanError as e:
            return self._fail(operation, key, e)
        except sqlite3.Error as e:
            return self._storage_failure(operation, key, e)
        logger.info("%s succeeded | key=%s", operation, key)
        return Ok(value)

    def _fail(self, operation: str, key: tuple, error: LoanError) -> Err:
        if isinstance(error, InconsistencyError):
            logger.critical("%s found inconsistent ledgers | key=%s | %s", operation, key, error)
        else:
            logger.info("%s rejected | key=%s | %s: %s", operation, key, type(error).__name__, error)
        return Err(error)

    def _storage_failure(self, operation: str, key: tuple, exc: sqlite3.Error) -> Err:
        logger.error("%s failed in storage | key=%s | %s", operation, key, exc)
        failure = StorageFailure(f"{operation} failed: {exc}")
        failure.__cause__ = exc
        return Err(failure)
