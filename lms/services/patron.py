from __future__ import annotations

import sqlite3
from datetime import date, datetime, timedelta
from typing import List, Optional

from lms.catalog import Catalog
from lms.config import settings
from lms.engine import BorrowingEngine, LoanListing
from lms.models import Branch
from lms.result import Result
from lms.services.base import Role, resolve_parties


class PatronService:
    """Loan operations for one borrower, identified by card number."""

    role = Role.PATRON

    def __init__(self, connection: sqlite3.Connection, card_no: int, engine: Optional[BorrowingEngine] = None) -> None:
        self.card_no = card_no
        self.catalog = Catalog(connection)
        self.engine = engine or BorrowingEngine(connection)
        self.loan_period = timedelta(days=settings.loan_period_days)

    def check_out(
        self,
        book_id: int,
        branch_id: int,
        now: Optional[datetime] = None,
        due_date: Optional[date] = None,
    ) -> Result:
        """Borrow a book. Without an explicit due date the loan runs for the configured period."""
        book, branch, borrower = resolve_parties(self.catalog, book_id, branch_id, self.card_no)
        now = now or datetime.now()
        return self.engine.checkout(book, branch, borrower, now, due_date or now.date() + self.loan_period)

    def return_book(self, book_id: int, branch_id: int) -> Result:
        book, branch, borrower = resolve_parties(self.catalog, book_id, branch_id, self.card_no)
        return self.engine.return_book(book, branch, borrower)

    def renew(self, book_id: int, branch_id: int, now: Optional[datetime] = None) -> Result:
        """Extend the loan by one loan period past its current due date."""
        book, branch, borrower = resolve_parties(self.catalog, book_id, branch_id, self.card_no)
        return self.engine.renew(book, branch, borrower, now=now, extend_by=self.loan_period)

    def loans(self) -> LoanListing:
        return self.engine.list_all(card_no=self.card_no).unwrap()

    def branches(self) -> List[Branch]:
        return self.catalog.list_branches()
