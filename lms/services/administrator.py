from __future__ import annotations

import sqlite3
from datetime import date, datetime
from typing import Optional

from lms.catalog import Catalog
from lms.engine import BorrowingEngine, LoanListing
from lms.result import Result
from lms.services.base import Role, resolve_parties


class AdministratorService:
    """Reference data management plus due-date overrides on any loan.

    The catalog is exposed as-is (``service.catalog.add_book(...)`` and so on);
    loan changes still go through the engine.
    """

    role = Role.ADMINISTRATOR

    def __init__(self, connection: sqlite3.Connection, engine: Optional[BorrowingEngine] = None) -> None:
        self.catalog = Catalog(connection)
        self.engine = engine or BorrowingEngine(connection)

    def override_due_date(
        self,
        book_id: int,
        branch_id: int,
        card_no: int,
        due_date: date,
        now: Optional[datetime] = None,
    ) -> Result:
        book, branch, borrower = resolve_parties(self.catalog, book_id, branch_id, card_no)
        return self.engine.renew(book, branch, borrower, due_date, now=now)

    def lookup_loan(self, book_id: int, branch_id: int, card_no: int) -> Result:
        book, branch, borrower = resolve_parties(self.catalog, book_id, branch_id, card_no)
        return self.engine.lookup(book, branch, borrower)

    def loans(self) -> LoanListing:
        return self.engine.list_all().unwrap()
