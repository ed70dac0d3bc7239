from __future__ import annotations

import sqlite3
from enum import Enum
from typing import Iterable, Optional, Protocol

from lms.models import LoanView


class Role(str, Enum):
    PATRON = "patron"
    LIBRARIAN = "librarian"
    ADMINISTRATOR = "administrator"


class LibraryService(Protocol):
    """What every role facade offers, whatever else it adds."""

    role: Role

    def loans(self) -> Iterable[LoanView]:
        """Outstanding loans visible to this role."""
        ...


def service_for(
    role: Role | str,
    connection: sqlite3.Connection,
    *,
    card_no: Optional[int] = None,
    branch_id: Optional[int] = None,
) -> LibraryService:
    """Pick the facade for ``role``.

    Patrons need their ``card_no`` and librarians the ``branch_id`` they work
    at; administrators need neither.
    """
    # Local imports: the implementations import this module for Role
    from lms.services.administrator import AdministratorService
    from lms.services.librarian import LibrarianService
    from lms.services.patron import PatronService

    role = Role(role)
    if role is Role.PATRON:
        if card_no is None:
            raise ValueError("A patron service needs a card number.")
        return PatronService(connection, card_no)
    if role is Role.LIBRARIAN:
        if branch_id is None:
            raise ValueError("A librarian service needs a branch id.")
        return LibrarianService(connection, branch_id)
    return AdministratorService(connection)


def resolve_parties(catalog, book_id: int, branch_id: int, card_no: int):
    """Load the book, branch and borrower a loan operation refers to."""
    return (
        catalog.require_book(book_id),
        catalog.require_branch(branch_id),
        catalog.require_borrower(card_no),
    )
