from __future__ import annotations

import sqlite3
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Optional, Tuple


LoanKey = Tuple[int, int, int]


@dataclass(frozen=True)
class Author:
    id: int
    name: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class Publisher:
    id: int
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "address": self.address, "phone": self.phone}


@dataclass(frozen=True)
class Book:
    """A title in the catalog. Author and publisher are optional."""

    id: int
    title: str
    author: Optional[Author] = None
    publisher: Optional[Publisher] = None

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        by = f" by {self.author.name}" if self.author else ""
        return f"{self.title}{by}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author.to_dict() if self.author else None,
            "publisher": self.publisher.to_dict() if self.publisher else None,
        }

    @staticmethod
    def from_row(row: sqlite3.Row) -> "Book":
        # Joined rows carry author/publisher columns; NULL ids mean "none"
        keys = row.keys()
        author = None
        if "author_name" in keys and row["author_id"] is not None:
            author = Author(row["author_id"], row["author_name"])
        publisher = None
        if "publisher_name" in keys and row["publisher_id"] is not None:
            publisher = Publisher(
                row["publisher_id"],
                row["publisher_name"],
                row["publisher_address"],
                row["publisher_phone"],
            )
        return Book(row["book_id"], row["title"], author, publisher)


@dataclass(frozen=True)
class Branch:
    id: int
    name: str
    address: Optional[str] = None

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "address": self.address}

    @staticmethod
    def from_row(row: sqlite3.Row) -> "Branch":
        return Branch(row["branch_id"], row["branch_name"], row["branch_address"])


@dataclass(frozen=True)
class Borrower:
    card_no: int
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None

    def to_dict(self) -> dict:
        return {"card_no": self.card_no, "name": self.name, "address": self.address, "phone": self.phone}

    @staticmethod
    def from_row(row: sqlite3.Row) -> "Borrower":
        return Borrower(row["card_no"], row["name"], row["address"], row["phone"])


@dataclass(frozen=True)
class CopyRecord:
    """Inventory of one book at one branch: total owned vs. currently on the shelf."""

    book_id: int
    branch_id: int
    no_of_copies: int
    no_of_available_copies: int

    @property
    def on_loan(self) -> int:
        return self.no_of_copies - self.no_of_available_copies

    def is_consistent(self) -> bool:
        return 0 <= self.no_of_available_copies <= self.no_of_copies

    def to_dict(self) -> dict:
        return {
            "book_id": self.book_id,
            "branch_id": self.branch_id,
            "no_of_copies": self.no_of_copies,
            "no_of_available_copies": self.no_of_available_copies,
        }

    @staticmethod
    def from_row(row: sqlite3.Row) -> "CopyRecord":
        return CopyRecord(
            row["book_id"],
            row["branch_id"],
            row["no_of_copies"],
            row["no_of_available_copies"],
        )


@dataclass(frozen=True)
class LoanRecord:
    """One outstanding checkout of a book from a branch by a borrower."""

    book_id: int
    branch_id: int
    card_no: int
    date_out: datetime
    due_date: date

    @property
    def key(self) -> LoanKey:
        return (self.book_id, self.branch_id, self.card_no)

    def with_due_date(self, due_date: date, date_out: Optional[datetime] = None) -> "LoanRecord":
        if date_out is None:
            return replace(self, due_date=due_date)
        return replace(self, due_date=due_date, date_out=date_out)

    def to_dict(self) -> dict:
        return {
            "book_id": self.book_id,
            "branch_id": self.branch_id,
            "card_no": self.card_no,
            "date_out": self.date_out.isoformat(),
            "due_date": self.due_date.isoformat(),
        }

    @staticmethod
    def from_row(row: sqlite3.Row) -> "LoanRecord":
        return LoanRecord(
            row["book_id"],
            row["branch_id"],
            row["card_no"],
            datetime.fromisoformat(row["date_out"]),
            date.fromisoformat(row["due_date"]),
        )


@dataclass(frozen=True)
class LoanView:
    """A loan joined with the book, branch and borrower it refers to."""

    loan: LoanRecord
    book: Book
    branch: Branch
    borrower: Borrower

    def to_dict(self) -> dict:
        data = self.loan.to_dict()
        data["book"] = self.book.to_dict()
        data["branch"] = self.branch.to_dict()
        data["borrower"] = self.borrower.to_dict()
        return data

    @staticmethod
    def from_row(row: sqlite3.Row) -> "LoanView":
        return LoanView(
            loan=LoanRecord.from_row(row),
            book=Book.from_row(row),
            branch=Branch.from_row(row),
            borrower=Borrower.from_row(row),
        )
