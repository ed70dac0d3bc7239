"""Reference data: authors, publishers, books, branches and borrowers.

Plain create/update/delete/get/get_all wrappers. Each write is a single
statement and commits on its own.
"""

from __future__ import annotations

import sqlite3
from typing import List, Optional

from lms.errors import EntityNotFound
from lms.models import Author, Book, Borrower, Branch, Publisher

_BOOK_QUERY = """
    SELECT b.book_id, b.title, b.author_id, b.publisher_id,
           a.author_name,
           p.publisher_name, p.publisher_address, p.publisher_phone
    FROM books b
    LEFT JOIN authors a ON a.author_id = b.author_id
    LEFT JOIN publishers p ON p.publisher_id = b.publisher_id
"""


class Catalog:
    """Catalog records stored next to the ledgers."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    # ------------------------- Authors ------------------------- #
    def add_author(self, name: str) -> Author:
        cursor = self.conn.execute("INSERT INTO authors (author_name) VALUES (?)", (name.strip(),))
        return Author(cursor.lastrowid, name.strip())

    def get_author(self, author_id: int) -> Optional[Author]:
        row = self.conn.execute(
            "SELECT author_id, author_name FROM authors WHERE author_id = ?", (author_id,)
        ).fetchone()
        return Author(row["author_id"], row["author_name"]) if row else None

    def list_authors(self) -> List[Author]:
        rows = self.conn.execute("SELECT author_id, author_name FROM authors ORDER BY author_name").fetchall()
        return [Author(row["author_id"], row["author_name"]) for row in rows]

    def update_author(self, author: Author) -> Author:
        self._require_changed(
            self.conn.execute("UPDATE authors SET author_name = ? WHERE author_id = ?", (author.name, author.id)),
            "author", author.id,
        )
        return author

    def delete_author(self, author_id: int) -> bool:
        return self.conn.execute("DELETE FROM authors WHERE author_id = ?", (author_id,)).rowcount > 0

    # ------------------------- Publishers ------------------------- #
    def add_publisher(self, name: str, address: Optional[str] = None, phone: Optional[str] = None) -> Publisher:
        cursor = self.conn.execute(
            "INSERT INTO publishers (publisher_name, publisher_address, publisher_phone) VALUES (?, ?, ?)",
            (name.strip(), address, phone),
        )
        return Publisher(cursor.lastrowid, name.strip(), address, phone)

    def get_publisher(self, publisher_id: int) -> Optional[Publisher]:
        row = self.conn.execute(
            """
            SELECT publisher_id, publisher_name, publisher_address, publisher_phone
            FROM publishers WHERE publisher_id = ?
            """,
            (publisher_id,),
        ).fetchone()
        if not row:
            return None
        return Publisher(row["publisher_id"], row["publisher_name"], row["publisher_address"], row["publisher_phone"])

    def list_publishers(self) -> List[Publisher]:
        rows = self.conn.execute(
            """
            SELECT publisher_id, publisher_name, publisher_address, publisher_phone
            FROM publishers ORDER BY publisher_name
            """
        ).fetchall()
        return [
            Publisher(row["publisher_id"], row["publisher_name"], row["publisher_address"], row["publisher_phone"])
            for row in rows
        ]

    def update_publisher(self, publisher: Publisher) -> Publisher:
        cursor = self.conn.execute(
            """
            UPDATE publishers SET publisher_name = ?, publisher_address = ?, publisher_phone = ?
            WHERE publisher_id = ?
            """,
            (publisher.name, publisher.address, publisher.phone, publisher.id),
        )
        self._require_changed(cursor, "publisher", publisher.id)
        return publisher

    def delete_publisher(self, publisher_id: int) -> bool:
        return self.conn.execute("DELETE FROM publishers WHERE publisher_id = ?", (publisher_id,)).rowcount > 0

    # ------------------------- Books ------------------------- #
    def add_book(
        self,
        title: str,
        author: Optional[Author] = None,
        publisher: Optional[Publisher] = None,
        book_id: Optional[int] = None,
    ) -> Book:
        if not title or not title.strip():
            raise ValueError("Title cannot be empty.")
        cursor = self.conn.execute(
            "INSERT INTO books (book_id, title, author_id, publisher_id) VALUES (?, ?, ?, ?)",
            (book_id, title.strip(), author.id if author else None, publisher.id if publisher else None),
        )
        return Book(cursor.lastrowid, title.strip(), author, publisher)

    def get_book(self, book_id: int) -> Optional[Book]:
        row = self.conn.execute(_BOOK_QUERY + " WHERE b.book_id = ?", (book_id,)).fetchone()
        return Book.from_row(row) if row else None

    def list_books(self) -> List[Book]:
        rows = self.conn.execute(_BOOK_QUERY + " ORDER BY b.title").fetchall()
        return [Book.from_row(row) for row in rows]

    def update_book(self, book: Book) -> Book:
        cursor = self.conn.execute(
            "UPDATE books SET title = ?, author_id = ?, publisher_id = ? WHERE book_id = ?",
            (
                book.title,
                book.author.id if book.author else None,
                book.publisher.id if book.publisher else None,
                book.id,
            ),
        )
        self._require_changed(cursor, "book", book.id)
        return book

    def delete_book(self, book_id: int) -> bool:
        return self.conn.execute("DELETE FROM books WHERE book_id = ?", (book_id,)).rowcount > 0

    def require_book(self, book_id: int) -> Book:
        book = self.get_book(book_id)
        if book is None:
            raise EntityNotFound(f"Book {book_id} not found.")
        return book

    # ------------------------- Branches ------------------------- #
    def add_branch(self, name: str, address: Optional[str] = None, branch_id: Optional[int] = None) -> Branch:
        cursor = self.conn.execute(
            "INSERT INTO branches (branch_id, branch_name, branch_address) VALUES (?, ?, ?)",
            (branch_id, name.strip(), address),
        )
        return Branch(cursor.lastrowid, name.strip(), address)

    def get_branch(self, branch_id: int) -> Optional[Branch]:
        row = self.conn.execute(
            "SELECT branch_id, branch_name, branch_address FROM branches WHERE branch_id = ?", (branch_id,)
        ).fetchone()
        return Branch.from_row(row) if row else None

    def list_branches(self) -> List[Branch]:
        rows = self.conn.execute(
            "SELECT branch_id, branch_name, branch_address FROM branches ORDER BY branch_name"
        ).fetchall()
        return [Branch.from_row(row) for row in rows]

    def update_branch(self, branch: Branch) -> Branch:
        cursor = self.conn.execute(
            "UPDATE branches SET branch_name = ?, branch_address = ? WHERE branch_id = ?",
            (branch.name, branch.address, branch.id),
        )
        self._require_changed(cursor, "branch", branch.id)
        return branch

    def delete_branch(self, branch_id: int) -> bool:
        return self.conn.execute("DELETE FROM branches WHERE branch_id = ?", (branch_id,)).rowcount > 0

    def require_branch(self, branch_id: int) -> Branch:
        branch = self.get_branch(branch_id)
        if branch is None:
            raise EntityNotFound(f"Branch {branch_id} not found.")
        return branch

    # ------------------------- Borrowers ------------------------- #
    def add_borrower(
        self,
        name: str,
        address: Optional[str] = None,
        phone: Optional[str] = None,
        card_no: Optional[int] = None,
    ) -> Borrower:
        cursor = self.conn.execute(
            "INSERT INTO borrowers (card_no, name, address, phone) VALUES (?, ?, ?, ?)",
            (card_no, name.strip(), address, phone),
        )
        return Borrower(cursor.lastrowid, name.strip(), address, phone)

    def get_borrower(self, card_no: int) -> Optional[Borrower]:
        row = self.conn.execute(
            "SELECT card_no, name, address, phone FROM borrowers WHERE card_no = ?", (card_no,)
        ).fetchone()
        return Borrower.from_row(row) if row else None

    def list_borrowers(self) -> List[Borrower]:
        rows = self.conn.execute("SELECT card_no, name, address, phone FROM borrowers ORDER BY name").fetchall()
        return [Borrower.from_row(row) for row in rows]

    def update_borrower(self, borrower: Borrower) -> Borrower:
        cursor = self.conn.execute(
            "UPDATE borrowers SET name = ?, address = ?, phone = ? WHERE card_no = ?",
            (borrower.name, borrower.address, borrower.phone, borrower.card_no),
        )
        self._require_changed(cursor, "borrower", borrower.card_no)
        return borrower

    def delete_borrower(self, card_no: int) -> bool:
        return self.conn.execute("DELETE FROM borrowers WHERE card_no = ?", (card_no,)).rowcount > 0

    def require_borrower(self, card_no: int) -> Borrower:
        borrower = self.get_borrower(card_no)
        if borrower is None:
            raise EntityNotFound(f"Borrower {card_no} not found.")
        return borrower

    # ------------------------- Helpers ------------------------- #
    @staticmethod
    def _require_changed(cursor: sqlite3.Cursor, entity: str, entity_id: int) -> None:
        if cursor.rowcount == 0:
            raise EntityNotFound(f"{entity.capitalize()} {entity_id} not found.")
