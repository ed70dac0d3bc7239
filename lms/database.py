import logging
import sqlite3
from typing import Optional

from lms.config import settings

logger = logging.getLogger(__name__)

# Default database file.
# Priority:
# 1) LIBRARY_DB_FILE (explicit override)
# 2) LIBRARY_DATA_FILE (older environment name)
# 3) library.db in the working directory
DATABASE_FILE = settings.database_file


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Open a new connection to the SQLite database.

    The connection runs in autocommit mode (``isolation_level=None``) so every
    multi-statement unit of work has to be opened explicitly through a
    transaction boundary. Closing the connection is the caller's job.
    """
    path = db_file or DATABASE_FILE
    conn = sqlite3.connect(
        path,
        timeout=settings.database_timeout,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON;")
    if path != ":memory:":
        # WAL lets readers proceed while a checkout holds the write lock
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
    return conn


def create_tables(conn: sqlite3.Connection) -> None:
    """Create the catalog and ledger tables if they do not exist yet."""
    cursor = conn.cursor()
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS authors (
            author_id INTEGER PRIMARY KEY AUTOINCREMENT,
            author_name TEXT NOT NULL
        )
    """)
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS publishers (
            publisher_id INTEGER PRIMARY KEY AUTOINCREMENT,
            publisher_name TEXT NOT NULL,
            publisher_address TEXT,
            publisher_phone TEXT
        )
    """)
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS books (
            book_id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            author_id INTEGER,
            publisher_id INTEGER,
            FOREIGN KEY (author_id) REFERENCES authors(author_id) ON DELETE SET NULL,
            FOREIGN KEY (publisher_id) REFERENCES publishers(publisher_id) ON DELETE SET NULL
        )
    """)
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS branches (
            branch_id INTEGER PRIMARY KEY AUTOINCREMENT,
            branch_name TEXT NOT NULL,
            branch_address TEXT
        )
    """)
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS borrowers (
            card_no INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            address TEXT,
            phone TEXT
        )
    """)

    # Copies ledger: one inventory row per (book, branch)
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS book_copies (
            book_id INTEGER NOT NULL,
            branch_id INTEGER NOT NULL,
            no_of_copies INTEGER NOT NULL,
            no_of_available_copies INTEGER NOT NULL,
            PRIMARY KEY (book_id, branch_id),
            CHECK (no_of_available_copies >= 0 AND no_of_available_copies <= no_of_copies),
            FOREIGN KEY (book_id) REFERENCES books(book_id) ON DELETE CASCADE,
            FOREIGN KEY (branch_id) REFERENCES branches(branch_id) ON DELETE CASCADE
        )
    """)

    # Loan ledger: the composite key is unique at the storage layer
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS book_loans (
            book_id INTEGER NOT NULL,
            branch_id INTEGER NOT NULL,
            card_no INTEGER NOT NULL,
            date_out TEXT NOT NULL,
            due_date TEXT NOT NULL,
            PRIMARY KEY (book_id, branch_id, card_no),
            FOREIGN KEY (book_id) REFERENCES books(book_id),
            FOREIGN KEY (branch_id) REFERENCES branches(branch_id),
            FOREIGN KEY (card_no) REFERENCES borrowers(card_no)
        )
    """)

    cursor.execute("CREATE INDEX IF NOT EXISTS idx_book_copies_branch ON book_copies(branch_id)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_book_loans_card_no ON book_loans(card_no)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_book_loans_branch ON book_loans(branch_id)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_book_loans_due_date ON book_loans(due_date)")


def initialize_database(db_file: Optional[str] = None) -> None:
    """Initialize the database, creating the tables when needed."""
    conn = get_db_connection(db_file)
    try:
        create_tables(conn)
        logger.info("Database ready at %s", db_file or DATABASE_FILE)
    finally:
        conn.close()
