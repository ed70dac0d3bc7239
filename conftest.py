import os
from types import SimpleNamespace

import pytest

from lms.catalog import Catalog
from lms.database import create_tables, get_db_connection
from lms.engine import BorrowingEngine
from lms.ledgers import CopiesLedger, LoanLedger
from lms.models import CopyRecord


@pytest.fixture
def db_file(tmp_path, request):
    # A separate database file for every test
    return str(tmp_path / f"test_{request.node.name}.db")


@pytest.fixture
def conn(db_file):
    conn = get_db_connection(db_file)
    create_tables(conn)
    yield conn
    conn.close()
    if os.path.exists(db_file):
        os.remove(db_file)


@pytest.fixture
def catalog(conn):
    return Catalog(conn)


@pytest.fixture
def parties(catalog):
    """Book 7 at branch 3, borrowers 42 and 43."""
    author = catalog.add_author("Ursula K. Le Guin")
    publisher = catalog.add_publisher("Harper & Row", "10 East 53rd St", "555-0100")
    return SimpleNamespace(
        book=catalog.add_book("The Dispossessed", author=author, publisher=publisher, book_id=7),
        branch=catalog.add_branch("Central", "1 Main St", branch_id=3),
        borrower=catalog.add_borrower("Ada Lovelace", card_no=42),
        other=catalog.add_borrower("Grace Hopper", card_no=43),
    )


@pytest.fixture
def stock(conn):
    """Create the copies record for a (book, branch) pair."""
    def _stock(book_id, branch_id, total, available=None):
        record = CopyRecord(book_id, branch_id, total, total if available is None else available)
        return CopiesLedger(conn).create(record)
    return _stock


@pytest.fixture
def copies(conn):
    return CopiesLedger(conn)


@pytest.fixture
def loans(conn):
    return LoanLedger(conn)


@pytest.fixture
def engine(conn):
    return BorrowingEngine(conn, refresh_date_out=False)
