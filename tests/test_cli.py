from datetime import date, timedelta
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from lms import database
from lms.cli import app

runner = CliRunner()


@pytest.fixture
def cli_db(db_file, parties, stock, monkeypatch):
    monkeypatch.setattr(database, "DATABASE_FILE", db_file)
    stock(7, 3, total=1)
    return db_file


def test_loans_empty(cli_db):
    result = runner.invoke(app, ["loans"])
    assert result.exit_code == 0
    assert "No outstanding loans." in result.stdout


def test_checkout_and_list(cli_db):
    due = (date.today() + timedelta(days=10)).isoformat()

    result = runner.invoke(app, ["checkout", "7", "3", "42", "--due", due])
    assert result.exit_code == 0
    assert f"Checked out book 7 to card 42, due {due}" in result.stdout

    listing = runner.invoke(app, ["loans", "--card-no", "42"])
    assert listing.exit_code == 0
    assert "1 loan(s)" in listing.stdout


def test_checkout_without_available_copies(cli_db):
    assert runner.invoke(app, ["checkout", "7", "3", "42"]).exit_code == 0

    result = runner.invoke(app, ["checkout", "7", "3", "43"])
    assert result.exit_code == 1
    assert "NoCopiesAvailable" in result.stdout


def test_checkout_unknown_book(cli_db):
    result = runner.invoke(app, ["checkout", "99", "3", "42"])
    assert result.exit_code == 1
    assert "Book 99 not found." in result.stdout


def test_return_without_loan(cli_db):
    result = runner.invoke(app, ["return", "7", "3", "42"])
    assert result.exit_code == 1
    assert "LoanNotFound" in result.stdout


def test_renew_with_explicit_date(cli_db):
    runner.invoke(app, ["checkout", "7", "3", "42"])
    due = (date.today() + timedelta(days=60)).isoformat()

    result = runner.invoke(app, ["renew", "7", "3", "42", "--due", due])
    assert result.exit_code == 0
    assert f"now due {due}" in result.stdout


def test_set_copies(cli_db):
    result = runner.invoke(app, ["set-copies", "7", "3", "4"])
    assert result.exit_code == 0
    assert "Book 7 at branch 3: 4 copies, 4 available" in result.stdout

    negative = runner.invoke(app, ["set-copies", "--", "7", "3", "-1"])
    assert negative.exit_code == 1


@patch("subprocess.run")
def test_serve_command(mock_subprocess_run):
    result = runner.invoke(app, ["serve", "--port", "8123"])
    assert result.exit_code == 0
    assert "Starting API on" in result.stdout
    mock_subprocess_run.assert_called_once()
    args = mock_subprocess_run.call_args[0][0]
    assert "uvicorn" in args
    assert "lms.api:app" in args
    assert "8123" in args


def test_loans_when_store_is_broken(cli_db, conn):
    conn.execute("DROP TABLE book_loans")

    result = runner.invoke(app, ["loans"])
    assert result.exit_code == 1
    assert "StorageFailure" in result.stdout
