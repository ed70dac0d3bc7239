import logging
from datetime import date, datetime, timedelta

import pytest

from lms.config import settings
from lms.errors import CopiesInUse, EntityNotFound, InvalidRenewalDate, LedgerInconsistency, LoanNotFound
from lms.models import CopyRecord, LoanRecord
from lms.services import (
    AdministratorService,
    LibrarianService,
    PatronService,
    Role,
    service_for,
)

NOW = datetime(2024, 1, 1, 10, 30)
DUE = date(2024, 1, 15)


# ------------------------- Role selection ------------------------- #
def test_service_for_picks_facade_by_role(conn):
    assert isinstance(service_for(Role.PATRON, conn, card_no=42), PatronService)
    assert isinstance(service_for("librarian", conn, branch_id=3), LibrarianService)
    assert isinstance(service_for(Role.ADMINISTRATOR, conn), AdministratorService)


def test_service_for_requires_context(conn):
    with pytest.raises(ValueError):
        service_for(Role.PATRON, conn)
    with pytest.raises(ValueError):
        service_for(Role.LIBRARIAN, conn)
    with pytest.raises(ValueError):
        service_for("janitor", conn)


def test_every_facade_lists_loans(conn, parties, stock):
    stock(7, 3, total=2)
    PatronService(conn, 42).check_out(7, 3, now=NOW, due_date=DUE)

    for service in (
        service_for(Role.PATRON, conn, card_no=42),
        service_for(Role.LIBRARIAN, conn, branch_id=3),
        service_for(Role.ADMINISTRATOR, conn),
    ):
        assert [v.loan.key for v in service.loans()] == [(7, 3, 42)]


# ------------------------- Patron ------------------------- #
def test_patron_checkout_defaults_to_loan_period(conn, parties, stock, loans):
    stock(7, 3, total=2)

    result = PatronService(conn, 42).check_out(7, 3, now=NOW)

    assert result.ok
    assert result.value.due_date == NOW.date() + timedelta(days=settings.loan_period_days)
    assert loans.get(7, 3, 42) == result.value


def test_patron_checkout_of_unknown_book(conn, parties):
    with pytest.raises(EntityNotFound):
        PatronService(conn, 42).check_out(99, 3, now=NOW)


def test_patron_renew_extends_by_loan_period(conn, parties, stock):
    stock(7, 3, total=2)
    patron = PatronService(conn, 42)
    patron.check_out(7, 3, now=NOW, due_date=DUE)

    result = patron.renew(7, 3)

    assert result.value.due_date == DUE + timedelta(days=settings.loan_period_days)


def test_patron_renew_without_loan(conn, parties):
    result = PatronService(conn, 42).renew(7, 3)

    assert isinstance(result.error, LoanNotFound)


def test_patron_return(conn, parties, stock, copies):
    stock(7, 3, total=2)
    patron = PatronService(conn, 42)
    patron.check_out(7, 3, now=NOW, due_date=DUE)

    assert patron.return_book(7, 3).ok
    assert copies.get(7, 3).no_of_available_copies == 2
    assert list(patron.loans()) == []


def test_patron_sees_only_own_loans(conn, parties, stock):
    stock(7, 3, total=2)
    PatronService(conn, 42).check_out(7, 3, now=NOW, due_date=DUE)
    PatronService(conn, 43).check_out(7, 3, now=NOW, due_date=DUE)

    assert [v.borrower.card_no for v in PatronService(conn, 43).loans()] == [43]
    assert [b.name for b in PatronService(conn, 43).branches()] == ["Central"]


# ------------------------- Librarian ------------------------- #
def test_librarian_creates_copies_record(conn, parties, copies):
    result = LibrarianService(conn, 3).set_copies(7, 4)

    assert result.value == CopyRecord(7, 3, 4, 4)
    assert copies.get(7, 3) == CopyRecord(7, 3, 4, 4)


def test_librarian_adjusts_total_without_touching_loans(conn, parties, stock, copies):
    stock(7, 3, total=3)
    PatronService(conn, 42).check_out(7, 3, now=NOW, due_date=DUE)
    librarian = LibrarianService(conn, 3)

    assert librarian.set_copies(7, 5).value == CopyRecord(7, 3, 5, 4)
    assert librarian.set_copies(7, 1).value == CopyRecord(7, 3, 1, 0)
    assert copies.get(7, 3).on_loan == 1


def test_librarian_cannot_drop_below_copies_on_loan(conn, parties, stock, copies):
    stock(7, 3, total=2)
    PatronService(conn, 42).check_out(7, 3, now=NOW, due_date=DUE)
    PatronService(conn, 43).check_out(7, 3, now=NOW, due_date=DUE)

    result = LibrarianService(conn, 3).set_copies(7, 1)

    assert isinstance(result.error, CopiesInUse)
    assert copies.get(7, 3) == CopyRecord(7, 3, 2, 0)


def test_librarian_refuses_record_for_loans_without_inventory(conn, parties, loans, copies, caplog):
    loans.create(LoanRecord(7, 3, 42, NOW, DUE))

    with caplog.at_level(logging.CRITICAL, logger="lms.services.librarian"):
        result = LibrarianService(conn, 3).set_copies(7, 2)

    assert isinstance(result.error, LedgerInconsistency)
    assert copies.get(7, 3) is None
    assert any(r.levelno == logging.CRITICAL for r in caplog.records)


def test_librarian_rejects_negative_total(conn, parties):
    with pytest.raises(ValueError):
        LibrarianService(conn, 3).set_copies(7, -1)


def test_librarian_updates_branch(conn, parties, catalog):
    librarian = LibrarianService(conn, 3)

    updated = librarian.update_branch(address="2 High St")

    assert updated.name == "Central"
    assert catalog.get_branch(3).address == "2 High St"
    with pytest.raises(ValueError):
        librarian.update_branch(name="  ")


def test_librarian_sees_loans_at_own_branch(conn, parties, catalog, stock):
    catalog.add_branch("East", branch_id=4)
    stock(7, 3, total=1)
    stock(7, 4, total=1)
    PatronService(conn, 42).check_out(7, 3, now=NOW, due_date=DUE)
    PatronService(conn, 43).check_out(7, 4, now=NOW, due_date=DUE)

    librarian = LibrarianService(conn, 4)
    assert [v.borrower.card_no for v in librarian.loans()] == [43]
    assert [c.branch_id for c in librarian.copies()] == [4]


# ------------------------- Administrator ------------------------- #
def test_administrator_overrides_due_date(conn, parties, stock):
    stock(7, 3, total=1)
    PatronService(conn, 42).check_out(7, 3, now=NOW, due_date=DUE)
    admin = AdministratorService(conn)

    assert admin.override_due_date(7, 3, 42, date(2024, 3, 1)).value.due_date == date(2024, 3, 1)
    assert isinstance(admin.override_due_date(7, 3, 42, date(2024, 2, 1)).error, InvalidRenewalDate)
    assert admin.lookup_loan(7, 3, 42).value.due_date == date(2024, 3, 1)


def test_administrator_manages_catalog(conn):
    admin = AdministratorService(conn)

    branch = admin.catalog.add_branch("North")
    borrower = admin.catalog.add_borrower("Katherine Johnson")

    assert admin.catalog.get_branch(branch.id) == branch
    assert admin.catalog.get_borrower(borrower.card_no) == borrower
    assert list(admin.loans()) == []
