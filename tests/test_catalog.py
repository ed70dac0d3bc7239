import pytest

from lms.errors import EntityNotFound
from lms.models import Author, Book, Borrower, Branch, Publisher


def test_add_list_and_get_book(catalog):
    assert catalog.list_books() == []

    author = catalog.add_author("James Joyce")
    publisher = catalog.add_publisher("Shakespeare and Company", "12 Rue de l'Odeon")
    book = catalog.add_book("Ulysses", author=author, publisher=publisher)

    found = catalog.get_book(book.id)
    assert found == book
    assert found.author == Author(author.id, "James Joyce")
    assert found.publisher.address == "12 Rue de l'Odeon"
    assert [b.title for b in catalog.list_books()] == ["Ulysses"]


def test_add_book_with_empty_title(catalog):
    with pytest.raises(ValueError, match="Title cannot be empty."):
        catalog.add_book("   ")
    assert catalog.list_books() == []


def test_update_book(catalog):
    book = catalog.add_book("Old Title")
    author = catalog.add_author("New Author")

    catalog.update_book(Book(book.id, "New Title", author))

    found = catalog.get_book(book.id)
    assert found.title == "New Title"
    assert found.author.name == "New Author"


def test_update_missing_records(catalog):
    with pytest.raises(EntityNotFound):
        catalog.update_book(Book(404, "Ghost"))
    with pytest.raises(EntityNotFound):
        catalog.update_branch(Branch(404, "Ghost"))
    with pytest.raises(EntityNotFound):
        catalog.update_borrower(Borrower(404, "Ghost"))
    with pytest.raises(EntityNotFound):
        catalog.update_author(Author(404, "Ghost"))
    with pytest.raises(EntityNotFound):
        catalog.update_publisher(Publisher(404, "Ghost"))


def test_delete_returns_whether_anything_was_removed(catalog):
    branch = catalog.add_branch("Temporary")
    assert catalog.delete_branch(branch.id) is True
    assert catalog.delete_branch(branch.id) is False
    assert catalog.get_branch(branch.id) is None


def test_deleting_author_keeps_book(catalog):
    author = catalog.add_author("Pseudonym")
    book = catalog.add_book("Signed Work", author=author)

    assert catalog.delete_author(author.id)

    assert catalog.get_book(book.id).author is None


def test_borrowers_and_branches(catalog):
    borrower = catalog.add_borrower("Ada Lovelace", "Marylebone", "555-0199", card_no=42)
    branch = catalog.add_branch("Central", "1 Main St", branch_id=3)

    assert catalog.get_borrower(42) == borrower
    assert catalog.get_branch(3) == branch
    assert catalog.update_borrower(Borrower(42, "Ada King", "Ockham")) == Borrower(42, "Ada King", "Ockham")
    assert catalog.get_borrower(42).name == "Ada King"
    assert [b.card_no for b in catalog.list_borrowers()] == [42]


def test_require_helpers_raise_for_missing(catalog):
    with pytest.raises(EntityNotFound, match="Book 1 not found."):
        catalog.require_book(1)
    with pytest.raises(EntityNotFound):
        catalog.require_branch(1)
    with pytest.raises(EntityNotFound):
        catalog.require_borrower(1)


def test_publishers_and_authors_listing(catalog):
    catalog.add_publisher("Vintage")
    catalog.add_publisher("Penguin", phone="555-0001")
    catalog.add_author("Zadie Smith")
    catalog.add_author("Chinua Achebe")

    assert [p.name for p in catalog.list_publishers()] == ["Penguin", "Vintage"]
    assert [a.name for a in catalog.list_authors()] == ["Chinua Achebe", "Zadie Smith"]
    assert catalog.get_publisher(999) is None
    assert catalog.get_author(999) is None
