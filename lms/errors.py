class LoanError(Exception):
    """Base class for every failure the borrowing engine reports."""

    kind = "error"


class NotFoundError(LoanError):
    """An entity the operation needs does not exist."""

    kind = "not_found"


class CopyRecordNotFound(NotFoundError):
    """No inventory entry exists for the book/branch pair."""


class LoanNotFound(NotFoundError):
    """No outstanding loan exists for the book/branch/borrower key."""


class EntityNotFound(NotFoundError):
    """A catalog record (book, branch, borrower, ...) does not exist."""


class ConflictError(LoanError):
    """The request violates a business rule."""

    kind = "conflict"


class NoCopiesAvailable(ConflictError):
    """Every copy of the book at the branch is already on loan."""


class DuplicateLoan(ConflictError):
    """The borrower already holds this book from this branch."""


class InvalidRenewalDate(ConflictError):
    """The new due date is not after the current one."""


class InvalidDueDate(ConflictError):
    """The due date of a new loan is not after the checkout date."""


class CopiesInUse(ConflictError):
    """A new copy total would be lower than the number of copies on loan."""


class InconsistencyError(LoanError):
    """The loan and copy ledgers disagree; some earlier write broke the invariant."""

    kind = "inconsistency"


class LedgerInconsistency(InconsistencyError):
    pass


class StorageFailure(LoanError):
    """The underlying store failed. The original error is kept as ``__cause__``."""

    kind = "storage"
