"""Library Loans - Services Package

Role-specific facades over the borrowing engine and the catalog:
- Patron: check out, return and renew own loans
- Librarian: branch details and copy inventory at one branch
- Administrator: reference data and due-date overrides

Use ``service_for(role, connection, ...)`` to get the facade for a caller.
"""

from lms.services.administrator import AdministratorService
from lms.services.base import LibraryService, Role, service_for
from lms.services.librarian import LibrarianService
from lms.services.patron import PatronService

__all__ = [
    "AdministratorService",
    "LibrarianService",
    "LibraryService",
    "PatronService",
    "Role",
    "service_for",
]
