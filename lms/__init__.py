"""Library Loans - Core Application Package

This package contains the loan transaction core and its collaborators:
- Borrowing engine: checkout / return / renew / lookup / list (engine.py)
- Copies and loan ledgers (ledgers.py)
- Transaction boundary (transaction.py)
- Catalog reference data (catalog.py)
- Data models (models.py), failures (errors.py), results (result.py)
- Database layer (database.py) and settings (config.py)
- Role services (services/), HTTP API (api.py) and command line (cli.py)
"""

from lms.engine import BorrowingEngine, LoanListing
from lms.result import Err, Ok

__all__ = ["BorrowingEngine", "Err", "LoanListing", "Ok"]
