import logging
import sqlite3
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Security
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, Field

from lms import database
from lms.catalog import Catalog
from lms.config import settings
from lms.engine import BorrowingEngine
from lms.errors import EntityNotFound, LoanError
from lms.ledgers import CopiesLedger
from lms.models import LoanRecord, LoanView
from lms.result import Err, Result
from lms.services.base import resolve_parties

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Make sure the schema exists before serving requests
    database.initialize_database()
    yield


app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

# Failure kind -> HTTP status
STATUS_BY_KIND = {
    "not_found": 404,
    "conflict": 409,
    "inconsistency": 500,
    "storage": 503,
}

# --- Security ---
api_key_header = APIKeyHeader(name="X-API-Key")


def get_api_key(api_key: str = Security(api_key_header)):
    """Dependency that checks the API key."""
    if api_key == settings.api_key:
        return api_key
    raise HTTPException(status_code=403, detail="Could not validate credentials")


# --- Connections ---
def get_connection() -> Iterator[sqlite3.Connection]:
    """One connection per request, closed when the response is done."""
    conn = database.get_db_connection()
    try:
        yield conn
    finally:
        conn.close()


def get_engine(conn: sqlite3.Connection = Depends(get_connection)) -> BorrowingEngine:
    return BorrowingEngine(conn)


@app.exception_handler(EntityNotFound)
async def entity_not_found_handler(request: Request, exc: EntityNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


# --- Models ---
class LoanModel(BaseModel):
    book_id: int
    branch_id: int
    card_no: int
    date_out: datetime
    due_date: date


class LoanViewModel(LoanModel):
    title: str
    author: str | None = None
    branch_name: str
    borrower_name: str


class CheckoutModel(BaseModel):
    book_id: int
    branch_id: int
    card_no: int
    due_date: date | None = Field(default=None, description="Defaults to the configured loan period")


class RenewModel(BaseModel):
    due_date: date


class CopiesModel(BaseModel):
    book_id: int
    branch_id: int
    no_of_copies: int
    no_of_available_copies: int


# --- Helpers ---
def _unwrap(result: Result):
    """Return the value of an Ok result or raise the matching HTTP error."""
    if result.ok:
        return result.value
    raise HTTPException(
        status_code=STATUS_BY_KIND.get(result.kind, 500),
        detail={
            "kind": result.kind,
            "error": type(result.error).__name__,
            "message": str(result.error),
        },
    )


def _loan_model(loan: LoanRecord) -> LoanModel:
    return LoanModel(**loan.to_dict())


def _loan_view_model(view: LoanView) -> LoanViewModel:
    return LoanViewModel(
        **view.loan.to_dict(),
        title=view.book.title,
        author=view.book.author.name if view.book.author else None,
        branch_name=view.branch.name,
        borrower_name=view.borrower.name,
    )


LOAN_SORT_KEYS = {
    "due_date": lambda v: v.loan.due_date,
    "date_out": lambda v: v.loan.date_out,
    "title": lambda v: v.book.title.lower(),
}


# --- Health ---
@app.get("/health")
def health(conn: sqlite3.Connection = Depends(get_connection)):
    db_ok = True
    try:
        conn.execute("SELECT 1")
    except sqlite3.Error:
        db_ok = False
    return {
        "status": "healthy" if db_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "db": db_ok,
    }


# --- Loans ---
@app.get("/loans", response_model=List[LoanViewModel])
def list_loans(
    card_no: Optional[int] = Query(None),
    branch_id: Optional[int] = Query(None),
    sort_by: Optional[str] = Query(None, description="due_date, date_out or title"),
    order: str = Query("asc", description="asc or desc"),
    engine: BorrowingEngine = Depends(get_engine),
):
    """List outstanding loans. Without sort_by the order is whatever the store returns."""
    if sort_by is not None and sort_by not in LOAN_SORT_KEYS:
        raise HTTPException(status_code=400, detail="Invalid sort_by. Allowed: due_date, date_out, title")
    if order not in ("asc", "desc"):
        raise HTTPException(status_code=400, detail="Invalid order. Allowed: asc, desc")

    listing = _unwrap(engine.list_all(card_no=card_no, branch_id=branch_id))
    try:
        views = listing.sorted(LOAN_SORT_KEYS[sort_by], reverse=order == "desc") if sort_by else list(listing)
    except LoanError as e:
        _unwrap(Err(e))
    return [_loan_view_model(v) for v in views]


@app.get("/loans/{book_id}/{branch_id}/{card_no}", response_model=LoanModel)
def get_loan(
    book_id: int,
    branch_id: int,
    card_no: int,
    conn: sqlite3.Connection = Depends(get_connection),
    engine: BorrowingEngine = Depends(get_engine),
):
    book, branch, borrower = resolve_parties(Catalog(conn), book_id, branch_id, card_no)
    loan = _unwrap(engine.lookup(book, branch, borrower))
    if loan is None:
        raise HTTPException(status_code=404, detail="Loan not found.")
    return _loan_model(loan)


@app.post("/loans", response_model=LoanModel, status_code=201, dependencies=[Depends(get_api_key)])
def checkout(
    payload: CheckoutModel,
    conn: sqlite3.Connection = Depends(get_connection),
    engine: BorrowingEngine = Depends(get_engine),
):
    """Check a book out of a branch for a borrower."""
    book, branch, borrower = resolve_parties(Catalog(conn), payload.book_id, payload.branch_id, payload.card_no)
    now = datetime.now()
    due_date = payload.due_date or now.date() + timedelta(days=settings.loan_period_days)
    return _loan_model(_unwrap(engine.checkout(book, branch, borrower, now, due_date)))


@app.delete("/loans/{book_id}/{branch_id}/{card_no}", response_model=LoanModel, dependencies=[Depends(get_api_key)])
def return_book(
    book_id: int,
    branch_id: int,
    card_no: int,
    conn: sqlite3.Connection = Depends(get_connection),
    engine: BorrowingEngine = Depends(get_engine),
):
    """Return a borrowed book. Responds with the loan that was closed."""
    book, branch, borrower = resolve_parties(Catalog(conn), book_id, branch_id, card_no)
    return _loan_model(_unwrap(engine.return_book(book, branch, borrower)))


@app.post(
    "/loans/{book_id}/{branch_id}/{card_no}/renew",
    response_model=LoanModel,
    dependencies=[Depends(get_api_key)],
)
def renew(
    book_id: int,
    branch_id: int,
    card_no: int,
    payload: RenewModel,
    conn: sqlite3.Connection = Depends(get_connection),
    engine: BorrowingEngine = Depends(get_engine),
):
    book, branch, borrower = resolve_parties(Catalog(conn), book_id, branch_id, card_no)
    return _loan_model(_unwrap(engine.renew(book, branch, borrower, payload.due_date)))


# --- Copies ---
@app.get("/copies/{book_id}/{branch_id}", response_model=CopiesModel)
def get_copies(book_id: int, branch_id: int, conn: sqlite3.Connection = Depends(get_connection)):
    record = CopiesLedger(conn).get(book_id, branch_id)
    if record is None:
        raise HTTPException(status_code=404, detail="No copies record for this book at this branch.")
    return CopiesModel(**record.to_dict())
