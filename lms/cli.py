import subprocess
import sys
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.table import Table

from lms import database
from lms.config import settings
from lms.errors import EntityNotFound, LoanError
from lms.result import Result
from lms.services import AdministratorService, LibrarianService, PatronService

APP_NAME = "Library Loans CLI"

console = Console()
app = typer.Typer(help=APP_NAME)

DATE_FORMATS = ["%Y-%m-%d"]


@contextmanager
def _connection() -> Iterator:
    conn = database.get_db_connection()
    try:
        yield conn
    finally:
        conn.close()


def _report(result: Result, success: str) -> None:
    """Print the outcome of a loan operation; failures exit with code 1."""
    if result.ok:
        console.print(f"[green]{success}[/]")
        return
    console.print(f"[bold red]{type(result.error).__name__}:[/] {result.error}")
    raise typer.Exit(code=1)


def _loans_table(views) -> Table:
    table = Table(title="Outstanding Loans", header_style="bold cyan")
    table.add_column("Book", style="magenta", no_wrap=True)
    table.add_column("Title")
    table.add_column("Branch")
    table.add_column("Borrower")
    table.add_column("Due", no_wrap=True)
    for view in views:
        table.add_row(
            str(view.book.id),
            view.book.title,
            view.branch.name,
            f"{view.borrower.name} ({view.borrower.card_no})",
            view.loan.due_date.isoformat(),
        )
    return table


@app.command("init-db")
def cli_init_db():
    """Create the database tables if they do not exist yet."""
    database.initialize_database()
    console.print(f"Database ready: {database.DATABASE_FILE}")


@app.command("loans")
def cli_loans(
    card_no: Optional[int] = typer.Option(None, "--card-no", "-c", help="Only this borrower's loans"),
    branch_id: Optional[int] = typer.Option(None, "--branch-id", "-b", help="Only loans from this branch"),
):
    """List outstanding loans, soonest due first."""
    with _connection() as conn:
        try:
            if card_no is not None:
                views = PatronService(conn, card_no).loans()
            elif branch_id is not None:
                views = LibrarianService(conn, branch_id).loans()
            else:
                views = AdministratorService(conn).loans()
            rows = views.sorted(lambda v: v.loan.due_date)
        except LoanError as e:
            console.print(f"[bold red]{type(e).__name__}:[/] {e}")
            raise typer.Exit(code=1)
    if not rows:
        console.print("No outstanding loans.")
        return
    console.print(_loans_table(rows))
    console.print(f"[dim]{len(rows)} loan(s)[/]")


@app.command("checkout")
def cli_checkout(
    book_id: int,
    branch_id: int,
    card_no: int,
    due: Optional[datetime] = typer.Option(None, "--due", formats=DATE_FORMATS, help="Due date (YYYY-MM-DD)"),
):
    """Check a book out of a branch for a borrower."""
    with _connection() as conn:
        try:
            result = PatronService(conn, card_no).check_out(book_id, branch_id, due_date=due.date() if due else None)
        except EntityNotFound as e:
            console.print(f"[bold red]{e}[/]")
            raise typer.Exit(code=1)
        due_date = result.value.due_date.isoformat() if result.ok else None
        _report(result, f"Checked out book {book_id} to card {card_no}, due {due_date}")


@app.command("return")
def cli_return(book_id: int, branch_id: int, card_no: int):
    """Return a borrowed book."""
    with _connection() as conn:
        try:
            result = PatronService(conn, card_no).return_book(book_id, branch_id)
        except EntityNotFound as e:
            console.print(f"[bold red]{e}[/]")
            raise typer.Exit(code=1)
        _report(result, f"Returned book {book_id} to branch {branch_id}")


@app.command("renew")
def cli_renew(
    book_id: int,
    branch_id: int,
    card_no: int,
    due: Optional[datetime] = typer.Option(
        None, "--due", formats=DATE_FORMATS, help="New due date; defaults to one more loan period"
    ),
):
    """Renew a loan."""
    with _connection() as conn:
        try:
            if due is None:
                result = PatronService(conn, card_no).renew(book_id, branch_id)
            else:
                result = AdministratorService(conn).override_due_date(book_id, branch_id, card_no, due.date())
        except EntityNotFound as e:
            console.print(f"[bold red]{e}[/]")
            raise typer.Exit(code=1)
        due_date = result.value.due_date.isoformat() if result.ok else None
        _report(result, f"Renewed book {book_id} for card {card_no}, now due {due_date}")


@app.command("copies")
def cli_copies(branch_id: int):
    """Show the copy inventory of a branch."""
    with _connection() as conn:
        records = LibrarianService(conn, branch_id).copies()
    if not records:
        console.print(f"Branch {branch_id} holds no copies.")
        return
    table = Table(title=f"Copies at branch {branch_id}", header_style="bold cyan")
    table.add_column("Book", style="magenta")
    table.add_column("Total", justify="right")
    table.add_column("Available", justify="right")
    for record in records:
        table.add_row(str(record.book_id), str(record.no_of_copies), str(record.no_of_available_copies))
    console.print(table)


@app.command("set-copies")
def cli_set_copies(book_id: int, branch_id: int, total: int):
    """Set how many copies of a book a branch owns."""
    with _connection() as conn:
        try:
            result = LibrarianService(conn, branch_id).set_copies(book_id, total)
        except (EntityNotFound, ValueError) as e:
            console.print(f"[bold red]{e}[/]")
            raise typer.Exit(code=1)
        available = result.value.no_of_available_copies if result.ok else None
        _report(result, f"Book {book_id} at branch {branch_id}: {total} copies, {available} available")


@app.command("serve")
def cli_serve(
    host: Optional[str] = typer.Option(None, "--host", help="Defaults to API_HOST"),
    port: Optional[int] = typer.Option(None, "--port", help="Defaults to API_PORT"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
):
    """Start the HTTP API with Uvicorn."""
    host = host or settings.api_host
    port = int(port or settings.api_port)
    console.print(f"Starting API on http://{host}:{port}/")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "lms.api:app",
        "--host", host,
        "--port", str(port),
        "--log-level", settings.log_level.lower(),
    ]
    if reload:
        args.append("--reload")
    try:
        subprocess.run(args, check=False)
    except FileNotFoundError:
        console.print("[bold red]Error:[/] `uvicorn` is not installed in this environment.")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
