"""
xeroquote CLI — command-line interface.

Usage:
    xeroquote auth
    xeroquote quote --contact "Acme Ltd" --item "Consulting|5|$150" --item "Travel|2|75"
    xeroquote quote --file quote.yaml --yes --send
    xeroquote send <quote-id>
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, TypeVar

import typer
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from xeroquote import __version__
from xeroquote.errors import FormatError, XeroQuoteError

app = typer.Typer(
    name="xeroquote",
    help="Create Xero quotes from structured quote requests",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

T = TypeVar("T")

SAMPLE_QUOTE: dict[str, Any] = {
    "contact_name": "Test Customer Ltd",
    "contact_email": "test@example.com",
    "line_items": [
        {"description": "Website Design & Development", "quantity": 1, "unit_amount": 2500.00},
        {"description": "Hosting Setup (annual)", "quantity": 1, "unit_amount": 250.00},
        {"description": "Training Session", "quantity": 2, "unit_amount": 150.00},
    ],
    "reference": "TEST-001",
    "terms": "Payment due within 30 days",
}


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold]xeroquote[/bold] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Log API activity to stderr",
    ),
) -> None:
    """Create Xero quotes from the command line."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]✗ {message}[/red]")
    return typer.Exit(1)


def _load_config(config: str | None):  # noqa: ANN202
    from xeroquote.config import XeroQuoteConfig

    config_path = config if config and Path(config).exists() else None
    return XeroQuoteConfig.load(config_path)


def _run(coro: Awaitable[T]) -> T:
    """Run a coroutine, turning xeroquote errors into a clean exit."""
    try:
        return asyncio.run(coro)  # type: ignore[arg-type]
    except XeroQuoteError as e:
        raise _fail(str(e)) from e


def _parse_item(value: str) -> dict[str, Any]:
    """Parse ``"description|quantity|unit price[|account code]"``."""
    from xeroquote.quotes.mapper import parse_currency, parse_quantity

    parts = [p.strip() for p in value.split("|")]
    if len(parts) not in (3, 4):
        raise FormatError(
            f"Invalid --item {value!r}: expected 'description|quantity|unit price[|account code]'"
        )

    item: dict[str, Any] = {
        "description": parts[0],
        "quantity": parse_quantity(parts[1]),
        "unit_amount": parse_currency(parts[2]),
    }
    if len(parts) == 4 and parts[3]:
        item["account_code"] = parts[3]
    return item


def _load_request(path: str) -> dict[str, Any]:
    """Load a quote request from a JSON or YAML file."""
    file_path = Path(path)
    if not file_path.exists():
        raise _fail(f"Quote file not found: {file_path}")
    with open(file_path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise _fail(f"Quote file {file_path} must contain a mapping")
    return data


@app.command()
def auth(
    config: str = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
    no_browser: bool = typer.Option(False, "--no-browser", help="Print the URL instead of opening it"),
    timeout: float = typer.Option(300, "--timeout", help="Seconds to wait for the browser callback"),
) -> None:
    """Authorize xeroquote with your Xero organisation (run once)."""
    from xeroquote.auth.oauth2 import authorize_interactive

    console.print(Panel.fit("[bold blue]Xero OAuth Authorization[/bold blue]", subtitle=f"v{__version__}"))

    cfg = _load_config(config)

    def show_url(url: str) -> None:
        console.print("1. Open this URL in your browser:\n")
        console.print(url, soft_wrap=True)
        console.print("\n2. Authorize the application")
        console.print("3. You'll be redirected back automatically\n")
        console.print(f"[dim]Waiting for callback on {cfg.redirect_uri} ...[/dim]")

    try:
        result = authorize_interactive(
            cfg,
            open_browser=not no_browser,
            timeout=timeout,
            on_consent_url=show_url,
        )
    except XeroQuoteError as e:
        raise _fail(f"OAuth setup failed: {e}") from e
    except OSError as e:
        raise _fail(f"Could not start callback server on port {cfg.callback_port}: {e}") from e

    console.print(f"\n[green]✓[/green] Connected to Xero organisation: [bold]{result.tenant_name}[/bold]")
    console.print(f"[green]✓[/green] Tenant ID: {result.tenant_id}")
    console.print(f"[green]✓[/green] Tokens saved to {cfg.credentials_path}")
    console.print("\nAdd this to your .env file:")
    console.print(f"XERO_TENANT_ID={result.tenant_id}", markup=False)


@app.command()
def quote(
    file: str = typer.Option(None, "--file", "-f", help="JSON or YAML file with the quote request"),
    contact: str = typer.Option(None, "--contact", help="Contact (customer) name"),
    email: str = typer.Option(None, "--email", help="Contact email"),
    item: list[str] = typer.Option(
        None,
        "--item",
        "-l",
        help="Line item as 'description|quantity|unit price[|account code]' (repeatable)",
    ),
    reference: str = typer.Option(None, "--reference", "-r", help="Quote reference"),
    terms: str = typer.Option(None, "--terms", help="Terms and conditions text"),
    quote_date: str = typer.Option(None, "--date", help="Quote date (YYYY-MM-DD, default today)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    send: bool = typer.Option(False, "--send", help="Mark the quote as sent after creating it"),
    config: str = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
) -> None:
    """Validate a quote request, show a summary, and create it in Xero as DRAFT."""
    request = _load_request(file) if file else {}

    try:
        if item:
            request["line_items"] = [_parse_item(entry) for entry in item]
    except FormatError as e:
        raise _fail(str(e)) from e

    for key, value in (
        ("contact_name", contact),
        ("contact_email", email),
        ("reference", reference),
        ("terms", terms),
        ("date", quote_date),
    ):
        if value is not None:
            request[key] = value

    _submit(request, yes=yes, send=send, config=config)


@app.command()
def demo(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    config: str = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
) -> None:
    """Create a sample quote to verify the setup."""
    _submit(dict(SAMPLE_QUOTE), yes=yes, send=False, config=config)


def _submit(request: dict[str, Any], *, yes: bool, send: bool, config: str | None) -> None:
    from xeroquote.quotes.mapper import normalize_quote, render_summary
    from xeroquote.quotes.validator import validate_quote

    try:
        cfg = _load_config(config)
        cfg.require_client_credentials()
    except XeroQuoteError as e:
        raise _fail(str(e)) from e

    validation = validate_quote(request)
    if not validation.valid:
        console.print("[red]✗ Validation failed:[/red]")
        for error in validation.errors:
            console.print(f"  - {error}")
        raise typer.Exit(1)

    normalized = normalize_quote(request, default_account_code=cfg.default_account_code)
    console.print(Panel(Text(render_summary(normalized)), title="Quote Summary", expand=False))

    if not yes and not typer.confirm("Create this quote in Xero as DRAFT?"):
        console.print("[dim]Cancelled.[/dim]")
        raise typer.Exit()

    with console.status("[bold green]Creating quote in Xero...[/bold green]"):
        result = _run(_create_quote(cfg, normalized, send))

    table = Table(title="Quote Created", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Quote Number", result.quote_number or "-")
    table.add_row("Quote ID", result.quote_id)
    table.add_row("Status", "SENT" if send else "DRAFT")
    table.add_row("View in Xero", result.url)
    console.print(table)

    if not send:
        console.print("[dim]The quote is a DRAFT. Edit it or mark it as sent in Xero.[/dim]")


async def _create_quote(cfg, request, send: bool):  # noqa: ANN001, ANN202
    from xeroquote.client import XeroQuoteClient

    async with XeroQuoteClient(cfg) as client:
        await client.initialize()
        result = await client.create_quote(request)
        if send:
            await client.mark_quote_as_sent(result.quote_id)
        return result


@app.command()
def send(
    quote_id: str = typer.Argument(..., help="Xero QuoteID"),
    config: str = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
) -> None:
    """Mark a quote as sent (no email is delivered)."""

    async def _send() -> None:
        from xeroquote.client import XeroQuoteClient

        async with XeroQuoteClient(_load_config(config)) as client:
            await client.initialize()
            await client.mark_quote_as_sent(quote_id)

    _run(_send())
    console.print(f"[green]✓[/green] Quote {quote_id} marked as SENT")


@app.command()
def show(
    quote_id: str = typer.Argument(..., help="Xero QuoteID"),
    config: str = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
) -> None:
    """Show a quote stored in Xero."""
    from xeroquote.connectors.xero_connector import quote_url

    async def _get():  # noqa: ANN202
        from xeroquote.client import XeroQuoteClient

        async with XeroQuoteClient(_load_config(config)) as client:
            await client.initialize()
            return await client.get_quote(quote_id)

    found = _run(_get())
    if found is None:
        raise _fail(f"Quote {quote_id} not found")

    table = Table(title=f"Quote {found.quote_number or found.quote_id}", show_lines=True)
    table.add_column("Description", style="bold")
    table.add_column("Qty", justify="right")
    table.add_column("Unit Price", justify="right")
    table.add_column("Amount", justify="right")
    for li in found.line_items:
        table.add_row(li.description, f"{li.quantity:g}", f"{li.unit_amount:,.2f}", f"{li.line_total:,.2f}")

    console.print(table)
    console.print(f"Status: [bold]{found.status.value}[/bold]")
    if found.contact:
        console.print(f"Contact: {found.contact.name}")
    if found.total is not None:
        console.print(f"Total: {found.total:,.2f}")
    console.print(f"View in Xero: {quote_url(found.quote_id)}")


@app.command()
def status(
    config: str = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
) -> None:
    """Show the stored credentials and token expiry."""
    from xeroquote.auth.credentials import CredentialStore

    cfg = _load_config(config)
    store = CredentialStore(cfg.credentials_path)
    try:
        creds = store.load()
    except XeroQuoteError as e:
        raise _fail(str(e)) from e

    if creds.seconds_remaining <= 0:
        state = "[red]Expired (will refresh on next run)[/red]"
    elif creds.is_expired:
        state = "[yellow]Expiring soon (will refresh on next run)[/yellow]"
    else:
        state = "[green]Valid[/green]"

    table = Table(title="Xero Credentials", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("File", str(store.path))
    table.add_row("Tenant ID", cfg.tenant_id or creds.tenant_id or "-")
    table.add_row("Updated", creds.updated_at or "-")
    table.add_row("Access token expires", datetime.fromtimestamp(creds.expires_at).isoformat(timespec="seconds"))
    table.add_row("Status", state)
    console.print(table)


if __name__ == "__main__":
    app()
