"""CLI for splitbill using Typer."""

import logging
import sys
import time

import typer
import uvicorn
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .clients.telegram import TelegramClient
from .config import Settings, load_settings
from .dispatcher import Dispatcher
from .exceptions import ConfigurationError, TelegramAPIError
from .models import Session
from .money import format_currency
from .service import LedgerService
from .settlement import net_balances, settle
from .store import build_store
from .webhook import create_app

app = typer.Typer(
    name="splitbill",
    help="Telegram bot that splits shared expenses for a small group",
)

console = Console()


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def require_token(settings: Settings) -> str:
    """Return the bot token or fail with a configuration error."""
    if not settings.telegram_bot_token:
        raise ConfigurationError("Missing TELEGRAM_BOT_TOKEN in .env")
    return settings.telegram_bot_token


@app.command()
def poll(verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output")):
    """
    Run the bot with long polling.

    Removes any registered webhook first, since Telegram refuses
    getUpdates while one is set.
    """
    setup_logging(verbose)
    logger = logging.getLogger(__name__)

    try:
        settings = load_settings()
        store = build_store(settings)
        client = TelegramClient(require_token(settings))
        dispatcher = Dispatcher(LedgerService(settings, store), client)

        client.delete_webhook()
        me = client.get_me()
        console.print(f"[bold green]Polling as @{me.get('username')}[/bold green]")

        offset = None
        while True:
            try:
                updates = client.get_updates(offset, timeout=settings.poll_timeout)
            except TelegramAPIError as e:
                logger.warning(f"Polling error: {e}")
                time.sleep(5)
                continue

            for update in updates:
                offset = update["update_id"] + 1
                try:
                    dispatcher.handle_update(update)
                except Exception:
                    logger.exception(f"Failed to handle update {update['update_id']}")

    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "client" in locals():
            client.close()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to bind"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to listen on"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Run the webhook server (POST updates to /api/telegram)."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        store = build_store(settings)
        client = TelegramClient(require_token(settings))
        dispatcher = Dispatcher(LedgerService(settings, store), client)

        uvicorn.run(create_app(dispatcher), host=host, port=port)

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "client" in locals():
            client.close()


@app.command("set-webhook")
def set_webhook(
    url: str = typer.Option(
        None, "--url", help="Webhook URL (defaults to WEBHOOK_URL from .env)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Register the webhook URL with Telegram."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        target = url or settings.webhook_url
        if not target:
            raise ConfigurationError("No webhook URL given and WEBHOOK_URL is not set")

        with TelegramClient(require_token(settings)) as client:
            client.set_webhook(target)

        console.print(f"[bold green]✓ Webhook set to {target}[/bold green]")

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)


@app.command()
def ledgers(verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output")):
    """List stored ledger keys, most recently updated first (SQLite store)."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        keys = build_store(settings).keys()
        if not keys:
            console.print("[yellow]No ledgers stored.[/yellow]")
            return

        for key in keys:
            console.print(f"  {escape(key)}")

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)


def display_session(key: str, session: Session, settings: Settings):
    """Display a ledger's roster and expenses in a table."""
    console.print(f"\n[bold]Ledger {escape(key)}[/bold]")
    console.print(f"  Members: {escape(', '.join(session.members))}")
    console.print()

    table = Table(title="Expenses", show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim", width=4)
    table.add_column("Payer", style="cyan")
    table.add_column("Amount", justify="right")
    table.add_column("Participants", style="yellow")
    table.add_column("Note", no_wrap=False)

    for index, expense in enumerate(session.items, start=1):
        table.add_row(
            str(index),
            escape(expense.payer),
            format_currency(
                expense.amount, settings.currency_symbol, settings.currency_decimals
            ),
            escape(", ".join(expense.participants)),
            escape(expense.note) if expense.note else "[dim]—[/dim]",
        )

    console.print(table)


@app.command()
def show(
    key: str = typer.Argument(..., help="Ledger key (chat ID or group chat ID)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show the stored roster and expenses of a ledger (SQLite store)."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        store = build_store(settings)
        session = store.get(key)
        if session is None:
            console.print(f"[yellow]No ledger stored for {escape(key)}.[/yellow]")
            return

        display_session(key, session, settings)

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)


@app.command("settle")
def settle_cmd(
    key: str = typer.Argument(..., help="Ledger key (chat ID or group chat ID)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Print who pays whom for a stored ledger, plus each member's balance."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        store = build_store(settings)
        session = store.get(key)
        if session is None:
            console.print(f"[yellow]No ledger stored for {escape(key)}.[/yellow]")
            return

        _, rendered = settle(
            session.members,
            session.items,
            settings.currency_symbol,
            settings.currency_decimals,
        )
        console.print(f"\n[bold]Settlement for {escape(key)}:[/bold]")
        console.print(f"{escape(rendered)}\n")

        table = Table(title="Balances", show_header=True, header_style="bold magenta")
        table.add_column("Member", style="cyan")
        table.add_column("Net", justify="right")
        for member, balance in net_balances(session.members, session.items).items():
            color = "green" if balance >= 0 else "red"
            amount = format_currency(
                balance, settings.currency_symbol, settings.currency_decimals
            )
            table.add_row(escape(member), f"[{color}]{amount}[/{color}]")
        console.print(table)

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)


if __name__ == "__main__":
    app()
