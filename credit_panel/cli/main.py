"""
CLI interface for Credit Panel.

Provides command-line access to pricing, coupons, the ranking and the API server.
"""

import logging
import sys
from decimal import Decimal
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from credit_panel.config.loader import PanelConfig, load_optional_config
from credit_panel.config.settings import get_settings
from credit_panel.core.coupons import validate_coupon
from credit_panel.core.errors import PanelError
from credit_panel.core.polling import PeriodicPoller
from credit_panel.core.pricing import (
    FIXED_PACKAGES,
    credits_from_balance,
    format_currency,
    price,
    price_per_100,
)
from credit_panel.core.ranking import build_ranking
from credit_panel.demo.seed_demo_data import seed_demo_data
from credit_panel.storage.models import RankingEntry
from credit_panel.storage.repository import SQLiteStore, get_store

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


def _load_config(config_path: Optional[str]) -> PanelConfig:
    return load_optional_config(config_path or get_settings().CONFIG_PATH)


def _local_store() -> SQLiteStore:
    return SQLiteStore(get_settings().DB_PATH)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at INFO level")
):
    """Credit Panel CLI."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    if ctx.invoked_subcommand is None:
        console.print("Credit Panel - Use --help to see available commands")


@app.command()
def init():
    """Initialize the local SQLite database."""
    try:
        _local_store().initialize_schema()
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def seed():
    """Load demo coupons, users and generations into the local database."""
    try:
        seed_demo_data(_local_store())
        console.print("[green]✓[/] Demo data inserted")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error seeding database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command("price")
def price_command(credits: int = typer.Argument(..., help="Number of credits")):
    """Show the price of a credit quantity."""
    total = price(credits)
    console.print(f"{credits:,} credits: [bold]{format_currency(total)}[/]")
    if credits > 0:
        console.print(f"Per 100 credits: {format_currency(price_per_100(credits))}")


@app.command()
def packages():
    """List the fixed credit packages."""
    table = Table(title="Credit Packages")
    table.add_column("Package")
    table.add_column("Credits", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Per 100", justify="right")
    table.add_column("Discount")
    for package in FIXED_PACKAGES:
        table.add_row(
            package.name,
            f"{package.credits:,}",
            format_currency(package.price),
            format_currency(price_per_100(package.credits)),
            package.discount_label or "-"
        )
    console.print(table)


@app.command()
def credits(balance: str = typer.Argument(..., help="Available balance, e.g. 25.50")):
    """Show how many credits a balance can buy."""
    try:
        amount = credits_from_balance(balance)
    except PanelError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    console.print(
        f"{format_currency(Decimal(balance.strip()))} buys [bold]{amount:,}[/] credits "
        f"({format_currency(price(amount))})"
    )


@app.command()
def coupon(
    code: str = typer.Argument(..., help="Coupon code"),
    amount: str = typer.Argument(..., help="Purchase amount"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Panel config YAML")
):
    """Validate a coupon code against a purchase amount."""
    try:
        panel_config = _load_config(config)
        result = validate_coupon(
            get_store(),
            code,
            amount,
            minimum_purchase=panel_config.coupons.minimum_purchase
        )
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if not result.valid:
        console.print(f"[yellow]✗[/] {result.message}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"[green]✓[/] {result.description}")
    console.print(f"Discount: {format_currency(result.discount)}")
    console.print(f"Final amount: [bold]{format_currency(result.final_amount)}[/]")
    sys.exit(EXIT_CODE_PASS)


def _ranking_table(entries: List[RankingEntry]) -> Table:
    table = Table(title="Reseller Ranking")
    table.add_column("#", justify="right")
    table.add_column("Reseller")
    table.add_column("Credits", justify="right")
    for entry in entries:
        table.add_row(str(entry.position), entry.masked_name, f"{entry.credits:,}")
    return table


@app.command()
def ranking(
    watch: Optional[float] = typer.Option(
        None,
        "--watch",
        "-w",
        help="Refresh every N seconds until interrupted"
    ),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Panel config YAML")
):
    """Show the top resellers by credits earned."""
    try:
        ranking_config = _load_config(config).ranking
        store = get_store()
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    def show() -> None:
        entries = build_ranking(
            store,
            min_credits=ranking_config.min_credits,
            limit=ranking_config.limit,
            page_size=ranking_config.page_size,
            identity_page_size=ranking_config.identity_page_size
        )
        if not entries:
            console.print("[dim]No resellers ranked yet.[/]")
            return
        console.print(_ranking_table(entries))

    if watch:
        poller = PeriodicPoller(watch, show, name="ranking-watch")
        try:
            poller.start()
            poller.wait()
        except KeyboardInterrupt:
            pass
        finally:
            poller.stop()
        sys.exit(EXIT_CODE_PASS)

    try:
        show()
    except PanelError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port")
):
    """Run the HTTP API."""
    import uvicorn

    from credit_panel.api.app import create_app

    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    app()
