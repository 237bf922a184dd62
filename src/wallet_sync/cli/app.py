"""CLI for wallet-sync - run the server and inspect the transaction ledger."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from wallet_sync.config import DEFAULT_CONFIG_NAME, AppConfig, load_config, save_config

app = typer.Typer(
    name="wallet-sync",
    help="Reconcile pending wallet transactions and stream live chain events.",
    no_args_is_help=True,
)
console = Console()

_config_path: Path = Path(DEFAULT_CONFIG_NAME)

_STATUS_STYLE = {
    "pending": "yellow",
    "success": "green",
    "failed": "red",
}


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        console.print(f"wallet-sync {version('wallet-sync')}")
        raise typer.Exit()


@app.callback()
def main(
    config: Path = typer.Option(
        Path(DEFAULT_CONFIG_NAME),
        "--config",
        "-c",
        help="Path to config.yaml",
        envvar="WALLET_SYNC_CONFIG",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Reconcile pending wallet transactions and stream live chain events."""
    global _config_path
    _config_path = config


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


def _load() -> AppConfig:
    try:
        return load_config(_config_path)
    except Exception as e:
        console.print(f"[red]Invalid config {_config_path}: {e}[/red]")
        raise typer.Exit(1)


def _with_service(fn):
    """Open the ledger, run ``fn(service)``, and always close it again."""
    from wallet_sync.core.service import WalletSyncService

    async def _go():
        service = WalletSyncService.from_config(_load(), _config_path)
        await service.open()
        try:
            return await fn(service)
        finally:
            await service.shutdown()

    return asyncio.run(_go())


def _records_table(title: str, records) -> Table:
    table = Table(title=title)
    table.add_column("Hash", style="cyan", no_wrap=True)
    table.add_column("Type")
    table.add_column("Value", justify="right")
    table.add_column("Status")
    table.add_column("Block", justify="right", style="dim")
    table.add_column("Time", style="dim")
    for r in records:
        style = _STATUS_STYLE.get(r.status.value, "white")
        table.add_row(
            r.tx_hash,
            r.type.value,
            f"{r.value} {r.token_symbol or ''}".strip(),
            f"[{style}]{r.status.value}[/{style}]",
            str(r.block_number) if r.block_number is not None else "-",
            r.timestamp.strftime("%Y-%m-%d %H:%M"),
        )
    return table


# ------------------------------------------------------------------
# init
# ------------------------------------------------------------------


@app.command()
def init(
    rpc_url: str = typer.Option(None, "--rpc-url", help="JSON-RPC endpoint of the chain"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config"),
):
    """Write a default config.yaml."""
    if _config_path.exists() and not force:
        console.print(f"[yellow]{_config_path} already exists. Use --force to overwrite.[/yellow]")
        raise typer.Exit(1)

    config = AppConfig()
    if rpc_url:
        config.network.rpc_url = rpc_url
    save_config(config, _config_path)
    console.print(f"[green]Wrote {_config_path}[/green] (network: {config.network.name})")


# ------------------------------------------------------------------
# serve
# ------------------------------------------------------------------


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Host to bind to"),
    port: int = typer.Option(None, "--port", "-p", help="Port to serve on"),
    log_level: str = typer.Option(None, "--log-level", "-l", help="Logging level"),
):
    """Run the HTTP/WebSocket server with the monitor and block ticker."""
    from wallet_sync.server.app import run_server

    config = _load()
    level = log_level or config.logging.level
    _configure_logging(level)
    console.print(
        f"[bold green]Starting wallet-sync at "
        f"http://{host or config.server.host}:{port or config.server.port}[/bold green]"
    )
    run_server(config, _config_path, host=host, port=port, log_level=level)


# ------------------------------------------------------------------
# ledger inspection
# ------------------------------------------------------------------


@app.command()
def pending():
    """List transactions still waiting for a receipt."""

    async def _pending(service):
        return await service.ledger.list_pending()

    records = _with_service(_pending)
    if not records:
        console.print("[dim]No pending transactions.[/dim]")
        return
    console.print(_records_table("Pending Transactions", records))


@app.command()
def history(
    wallet: str = typer.Argument(..., help="Wallet address"),
):
    """Show every recorded transaction of a wallet, newest first."""

    async def _history(service):
        return await service.ledger.list_by_wallet(wallet)

    records = _with_service(_history)
    if not records:
        console.print(f"[dim]No transactions for {wallet}.[/dim]")
        return
    console.print(_records_table(f"Transactions of {wallet}", records))


@app.command()
def check(
    tx_hash: str = typer.Argument(..., help="Transaction hash"),
):
    """Reconcile one pending transaction against the chain now."""
    config = _load()
    _configure_logging(config.logging.level)

    async def _check(service):
        return await service.monitor.check_once(tx_hash)

    record = _with_service(_check)
    if record is None:
        console.print(f"[red]Transaction {tx_hash} not found.[/red]")
        raise typer.Exit(1)

    style = _STATUS_STYLE.get(record.status.value, "white")
    console.print(f"[bold]{record.tx_hash}[/bold]: [{style}]{record.status.value}[/{style}]")
    if record.block_number is not None:
        console.print(f"  block {record.block_number}, gas used {record.gas_used}, gas price {record.gas_price}")
    console.print(f"  {config.network.to_network().tx_url(record.tx_hash)}")
