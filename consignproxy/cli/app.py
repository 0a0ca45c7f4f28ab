"""Main Typer application — serve the proxy and inspect its stored state.

Entry point: ``consignproxy`` (configured via pyproject.toml scripts).

Commands: serve, show, list, verify.
"""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from consignproxy.config import ProxyConfig, config
from consignproxy.core.handshake import build_service

app = typer.Typer(
    name="consignproxy",
    help="Consignment proxy: upload once, fetch many times, ack or nack once.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

console = Console()


def _settings(data_dir: Path | None) -> ProxyConfig:
    if data_dir is None:
        return config
    return config.model_copy(update={"data_dir": data_dir})


def configure_logging(level: str) -> None:
    """Route stdlib logging through Rich at ``level``."""
    logging.basicConfig(
        level=level.upper(),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


@app.command(name="serve", help="Run the HTTP service.")
def serve_cmd(
    host: str = typer.Option(config.host, help="Interface to bind."),
    port: int = typer.Option(config.port, help="Port to listen on."),
    data_dir: Path = typer.Option(
        None, "--data-dir", "-d", help="Data directory (staging, consignments, app.db)."
    ),
    log_level: str = typer.Option(config.log_level, help="Logging level."),
) -> None:
    """Build the stores and serve the API with uvicorn."""
    import uvicorn

    from consignproxy.api.app import create_app

    configure_logging(log_level)
    settings = _settings(data_dir)
    service = build_service(settings)
    logging.getLogger(__name__).info(
        "Serving consignments from %s on %s:%d (%s)",
        settings.data_dir,
        host,
        port,
        settings.environment,
    )
    uvicorn.run(
        create_app(service),
        host=host,
        port=port,
        log_level=log_level.lower(),
        log_config=None,
    )


@app.command(name="show", help="Show the record for a blinded UTXO.")
def show_cmd(
    blindedutxo: str = typer.Argument(..., help="Token the consignment was uploaded under."),
    data_dir: Path = typer.Option(None, "--data-dir", "-d", help="Data directory."),
) -> None:
    service = build_service(_settings(data_dir))
    record = service.record_store.find_by_token(blindedutxo)
    if record is None:
        console.print(f"[red]No consignment found for[/red] {blindedutxo}")
        raise typer.Exit(code=1)

    stored = service.content_store.exists(record.artifact_address)
    console.print(
        Panel(
            "\n".join([
                f"[bold]Token:[/bold]     {record.token}",
                f"[bold]Artifact:[/bold]  {record.artifact_address}"
                + ("" if stored else " [red](missing)[/red]"),
                f"[bold]State:[/bold]     {record.ack_state.value}",
                f"[bold]Created:[/bold]   {record.created_at.isoformat()}",
                f"[bold]Responded:[/bold] "
                + (record.responded_at.isoformat() if record.responded_at else "-"),
            ]),
            title="Consignment",
            border_style="cyan",
        )
    )


@app.command(name="list", help="List stored consignment records.")
def list_cmd(
    limit: int = typer.Option(50, "--limit", "-n", help="Maximum rows to show."),
    data_dir: Path = typer.Option(None, "--data-dir", "-d", help="Data directory."),
) -> None:
    service = build_service(_settings(data_dir))
    records = service.record_store.list_records(limit=limit)
    if not records:
        console.print("[dim]No consignments stored.[/dim]")
        return

    table = Table(title=f"Consignments ({service.record_store.count()} total)")
    table.add_column("Token", style="cyan", no_wrap=True)
    table.add_column("Artifact", overflow="fold")
    table.add_column("State", justify="center")
    table.add_column("Created")

    styles = {"unset": "dim", "acked": "green", "nacked": "red"}
    for record in records:
        state = record.ack_state.value
        table.add_row(
            record.token,
            record.artifact_address,
            f"[{styles[state]}]{state}[/{styles[state]}]",
            record.created_at.isoformat(timespec="seconds"),
        )
    console.print(table)


@app.command(name="verify", help="Re-hash every stored consignment.")
def verify_cmd(
    data_dir: Path = typer.Option(None, "--data-dir", "-d", help="Data directory."),
) -> None:
    service = build_service(_settings(data_dir))
    store = service.content_store
    checked = 0
    corrupt: list[str] = []
    for address in store.iter_addresses():
        checked += 1
        if not store.verify(address):
            corrupt.append(address)

    for address in corrupt:
        console.print(f"[red]Integrity check failed:[/red] {address}")
    if corrupt:
        raise typer.Exit(code=1)
    console.print(f"[green]{checked} consignment(s) verified.[/green]")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
