"""CLI commands for pairgate."""

import asyncio
import platform
import signal
from datetime import timedelta

import typer
from rich.console import Console
from rich.table import Table

from pairgate import __version__, __logo__
from pairgate.config.schema import Config

app = typer.Typer(
    name="pairgate",
    help=f"{__logo__} pairgate - Device pairing gateway",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} pairgate v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """pairgate - Device pairing gateway."""
    pass


def build_store(config: Config):
    """Create the pairing code store selected by configuration."""
    from pairgate.pairing.store import FilePairingCodeStore, InMemoryPairingCodeStore

    code_ttl = timedelta(seconds=config.pairing.code_ttl_seconds)
    if config.pairing.store == "file":
        return FilePairingCodeStore(config.pairing.store_file, code_ttl=code_ttl)
    return InMemoryPairingCodeStore(code_ttl=code_ttl)


def build_service(config: Config):
    """Wire store, issuer and session registry into a PairingService."""
    from pairgate.pairing.service import PairingService
    from pairgate.pairing.tokens import TokenIssuer

    issuer = TokenIssuer(ttl=timedelta(seconds=config.pairing.token_ttl_seconds))
    return PairingService(build_store(config), issuer)


# ============================================================================
# Server
# ============================================================================


@app.command()
def serve(
    port: int = typer.Option(None, "--port", "-p", help="Listen port (default from config)"),
    host: str = typer.Option(None, "--host", help="Bind address (default from config)"),
    verbose: bool = typer.Option(False, "--verbose", help="Verbose output"),
):
    """Start the pairing gateway."""
    from pairgate.config.loader import load_config
    from pairgate.gateway.server import GatewayServer
    from pairgate.logging import setup_logging

    config = load_config()
    if port is not None:
        config.gateway.port = port
    if host is not None:
        config.gateway.host = host

    setup_logging(config.logging, verbose=verbose)

    service = build_service(config)
    if config.pairing.store == "memory":
        console.print("[yellow]Warning: in-memory code store; codes cannot be provisioned from the CLI[/yellow]")

    server = GatewayServer(service, config)
    console.print(f"[green]✓[/green] API: http://{config.gateway.host}:{config.gateway.port}")

    asyncio.run(run_server(server))


async def run_server(server, shutdown_event: asyncio.Event | None = None) -> None:
    """Serve until SIGINT/SIGTERM (or ``shutdown_event``), then drain and stop."""
    if shutdown_event is None:
        shutdown_event = asyncio.Event()

    def signal_handler():
        console.print("\n[yellow]Shutting down...[/yellow]")
        shutdown_event.set()

    signals = (signal.SIGINT, signal.SIGTERM)
    loop = asyncio.get_running_loop()
    if platform.system() == "Windows":
        # Windows asyncio doesn't support loop.add_signal_handler
        for sig in signals:
            signal.signal(sig, lambda s, f: loop.call_soon_threadsafe(signal_handler))
    else:
        for sig in signals:
            loop.add_signal_handler(sig, signal_handler)

    try:
        await server.start()
        await shutdown_event.wait()
    finally:
        console.print("[dim]Draining in-flight requests...[/dim]")
        await server.stop()
        if platform.system() != "Windows":
            for sig in signals:
                loop.remove_signal_handler(sig)
        console.print("[green]✓[/green] Shutdown complete")


# ============================================================================
# Pairing Codes
# ============================================================================

code_app = typer.Typer(help="Provision and inspect pairing codes")
app.add_typer(code_app, name="code")


def _file_store():
    from pairgate.config.loader import load_config

    config = load_config()
    if config.pairing.store != "file":
        console.print("[red]Pairing codes can only be managed with the file store (pairing.store = \"file\")[/red]")
        raise typer.Exit(1)
    return build_store(config)


@code_app.command("create")
def code_create(
    user_id: str = typer.Argument(..., help="User the code pairs devices to"),
    device: str = typer.Option(None, "--device", "-d", help="Only this device may redeem the code"),
    ttl: int = typer.Option(None, "--ttl", help="Code lifetime in seconds"),
):
    """Create a new pairing code."""
    store = _file_store()
    record = store.create_code(
        user_id,
        expected_device_id=device,
        ttl=timedelta(seconds=ttl) if ttl else None,
    )
    console.print(f"[green]✓[/green] Pairing code: [bold]{record.code}[/bold]")
    console.print(f"[dim]Expires at {record.expires_at.isoformat()}[/dim]")


@code_app.command("list")
def code_list():
    """List pairing codes."""
    store = _file_store()
    records = store.list_codes()

    if not records:
        console.print("No pairing codes.")
        return

    table = Table(title="Pairing Codes")
    table.add_column("Code", style="cyan")
    table.add_column("User")
    table.add_column("Device")
    table.add_column("Status")
    table.add_column("Expires")

    for r in records:
        table.add_row(
            r.code,
            r.user_id,
            r.expected_device_id or "any",
            r.effective_status(),
            r.expires_at.strftime("%Y-%m-%d %H:%M:%S"),
        )

    console.print(table)


@code_app.command("prune")
def code_prune():
    """Remove stale consumed and expired codes."""
    store = _file_store()
    removed = store.prune()
    console.print(f"[green]✓[/green] Removed {removed} stale code(s)")


if __name__ == "__main__":
    app()
