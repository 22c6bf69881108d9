"""Main CLI interface for the whitelist gateway."""

import asyncio
import logging
from typing import Optional

import typer
from rich import print as rich_print
from rich.console import Console
from rich.table import Table

from ..config.manager import ConfigManager
from ..core.manager import GatewayService
from ..storage.sql import SqlRepository

app = typer.Typer(help="Whitelist gateway - connection authorization for a server proxy")
console = Console()

DEFAULT_CONFIG = "whitelist-gateway.yaml"


@app.command()
def start(
    config: str = typer.Option(
        DEFAULT_CONFIG, "--config", "-c", help="Configuration file path"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging"
    ),
):
    """Answer connection events read as JSON lines from stdin."""
    try:
        service = GatewayService.from_config_file(config)
        if verbose:
            setup_logging(verbose)
        else:
            service.setup_logging()
        asyncio.run(service.serve_stdio())
    except KeyboardInterrupt:
        rich_print("\n[yellow]Shutting down whitelist gateway...[/yellow]")
    except Exception as e:
        rich_print(f"[red]Error starting whitelist gateway: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def check(
    username: str = typer.Argument(..., help="Connecting username"),
    stable_id: Optional[str] = typer.Option(
        None, "--stable-id", "-s", help="Stable identifier of the user"
    ),
    config: str = typer.Option(
        DEFAULT_CONFIG, "--config", "-c", help="Configuration file path"
    ),
):
    """Run a single connection attempt through the gateway.

    A request opened by the attempt is kept until it expires, so the command
    blocks for the request timeout in that case.
    """
    try:
        verdict = asyncio.run(check_connection(config, username, stable_id))
    except Exception as e:
        rich_print(f"[red]Error checking connection: {e}[/red]")
        raise typer.Exit(1)

    if verdict.allowed:
        rich_print(f"[green]{username}: allowed[/green]")
    else:
        rich_print(f"[red]{username}: denied ({verdict.reason.value})[/red]")
        if verdict.message:
            rich_print(f"  {verdict.message}")


# Configuration management commands
config_app = typer.Typer(help="Configuration management commands")
app.add_typer(config_app, name="config")


@config_app.command("init")
def init_config(
    config: str = typer.Option(
        DEFAULT_CONFIG, "--config", "-c", help="Configuration file path"
    ),
):
    """Create the configuration file or fill in missing keys."""
    try:
        ConfigManager(config).ensure_config()
        rich_print(f"[green]Configuration ready: {config}[/green]")
    except Exception as e:
        rich_print(f"[red]Error writing configuration: {e}[/red]")
        raise typer.Exit(1)


@config_app.command("validate")
def validate_config(
    config: str = typer.Option(
        DEFAULT_CONFIG, "--config", "-c", help="Configuration file path"
    ),
):
    """Validate configuration file."""
    issues = ConfigManager(config).validate_config()

    if not issues:
        rich_print("[green]Configuration is valid![/green]")
        return

    rich_print("[red]Configuration validation failed:[/red]")
    for issue in issues:
        rich_print(f"  [red]•[/red] {issue}")
    raise typer.Exit(1)


@config_app.command("show")
def show_config(
    config: str = typer.Option(
        DEFAULT_CONFIG, "--config", "-c", help="Configuration file path"
    ),
):
    """Show current configuration."""
    try:
        config_obj = ConfigManager(config).load_config()
    except Exception as e:
        rich_print(f"[red]Error showing configuration: {e}[/red]")
        raise typer.Exit(1)

    rich_print("[bold]Whitelist Gateway Configuration[/bold]")
    rich_print(f"Gateway: {config_obj.gateway.name} (log level {config_obj.gateway.log_level})")
    rich_print(f"Database: {SqlRepository.describe_url(config_obj.database)}")

    timeouts = config_obj.timeouts
    rich_print("\n[bold]Timeouts:[/bold]")
    rich_print(f"  • request timeout: {timeouts.request_timeout:g}s")
    rich_print(f"  • sweep interval: {timeouts.sweep_interval:g}s")
    rich_print(f"  • sweep max age: {timeouts.sweep_max_age:g}s")


# Whitelist commands
whitelist_app = typer.Typer(help="Whitelist commands")
app.add_typer(whitelist_app, name="whitelist")


@whitelist_app.command("add")
def add_to_whitelist(
    username: str = typer.Argument(..., help="Username to whitelist"),
    stable_id: Optional[str] = typer.Option(
        None, "--stable-id", "-s", help="Stable identifier of the user"
    ),
    config: str = typer.Option(
        DEFAULT_CONFIG, "--config", "-c", help="Configuration file path"
    ),
):
    """Add a user to the whitelist."""
    try:
        asyncio.run(add_whitelist_entry(config, username, stable_id))
    except Exception as e:
        rich_print(f"[red]Error adding whitelist entry: {e}[/red]")
        raise typer.Exit(1)

    rich_print(f"[green]{username} added to the whitelist[/green]")


@whitelist_app.command("list")
def list_whitelist(
    config: str = typer.Option(
        DEFAULT_CONFIG, "--config", "-c", help="Configuration file path"
    ),
):
    """List whitelisted users."""
    try:
        asyncio.run(show_whitelist(config))
    except Exception as e:
        rich_print(f"[red]Error listing whitelist: {e}[/red]")
        raise typer.Exit(1)


# Temporary access request commands
requests_app = typer.Typer(help="Temporary access request commands")
app.add_typer(requests_app, name="requests")


@requests_app.command("list")
def list_requests(
    config: str = typer.Option(
        DEFAULT_CONFIG, "--config", "-c", help="Configuration file path"
    ),
):
    """List temporary access requests."""
    try:
        asyncio.run(show_requests(config))
    except Exception as e:
        rich_print(f"[red]Error listing requests: {e}[/red]")
        raise typer.Exit(1)


@requests_app.command("sweep")
def sweep_requests(
    config: str = typer.Option(
        DEFAULT_CONFIG, "--config", "-c", help="Configuration file path"
    ),
):
    """Delete requests older than the configured sweep age."""
    try:
        deleted = asyncio.run(run_sweep(config))
    except Exception as e:
        rich_print(f"[red]Error sweeping requests: {e}[/red]")
        raise typer.Exit(1)

    rich_print(f"[green]Removed {deleted} stale requests[/green]")


# Implementation functions
async def open_repository(config_path: str) -> SqlRepository:
    """Open and initialize the configured repository."""
    config = ConfigManager(config_path).load_config()
    repository = SqlRepository.from_config(config.database)
    await repository.initialize()
    return repository


async def check_connection(config_path: str, username: str, stable_id: Optional[str]):
    """Authorize one connection attempt with a short-lived service."""
    config = ConfigManager(config_path).load_config()
    service = GatewayService(config)

    await service.start()
    try:
        verdict = await service.handle_connection(username, stable_id)

        # The expiry timer dies with this process
        if service.scheduler.pending_timers:
            rich_print(
                f"[yellow]Waiting {config.timeouts.request_timeout:g}s for the request "
                f"of {username} to expire...[/yellow]"
            )
            await service.scheduler.wait_for_expiry()

        return verdict
    finally:
        await service.stop()


async def add_whitelist_entry(config_path: str, username: str, stable_id: Optional[str]):
    repository = await open_repository(config_path)
    try:
        await repository.add_whitelist_entry(username, stable_id)
    finally:
        await repository.close()


async def show_whitelist(config_path: str):
    """Print whitelisted users."""
    repository = await open_repository(config_path)
    try:
        entries = await repository.list_whitelist_entries()
    finally:
        await repository.close()

    if not entries:
        rich_print("[yellow]Whitelist is empty[/yellow]")
        return

    table = Table(title="Whitelist")
    table.add_column("Username", style="cyan")
    table.add_column("Stable ID", style="magenta")

    for entry in entries:
        table.add_row(entry.username, entry.stable_id or "-")

    console.print(table)


async def show_requests(config_path: str):
    """Print temporary access requests."""
    repository = await open_repository(config_path)
    try:
        requests = await repository.list_access_requests()
    finally:
        await repository.close()

    if not requests:
        rich_print("[yellow]No temporary access requests[/yellow]")
        return

    table = Table(title="Temporary Access Requests")
    table.add_column("Username", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Requested", style="yellow")
    table.add_column("Updated", style="blue")

    for request in requests:
        table.add_row(
            request.username,
            request.status.value,
            request.requested_at.isoformat(timespec="seconds"),
            request.updated_at.isoformat(timespec="seconds") if request.updated_at else "-",
        )

    console.print(table)


async def run_sweep(config_path: str) -> int:
    config = ConfigManager(config_path).load_config()
    service = GatewayService(config)

    await service.repository.initialize()
    try:
        return await service.scheduler.sweep_once()
    finally:
        await service.repository.close()


def setup_logging(verbose: bool):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def main():
    """Main entry point for CLI."""
    app()
