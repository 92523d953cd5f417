"""Typer CLI for the autopr server.

Commands:
- serve: Start the WebSocket server
- init: Initialize configuration
- config: Show configuration
- health: Check a running server
- head: Print the base branch head commit
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from autopr.config_loader import (
    get_global_config_path,
    get_project_config_path,
    init_global_config,
    init_project_config,
)
from autopr.exceptions import AutoPRError
from autopr.settings import get_settings

app = typer.Typer(
    name="autopr",
    help="Turn repository analysis into pull requests",
    no_args_is_help=True,
)

console = Console()


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host to bind to"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to bind to"),
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="Log level"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload (development)"),
):
    """Start the autopr server."""
    import uvicorn

    settings = get_settings()

    host = host or settings.host
    port = port or settings.port
    log_level = log_level or settings.log_level

    console.print("[bold green]Starting autopr server...[/bold green]")
    console.print(f"Host: {host}")
    console.print(f"Port: {port}")
    console.print(f"WebSocket: ws://{host}:{port}/ws")
    console.print()

    uvicorn.run(
        "autopr.main:app",
        host=host,
        port=port,
        log_level=log_level,
        reload=reload,
    )


@app.command()
def init(
    global_config: bool = typer.Option(False, "--global", "-g", help="Initialize global config"),
    path: Optional[Path] = typer.Option(None, "--path", help="Path for project config"),
):
    """Create a configuration file with defaults."""
    if global_config:
        config_path = init_global_config()
        console.print(f"[bold green]Created global config:[/bold green] {config_path}")
        return

    config_path = init_project_config(path or Path.cwd())
    console.print(f"[bold green]Created project config:[/bold green] {config_path}")


@app.command()
def config():
    """Show the effective configuration. Secrets are masked."""
    settings = get_settings()

    table = Table(title="autopr Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Env var", style="magenta")
    table.add_column("Value", style="green")

    for name, field in type(settings).model_fields.items():
        table.add_row(name, field.alias or "", str(getattr(settings, name)))
    console.print(table)

    console.print()
    console.print("[bold]Configuration Sources:[/bold]")
    global_path = get_global_config_path()
    if global_path.exists():
        console.print(f"  [green]✓[/green] Global: {global_path}")
    else:
        console.print(f"  [yellow]○[/yellow] Global: {global_path} (not created)")

    project_path = get_project_config_path()
    if project_path:
        console.print(f"  [green]✓[/green] Project: {project_path}")
    else:
        console.print("  [yellow]○[/yellow] Project: Not found in current directory")


@app.command()
def health(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Server host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Server port"),
):
    """Check server health."""
    import httpx

    settings = get_settings()
    url = f"http://{host or settings.host}:{port or settings.port}/health"

    try:
        response = httpx.get(url, timeout=5.0)
    except httpx.HTTPError as e:
        console.print("[bold red]✗ Cannot connect to server[/bold red]")
        console.print(f"Error: {e}")
        raise typer.Exit(1)

    data = response.json()
    if response.status_code == 200:
        console.print("[bold green]✓ Server is healthy[/bold green]")
        console.print(f"Version: {data.get('version', 'unknown')}")
        console.print(f"Active Sessions: {data.get('active_sessions', 0)}")
    else:
        console.print("[bold red]✗ Server unhealthy[/bold red]")
        console.print(f"Status: {response.status_code}")
        raise typer.Exit(1)


@app.command()
def head(
    branch: Optional[str] = typer.Option(None, "--branch", "-b", help="Branch to resolve"),
):
    """Print the head commit SHA of the base branch (or --branch)."""
    from autopr.github.client import RepositoryClient

    settings = get_settings()
    branch = branch or settings.github_base_branch

    async def resolve() -> str:
        async with RepositoryClient.from_settings(settings) as client:
            return await client.get_branch_head(branch)

    try:
        sha = asyncio.run(resolve())
    except AutoPRError as e:
        console.print(f"[bold red]Failed to fetch {branch} branch reference:[/bold red] {e.message}")
        raise typer.Exit(1)

    console.print(f"{settings.repository}@{branch}: [bold]{sha}[/bold]")


if __name__ == "__main__":
    app()
