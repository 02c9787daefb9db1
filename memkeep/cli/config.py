"""Configuration management CLI commands."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from memkeep.exceptions import MemkeepError

console = Console()

config_app = typer.Typer(help="Manage memkeep configuration")


@config_app.command("show")
def config_show(
    path: Optional[Path] = typer.Option(None, "--path", help="Config file to show (defaults to XDG location)"),
):
    """Show current configuration."""
    from memkeep.config import get_config_path, load_config

    config_path = path or get_config_path()
    try:
        config = load_config(config_path)
    except MemkeepError as e:
        console.print(f"[red]Failed to load configuration: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if config_path.exists():
        console.print(f"[cyan]Configuration file:[/cyan] [dim]{config_path}[/dim]\n")
    else:
        console.print(f"[yellow]No configuration file at {config_path}, showing defaults[/yellow]\n")

    embedder = config.embedder
    console.print(f"[bold]Embedder:[/bold] {embedder.provider} ({embedder.model or 'default model'})")

    store = config.vector_store
    location = "in memory" if store.provider == "memory" else str(store.resolved_db_path())
    console.print(
        f"[bold]Vector store:[/bold] {store.provider} "
        f"[dim]{location}, collection '{store.collection_name}', {store.embedding_model_dims} dims[/dim]"
    )

    if config.llm:
        console.print(f"[bold]LLM:[/bold] {config.llm.provider} ({config.llm.model or 'default model'})")
    else:
        console.print("[dim]No LLM configured[/dim]")

    intelligence = config.intelligence
    if intelligence and intelligence.enabled:
        console.print(
            f"[bold]Intelligence:[/bold] enabled "
            f"[dim](duplicate threshold {intelligence.duplicate_threshold}, "
            f"decay rate {intelligence.decay_rate}, "
            f"reinforcement {intelligence.reinforcement_factor})[/dim]"
        )
    else:
        console.print("[dim]Intelligence disabled[/dim]")


@config_app.command("init")
def config_init(
    from_env: bool = typer.Option(False, "--from-env", help="Seed the file from environment variables / .env"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
    path: Optional[Path] = typer.Option(None, "--path", help="Where to write (defaults to XDG location)"),
):
    """Write a configuration file.

    Examples:
        memkeep config init
        memkeep config init --from-env --force
    """
    from memkeep.config import Config, get_config_path, load_config_from_env, save_config

    config_path = path or get_config_path()
    if config_path.exists() and not force:
        console.print(f"[yellow]Configuration already exists at {config_path} (use --force to overwrite)[/yellow]")
        raise typer.Exit(1)

    try:
        config = load_config_from_env() if from_env else Config()
    except MemkeepError as e:
        console.print(f"[red]Invalid environment configuration: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    written = save_config(config, config_path)
    console.print(f"[green]✓ Configuration written to:[/green] {written}")
