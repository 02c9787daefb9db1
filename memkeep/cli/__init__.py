"""memkeep CLI application - main entry point."""

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from memkeep.cli.config import config_app
from memkeep.exceptions import MemkeepError
from memkeep.memory import MemoryClient
from memkeep.options import AddOptions, DeleteAllOptions, GetAllOptions, SearchOptions
from memkeep.schema import Memory

app = typer.Typer(
    name="memkeep",
    help="Long-term memory store for AI agents",
    no_args_is_help=True,
)

console = Console()

CONFIG_OPTION_HELP = "Path to config.json (defaults to the XDG config file, then environment variables)"


def _get_client(config_path: Optional[Path] = None) -> MemoryClient:
    from memkeep.config import get_config_path, load_config, load_config_from_env

    path = config_path or get_config_path()
    if config_path is not None or path.exists():
        config = load_config(path)
    else:
        config = load_config_from_env()
    return MemoryClient.from_config(config)


@contextmanager
def _client(config_path: Optional[Path]) -> Iterator[MemoryClient]:
    """Open a client, print memkeep errors in red and exit 1."""
    client = None
    try:
        client = _get_client(config_path)
        yield client
    except MemkeepError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    finally:
        if client is not None:
            try:
                client.close()
            except MemkeepError as e:
                console.print(f"[red]Error: {escape(str(e))}[/red]")
                raise typer.Exit(1)


def _print_memories(memories: List[Memory], title: str, show_score: bool = False) -> None:
    if not memories:
        console.print("[yellow]No memories found[/yellow]")
        return

    table = Table(title=f"{title} ({len(memories)} found)")
    table.add_column("ID", style="cyan", no_wrap=True)
    if show_score:
        table.add_column("Score", justify="right", style="green")
    table.add_column("User", style="dim")
    table.add_column("Agent", style="dim")
    table.add_column("Strength", justify="right")
    table.add_column("Content")

    for memory in memories:
        row = [str(memory.id)]
        if show_score:
            row.append(f"{memory.score:.4f}" if memory.score is not None else "-")
        row += [
            memory.user_id,
            memory.agent_id or "-",
            f"{memory.retention_strength:.2f}",
            escape(memory.content),
        ]
        table.add_row(*row)

    console.print(table)


def _print_json(data) -> None:
    console.print_json(json.dumps(data))


@app.command()
def add(
    content: str = typer.Argument(..., help="Fact to remember"),
    user: str = typer.Option(..., "--user", "-u", help="Owning user ID"),
    agent: Optional[str] = typer.Option(None, "--agent", "-a", help="Owning agent ID"),
    metadata: Optional[str] = typer.Option(None, "--metadata", help="Metadata as a JSON object"),
    infer: bool = typer.Option(False, "--infer", help="Merge into a near-duplicate instead of inserting"),
    config: Optional[Path] = typer.Option(None, "--config", help=CONFIG_OPTION_HELP),
):
    """Add a memory.

    Examples:
        memkeep add "User likes coffee" --user u1
        memkeep add "Prefers dark roast" --user u1 --infer --metadata '{"topic": "coffee"}'
    """
    meta = {}
    if metadata:
        try:
            meta = json.loads(metadata)
        except json.JSONDecodeError as e:
            console.print(f"[red]Invalid metadata JSON: {escape(str(e))}[/red]")
            raise typer.Exit(1)
        if not isinstance(meta, dict):
            console.print("[red]Metadata must be a JSON object[/red]")
            raise typer.Exit(1)

    with _client(config) as client:
        memory = client.add(content, AddOptions(user_id=user, agent_id=agent, metadata=meta, infer=infer))

    console.print(f"[green]✓ Stored memory[/green] [cyan]{memory.id}[/cyan]")
    console.print(f"[dim]{escape(memory.content)}[/dim]")


@app.command()
def search(
    query: str = typer.Argument(..., help="Search text"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Restrict to a user"),
    agent: Optional[str] = typer.Option(None, "--agent", "-a", help="Restrict to an agent"),
    limit: int = typer.Option(10, "--limit", "-n", help="Maximum number of results"),
    min_score: float = typer.Option(0.0, "--min-score", help="Minimum similarity score"),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
    config: Optional[Path] = typer.Option(None, "--config", help=CONFIG_OPTION_HELP),
):
    """Search memories by meaning."""
    with _client(config) as client:
        results = client.search(
            query, SearchOptions(user_id=user, agent_id=agent, limit=limit, min_score=min_score)
        )

    if as_json:
        _print_json([m.to_dict() for m in results])
    else:
        _print_memories(results, "Search results", show_score=True)


@app.command()
def get(
    memory_id: int = typer.Argument(..., help="Memory ID"),
    config: Optional[Path] = typer.Option(None, "--config", help=CONFIG_OPTION_HELP),
):
    """Show a single memory as JSON."""
    with _client(config) as client:
        memory = client.get(memory_id)

    _print_json(memory.to_dict())


@app.command()
def update(
    memory_id: int = typer.Argument(..., help="Memory ID"),
    content: str = typer.Argument(..., help="Replacement content"),
    config: Optional[Path] = typer.Option(None, "--config", help=CONFIG_OPTION_HELP),
):
    """Replace a memory's content."""
    with _client(config) as client:
        memory = client.update(memory_id, content)

    console.print(f"[green]✓ Updated memory[/green] [cyan]{memory.id}[/cyan]")


@app.command()
def delete(
    memory_id: int = typer.Argument(..., help="Memory ID"),
    config: Optional[Path] = typer.Option(None, "--config", help=CONFIG_OPTION_HELP),
):
    """Delete a memory."""
    with _client(config) as client:
        client.delete(memory_id)

    console.print(f"[green]✓ Deleted memory[/green] [cyan]{memory_id}[/cyan]")


@app.command("list")
def list_memories(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Restrict to a user"),
    agent: Optional[str] = typer.Option(None, "--agent", "-a", help="Restrict to an agent"),
    limit: int = typer.Option(100, "--limit", "-n", help="Maximum number of results"),
    offset: int = typer.Option(0, "--offset", help="Number of memories to skip"),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
    config: Optional[Path] = typer.Option(None, "--config", help=CONFIG_OPTION_HELP),
):
    """List memories, newest first."""
    with _client(config) as client:
        memories = client.get_all(GetAllOptions(user_id=user, agent_id=agent, limit=limit, offset=offset))

    if as_json:
        _print_json([m.to_dict() for m in memories])
    else:
        _print_memories(memories, "Memories")


@app.command("delete-all")
def delete_all(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Restrict to a user"),
    agent: Optional[str] = typer.Option(None, "--agent", "-a", help="Restrict to an agent"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    config: Optional[Path] = typer.Option(None, "--config", help=CONFIG_OPTION_HELP),
):
    """Delete every memory in scope."""
    if not yes:
        scope = f"user '{user}'" if user else "ALL users"
        if agent:
            scope += f", agent '{agent}'"
        if not typer.confirm(f"Delete all memories for {scope}?"):
            console.print("[yellow]Aborted[/yellow]")
            raise typer.Exit(0)

    with _client(config) as client:
        count = client.delete_all(DeleteAllOptions(user_id=user, agent_id=agent))

    console.print(f"[green]✓ Deleted {count} memories[/green]")


@app.command()
def reinforce(
    memory_id: int = typer.Argument(..., help="Memory ID"),
    config: Optional[Path] = typer.Option(None, "--config", help=CONFIG_OPTION_HELP),
):
    """Record an access to a memory, boosting its retention."""
    with _client(config) as client:
        memory = client.reinforce(memory_id)

    console.print(
        f"[green]✓ Reinforced memory[/green] [cyan]{memory.id}[/cyan] "
        f"(strength {memory.retention_strength:.2f})"
    )


@app.command()
def retention(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Restrict to a user"),
    agent: Optional[str] = typer.Option(None, "--agent", "-a", help="Restrict to an agent"),
    limit: int = typer.Option(100, "--limit", "-n", help="Maximum number of memories to refresh"),
    config: Optional[Path] = typer.Option(None, "--config", help=CONFIG_OPTION_HELP),
):
    """Recompute retention strength and show which memories are fading."""
    with _client(config) as client:
        statuses = client.refresh_retention(GetAllOptions(user_id=user, agent_id=agent, limit=limit))

    if not statuses:
        console.print("[yellow]No memories found[/yellow]")
        return

    table = Table(title=f"Retention ({len(statuses)} memories)")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Strength", justify="right")
    table.add_column("Next review", style="dim")
    table.add_column("Archive", justify="center")

    for status in statuses:
        table.add_row(
            str(status.memory_id),
            f"{status.retention_strength:.4f}",
            status.next_review_at.strftime("%Y-%m-%d %H:%M"),
            "[red]yes[/red]" if status.should_archive else "[green]no[/green]",
        )

    console.print(table)


@app.command()
def version():
    """Show version information."""
    from memkeep import __version__

    console.print(f"memkeep version {__version__}")


app.add_typer(config_app, name="config")
