"""
Command-line interface for hexindex.

Provides commands for initializing, indexing, searching, and managing
collections in the local code index.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TimeElapsedColumn
from rich.syntax import Syntax
from rich.table import Table

from . import __version__
from .config import Config
from .errors import IndexerError
from .indexer import Indexer, collection_id_for
from .logging_config import setup_logging_from_config
from .progress import ProgressReporter

logger = logging.getLogger(__name__)

# Rich console for pretty output
console = Console()

CONFIG_TEMPLATE = """# hexindex configuration

[indexer]
max_chunk_lines = 50
min_chunk_lines = 5
overlap_lines = 10
max_file_size = 1048576  # 1MB
# extensions = ["py", "rs", "ts"]   # empty list indexes every extension
# ignore_dirs = ["node_modules", ".git", "target"]

[embeddings]
model = "all-MiniLM-L6-v2"
dimension = 384
batch_size = 32
# device = "cpu"

[store]
# path = "/custom/location/index.lance"
max_filter_ids = 256

[search]
default_limit = 10

[logging]
level = "INFO"
# file = "~/.hexindex/hexindex.log"
json = false
"""


def _fail(message: str, error: Optional[Exception] = None) -> None:
    console.print(f"[red]Error: {message}[/red]")
    if error is not None and logger.isEnabledFor(logging.DEBUG):
        raise error
    sys.exit(1)


def _open_indexer(ctx: click.Context, load_model: bool = True) -> Indexer:
    """Build the indexer and initialize what the command needs."""
    indexer = Indexer.from_config(ctx.obj["config"])
    if load_model:
        with console.status("[cyan]Loading embedding model...[/cyan]"):
            indexer.initialize()
    else:
        indexer.store.initialize()
    if indexer.store.rebuilt:
        console.print(
            "[yellow]Embedding dimension changed: the index was rebuilt, "
            "re-index your collections.[/yellow]"
        )
    return indexer


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--home", type=click.Path(path_type=Path), help="hexindex home directory")
@click.version_option(version=__version__, prog_name="hexindex")
@click.pass_context
def main(ctx: click.Context, debug: bool, home: Optional[Path]):
    """hexindex - Local semantic code index with syntax-aware chunking."""
    config = Config(home)
    setup_logging_from_config(config, debug=debug)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@main.command()
@click.pass_context
def init(ctx: click.Context):
    """Create the hexindex home directory and a default config file."""
    config: Config = ctx.obj["config"]

    if config.config_path.exists():
        console.print(f"[yellow]Config already exists at {config.config_path}[/yellow]")
        return

    config.home.mkdir(parents=True, exist_ok=True)
    config.config_path.write_text(CONFIG_TEMPLATE)

    console.print(f"[green]✓[/green] Initialized hexindex at {config.home}")
    console.print(f"[green]✓[/green] Created config at {config.config_path}")
    console.print("\nNext steps:")
    console.print("  1. Run [cyan]hexindex index <path>[/cyan] to index a codebase")
    console.print("  2. Run [cyan]hexindex search <query>[/cyan] to search it")


@main.command()
@click.argument("path", default=".")
@click.option("--collection", "-c", help="Collection id (default: derived from the directory path)")
@click.pass_context
def index(ctx: click.Context, path: str, collection: Optional[str]):
    """Index a directory or a single file."""
    target = Path(path).resolve()

    if not target.exists():
        _fail(f"Path does not exist: {target}")

    # A single file belongs to the collection rooted at the current directory
    if target.is_file():
        root = Path.cwd().resolve()
        if not target.is_relative_to(root):
            root = target.parent
    else:
        root = target
    collection = collection or collection_id_for(root)

    try:
        indexer = _open_indexer(ctx)

        if target.is_file():
            count = indexer.index_file(collection, str(root), target.relative_to(root).as_posix())
            console.print(f"[green]✓[/green] Indexed {target.name}: {count} chunks")
            console.print(f"Collection: [cyan]{collection}[/cyan]")
            return

        console.print(f"[cyan]Indexing {target} into collection {collection}...[/cyan]")

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            TextColumn("[cyan]ETA: {task.fields[eta]}"),
            console=console,
        ) as progress:
            task = progress.add_task("Indexing files...", total=0, eta="calculating...")

            def progress_callback(event):
                progress.update(
                    task,
                    total=event.total,
                    completed=event.current,
                    description=f"Indexing: {Path(event.filename).name}",
                    eta=ProgressReporter.format_eta(event.eta_seconds),
                )

            result = indexer.index_directory(collection, str(target), progress_callback)

        console.print("\n[green]✓ Indexing complete![/green]\n")
        console.print(str(result))

    except IndexerError as e:
        _fail(f"indexing failed: {e}", e)


@main.command()
@click.argument("query")
@click.option("--collection", "-c", multiple=True, help="Collection to search (repeatable, default: all)")
@click.option("--limit", "-n", type=int, default=None, help="Maximum number of results")
@click.pass_context
def search(ctx: click.Context, query: str, collection: tuple, limit: Optional[int]):
    """Search indexed code semantically.

    Examples:
      hexindex search "authentication logic"
      hexindex search "retry with backoff" -c 3f2a9c -n 5
    """
    try:
        indexer = _open_indexer(ctx)
        console.print(f'[cyan]Searching:[/cyan] "{query}"\n')
        results = indexer.search(query, list(collection), limit)
    except IndexerError as e:
        _fail(f"search failed: {e}", e)

    if not results:
        console.print("[yellow]No results found.[/yellow]")
        return

    for i, result in enumerate(results, 1):
        chunk = result.chunk
        console.print(
            f"[bold]{i}. {chunk.file_path}:{chunk.start_line}-{chunk.end_line}[/bold] "
            f"[dim](distance: {result.distance:.3f}, collection: {chunk.filesystem_hex_id})[/dim]"
        )
        console.print(Syntax(
            chunk.content,
            chunk.language or "text",
            theme="monokai",
            line_numbers=True,
            start_line=chunk.start_line,
        ))
        console.print()


@main.command()
@click.argument("file_path")
@click.option("--collection", "-c", required=True, help="Collection id")
@click.pass_context
def remove(ctx: click.Context, file_path: str, collection: str):
    """Remove one file's chunks from a collection."""
    try:
        removed = _open_indexer(ctx, load_model=False).remove_file(collection, file_path)
    except IndexerError as e:
        _fail(f"remove failed: {e}", e)
    console.print(f"[green]✓[/green] Removed {removed} chunks for {file_path}")


@main.command()
@click.option("--collection", "-c", required=True, help="Collection id")
@click.confirmation_option(prompt="Are you sure you want to delete this collection?")
@click.pass_context
def clear(ctx: click.Context, collection: str):
    """Remove every chunk of a collection."""
    try:
        removed = _open_indexer(ctx, load_model=False).clear_filesystem(collection)
    except IndexerError as e:
        _fail(f"clear failed: {e}", e)
    console.print(f"[green]✓ Cleared {removed} chunks from {collection}.[/green]")


@main.command()
@click.option("--collection", "-c", required=True, help="Collection id")
@click.option("--files", "show_files", is_flag=True, help="List indexed files")
@click.pass_context
def stats(ctx: click.Context, collection: str, show_files: bool):
    """Show statistics for a collection."""
    try:
        result = _open_indexer(ctx, load_model=False).get_stats(collection)
    except IndexerError as e:
        _fail(f"could not read stats: {e}", e)

    table = Table(title="Index Statistics", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Collection", result.filesystem_hex_id)
    table.add_row("Files", str(result.file_count))
    table.add_row("Chunks", str(result.chunk_count))
    console.print(table)

    if show_files:
        for path in result.files:
            console.print(f"  {path}")


@main.command()
def version():
    """Show hexindex version."""
    console.print(f"hexindex version {__version__}")


if __name__ == "__main__":
    main()
