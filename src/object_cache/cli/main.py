"""Main entry point for the object-cache CLI.

Provides a Typer-based CLI for inspecting and managing the entries of a
configured object cache.
"""

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from object_cache import __version__
from object_cache.cache import ObjectCache, utc_now
from object_cache.backends import FileSystemBackend
from object_cache.config import CacheConfig, ensure_config_exists, get_config_path
from object_cache.exceptions import ObjectCacheError
from object_cache.logging_config import setup_logging
from object_cache.mime import get_extension, get_type

console = Console()

# Create the main Typer app
app = typer.Typer(
    name="object-cache",
    help="Inspect and manage an object cache",
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"object-cache version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """object-cache: cache-aside storage for JSON objects and binary files.

    ## Commands

    * [bold cyan]config[/bold cyan] - Show or change configuration
    * [bold cyan]show[/bold cyan] - Show metadata of a cached value
    * [bold cyan]get[/bold cyan] / [bold cyan]put[/bold cyan] - Read or write a cached value
    * [bold cyan]clear[/bold cyan] - Remove a cached value
    """
    pass


def load_config(config_path: Path | None) -> CacheConfig:
    """Load config or exit with an error message.

    Args:
        config_path: Explicit config file, or None for the standard location

    Returns:
        Loaded configuration (defaults when no file exists)
    """
    try:
        return CacheConfig.load_or_default(config_path)
    except Exception as e:
        console.print(f"[red]Error loading config: {e}[/red]")
        raise typer.Exit(1)


def build_cache(config: CacheConfig) -> ObjectCache:
    """Set up logging and build the configured cache, or exit with an error."""
    setup_logging(config.log_dir, config.log_level)
    try:
        return config.build_cache()
    except ValueError as e:
        console.print(f"[red]Error creating cache backend: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def config(
    action: str = typer.Argument(
        ...,
        help="Action to perform (show, set, path, init)",
    ),
    key: str = typer.Argument(
        None,
        help="Configuration key (for set action)",
    ),
    value: str = typer.Argument(
        None,
        help="Configuration value (for set action)",
    ),
    config_path: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file",
    ),
) -> None:
    """Manage configuration.

    Examples:
        object-cache config show          # Show all configuration
        object-cache config set s3.bucket my-bucket
        object-cache config path          # Show config file path
    """
    path = config_path or get_config_path()

    if action == "show":
        cfg = load_config(config_path)

        stale = cfg.default_stale_after_seconds
        panel = Panel.fit(
            f"[cyan]Backend:[/cyan] {cfg.backend}\n"
            f"[cyan]Stale After:[/cyan] {f'{stale:g}s' if stale is not None else 'never'}\n"
            f"[cyan]Stale On Error:[/cyan] {cfg.return_stale_result_on_error}\n"
            f"[cyan]Single Flight:[/cyan] {cfg.single_flight}\n"
            f"[cyan]Cache Directory:[/cyan] {cfg.cache_dir}\n"
            f"[cyan]S3 Bucket:[/cyan] {cfg.s3_bucket}\n"
            f"[cyan]S3 Key Prefix:[/cyan] {cfg.s3_key_prefix or '(none)'}\n"
            f"[cyan]S3 Endpoint:[/cyan] {cfg.s3_endpoint_url or '(default)'}\n"
            f"[cyan]S3 Region:[/cyan] {cfg.s3_region or '(default)'}\n"
            f"[cyan]Log Level:[/cyan] {cfg.log_level}",
            title="Configuration",
            border_style="green",
        )
        console.print(panel)

    elif action == "set":
        if not key or value is None:
            console.print("[red]Usage: object-cache config set KEY VALUE[/red]")
            raise typer.Exit(1)

        cfg = ensure_config_exists(path)
        try:
            cfg.set(key, value)
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1)

        cfg.save(path)
        console.print(f"[green]Set {key} = {value}[/green]")

    elif action == "path":
        console.print(str(path))

    elif action == "init":
        if path.exists():
            console.print(f"[yellow]Config already exists: {path}[/yellow]")
            return
        CacheConfig().save(path)
        console.print(f"[green]Created config: {path}[/green]")

    else:
        console.print(f"[red]Unknown action: {action}[/red]")
        raise typer.Exit(1)


@app.command("show")
def show(
    key: str = typer.Argument(..., help="Cache key"),
    binary: bool = typer.Option(False, "--binary", "-b", help="Show the binary entry"),
    config_path: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file",
    ),
) -> None:
    """Show metadata of a cached value."""
    cfg = load_config(config_path)
    cache = build_cache(cfg)

    try:
        entry = asyncio.run(cache.inspect(key, is_binary=binary))
    except (ObjectCacheError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if entry is None:
        console.print(f"[yellow]No cached value for '{key}'[/yellow]")
        raise typer.Exit(1)

    age = (utc_now() - entry.last_modified).total_seconds()
    stale_after = cfg.default_options(is_binary=binary).stale_after_seconds
    if stale_after is None:
        stale = "no (never expires)"
    elif age > stale_after:
        stale = f"yes (older than {stale_after:g}s)"
    else:
        stale = f"no (fresh for {stale_after - age:.0f}s)"
    panel = Panel.fit(
        f"[cyan]Key:[/cyan] {key}\n"
        f"[cyan]Storage ID:[/cyan] {cache.get_storage_id(key, binary)}\n"
        f"[cyan]Media Type:[/cyan] {entry.media_type}\n"
        f"[cyan]Extension:[/cyan] {get_extension(entry.media_type) or '(none)'}\n"
        f"[cyan]Size:[/cyan] {len(entry.data)} bytes\n"
        f"[cyan]Last Modified:[/cyan] {entry.last_modified.isoformat()}\n"
        f"[cyan]Age:[/cyan] {age:.0f}s\n"
        f"[cyan]Stale:[/cyan] {stale}",
        title="Cached Value",
        border_style="green",
    )
    console.print(panel)


@app.command("get")
def get(
    key: str = typer.Argument(..., help="Cache key"),
    binary: bool = typer.Option(False, "--binary", "-b", help="Read the binary entry"),
    output: Path = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the value to this file",
    ),
    config_path: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file",
    ),
) -> None:
    """Print a cached JSON value or write a cached value to a file."""
    if binary and output is None:
        console.print("[red]Binary values must be written to a file with --output[/red]")
        raise typer.Exit(1)

    cache = build_cache(load_config(config_path))

    try:
        value = asyncio.run(cache.get(key, is_binary=binary))
    except (ObjectCacheError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if value is None:
        console.print(f"[yellow]No cached value for '{key}'[/yellow]")
        raise typer.Exit(1)

    if binary:
        output.write_bytes(value)
        console.print(f"[green]Wrote {len(value)} bytes to {output}[/green]")
    elif output is not None:
        output.write_text(json.dumps(value, indent=2), encoding="utf-8")
        console.print(f"[green]Wrote '{key}' to {output}[/green]")
    else:
        console.print_json(data=value)


@app.command("put")
def put(
    key: str = typer.Argument(..., help="Cache key"),
    file: Path = typer.Argument(..., help="JSON file (or any file with --binary)"),
    binary: bool = typer.Option(False, "--binary", "-b", help="Store the file as binary"),
    mime_type: str = typer.Option(
        None,
        "--mime-type",
        "-m",
        help="Media type (binary default: guessed from the file name)",
    ),
    config_path: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file",
    ),
) -> None:
    """Store a file in the cache."""
    if not file.is_file():
        console.print(f"[red]File not found: {file}[/red]")
        raise typer.Exit(1)

    if binary:
        data = file.read_bytes()
        mime_type = mime_type or get_type(file.name)
    else:
        try:
            data = json.loads(file.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            console.print(f"[red]Invalid JSON in {file}: {e}[/red]")
            raise typer.Exit(1)

    cache = build_cache(load_config(config_path))

    try:
        asyncio.run(cache.put(key, data, mime_type, is_binary=binary))
    except (ObjectCacheError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Cached '{key}' ({cache.get_storage_id(key, binary)})[/green]")


@app.command("clear")
def clear(
    key: str = typer.Argument(..., help="Cache key"),
    config_path: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file",
    ),
) -> None:
    """Remove the JSON and binary values cached for a key."""
    cache = build_cache(load_config(config_path))

    try:
        asyncio.run(cache.clear(key))
    except (ObjectCacheError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Cleared '{key}'[/green]")


@app.command("size")
def size(
    config_path: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file",
    ),
) -> None:
    """Show the total size of a filesystem cache."""
    cache = build_cache(load_config(config_path))

    if not isinstance(cache.backend, FileSystemBackend):
        console.print("[yellow]Cache size is only available for the filesystem backend[/yellow]")
        raise typer.Exit(1)

    total = cache.backend.get_cache_size()
    console.print(f"{cache.backend.cache_dir}: {total / (1024 * 1024):.2f} MB ({total} bytes)")


if __name__ == "__main__":
    app()
