"""
Human-readable output formatting.

Centralizes CLI output so commands stay thin.
"""
from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from ..codec.manifest import Manifest

_console = Console()
_err_console = Console(stderr=True)


def print_exists(repo: str, digest: str, exists: bool) -> None:
    """Print whether the catalog knows the manifest."""
    state = "[green]exists[/]" if exists else "[yellow]not found[/]"
    _console.print(f"{repo}@{digest}: {state}")


def print_manifest(manifest: Manifest, verbose: bool = False) -> None:
    """
    Print manifest identity and, in verbose mode, its references.
    """
    _console.print(f"[bold]Digest:[/] {manifest.digest}")
    _console.print(f"[bold]Media type:[/] {manifest.media_type}")
    _console.print(f"[bold]Layers:[/] {len(manifest.layers)}")

    if verbose and manifest.references:
        table = Table(title="References")
        table.add_column("Digest", style="cyan")
        table.add_column("Media type", style="yellow")
        table.add_column("Size", justify="right")
        for ref in manifest.references:
            table.add_row(ref.digest, ref.media_type or "-", _format_bytes(ref.size))
        _console.print(table)


def print_put_summary(repo: str, digest: str, tag: str | None) -> None:
    target = f"{repo}:{tag}" if tag else repo
    _console.print(f"[green]✓[/] Stored {target}")
    _console.print(f"[bold]Digest:[/] {digest}")


def print_delete_summary(repo: str, digest: str) -> None:
    _console.print(f"[green]✓[/] Deleted {repo}@{digest} from the content store")
    _console.print("[dim]The catalog record is pruned separately and may still be reported.[/]")


def print_error(exc: BaseException) -> None:
    _err_console.print(f"[red]Error:[/] {exc}")


def write_payload(manifest: Manifest, path: str) -> None:
    """Write the manifest payload to ``path`` ("-" for stdout)."""
    if path == "-":
        typer.echo(manifest.payload.decode("utf-8"))
        return
    with open(path, "wb") as f:
        f.write(manifest.payload)


def _format_bytes(size: int) -> str:
    """Format byte size in human-readable format."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if value < 1024.0:
            return f"{value:.1f} {unit}" if unit != "B" else f"{int(value)} {unit}"
        value /= 1024.0
    return f"{value:.1f} PB"
