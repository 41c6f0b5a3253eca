"""
Manifest Service CLI

Operator commands over the manifest service:
- exists: Ask the catalog whether a manifest is known
- get: Fetch a manifest (falls back to the catalog's embedded copy)
- put: Store a manifest file and publish it under an optional tag
- delete: Remove a manifest from the content store
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .cli_context import CLIContext
from .operations import run_and_exit
from .operations.printers import (
    print_delete_summary, print_exists, print_manifest, print_put_summary, write_payload
)

app = typer.Typer(name="manifest-service", help="Manifest service CLI")


@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging")
) -> None:
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def exists(
    repo: str = typer.Argument(..., help="Repository as namespace/name"),
    digest: str = typer.Argument(..., help="Manifest digest (sha256:...)"),
) -> None:
    """Check whether the catalog holds a record for the manifest."""

    def _exists() -> bool:
        ops = CLIContext.from_env().operations()
        found = ops.exists(repo, digest)
        print_exists(repo, digest, found)
        return found

    if not run_and_exit(_exists):
        raise typer.Exit(code=1)


@app.command()
def get(
    repo: str = typer.Argument(..., help="Repository as namespace/name"),
    digest: str = typer.Argument(..., help="Manifest digest (sha256:...)"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the payload to FILE ('-' for stdout)"),
    verbose: bool = typer.Option(False, "--verbose", help="Show referenced blobs"),
) -> None:
    """Fetch a manifest."""

    def _get() -> None:
        ops = CLIContext.from_env().operations()
        manifest = ops.get(repo, digest)
        if output:
            write_payload(manifest, output)
        if output != "-":
            print_manifest(manifest, verbose=verbose)

    run_and_exit(_get)


@app.command()
def put(
    repo: str = typer.Argument(..., help="Repository as namespace/name"),
    manifest_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Manifest JSON file"),
    tag: Optional[str] = typer.Option(None, "--tag", "-t", help="Tag to publish the manifest under"),
    media_type: Optional[str] = typer.Option(None, "--media-type", help="Override the manifest media type"),
) -> None:
    """Store a manifest and publish it in the catalog."""

    def _put() -> None:
        ops = CLIContext.from_env().operations()
        digest = ops.put(repo, manifest_file, tag=tag, media_type=media_type)
        print_put_summary(repo, digest, tag)

    run_and_exit(_put)


@app.command()
def delete(
    repo: str = typer.Argument(..., help="Repository as namespace/name"),
    digest: str = typer.Argument(..., help="Manifest digest (sha256:...)"),
) -> None:
    """Delete a manifest from the content store."""

    def _delete() -> None:
        ops = CLIContext.from_env().operations()
        ops.delete(repo, digest)
        print_delete_summary(repo, digest)

    run_and_exit(_delete)


if __name__ == "__main__":
    app()
