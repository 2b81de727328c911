import json
import logging

from dataclasses import asdict
from pathlib import Path
from rich.console import Console
from typing import Optional

import typer

from codeatlas import __version__
from codeatlas.compact import dependency_to_compact, to_compact
from codeatlas.config import load_index_config
from codeatlas.errors import CodeAtlasError
from codeatlas.hashing import generate_entity_id
from codeatlas.models import Entity
from codeatlas.pipeline import IndexResult, index_files

app = typer.Typer(
    help="codeatlas - multi-language code entity and dependency indexer",
    no_args_is_help=True,
)

console = Console()


def _index(files: list[Path], resolved_only: bool = False) -> IndexResult:
    for path in files:
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")

    root = Path.cwd()
    config = load_index_config(root)
    if resolved_only:
        config.include_unresolved = False
    return index_files(files, root, config)


def _run_index(files: list[Path], resolved_only: bool = False) -> IndexResult:
    """Index files, mapping failures to exit codes (1: user error, 2: unexpected)."""
    try:
        return _index(files, resolved_only)
    except (FileNotFoundError, CodeAtlasError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2)


def entity_to_dict(entity: Entity) -> dict:
    """Convert an entity to a JSON-ready dict with its ID and without the raw body."""
    data = asdict(entity)
    del data["raw_body"]  # Only feeds the body hash
    return {"id": generate_entity_id(entity), **data}


@app.command()
def entities(
    files: list[Path] = typer.Argument(..., help="Source files to index"),
    json_output: bool = typer.Option(False, "--json", help="Output entities as JSON"),
):
    """List the entities declared in FILES.

    Each line holds the entity ID followed by its compact description.

    Examples:
        codeatlas entities src/app.py src/util.ts
    """
    result = _run_index(files)

    if json_output:
        typer.echo(json.dumps([entity_to_dict(entity) for entity in result.entities], indent=2))
        return

    for entity in result.entities:
        typer.echo(f"{generate_entity_id(entity)} {to_compact(entity)}")


@app.command()
def deps(
    files: list[Path] = typer.Argument(..., help="Source files to index"),
    json_output: bool = typer.Option(False, "--json", help="Output dependencies as JSON"),
    resolved_only: bool = typer.Option(False, "--resolved-only", help="Drop dependencies with no resolved target"),
):
    """List the dependencies between entities declared in FILES.

    Resolution runs across all given files, so a call in one file can
    resolve to a definition in another.
    """
    result = _run_index(files, resolved_only=resolved_only)

    if json_output:
        typer.echo(json.dumps([asdict(dep) for dep in result.dependencies], indent=2))
        return

    for dependency in result.dependencies:
        typer.echo(dependency_to_compact(dependency))


def _version_callback(value: bool):
    """Show version and exit."""
    if value:
        console.print(f"codeatlas version {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
):
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
