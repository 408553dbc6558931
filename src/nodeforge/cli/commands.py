from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import typer

from nodeforge.core.catalogue import TypeCatalogue, load_catalogue
from nodeforge.core.constants import EXIT_INTERNAL_ERROR, EXIT_SCHEMA_ERROR, EXIT_SUCCESS, LOG_LEVEL_ENV
from nodeforge.core.errors import SchemaError, StructuralCorruption
from nodeforge.core.operations import derive_operations
from nodeforge.core.plans import OPERATION_KINDS
from nodeforge.core.serialize import Deserializer, read_stream
from nodeforge.core.validation import TreeChecker

logger = logging.getLogger(__name__)


def _version_callback(value: bool) -> None:
    if value:
        from nodeforge import __version__

        typer.echo(f"nodeforge {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    level_name = "DEBUG" if verbose else os.getenv(LOG_LEVEL_ENV, "WARNING").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", force=True)
    logging.getLogger("nodeforge").setLevel(level)


app = typer.Typer(add_completion=False, help="Schema-driven AST node catalogue and graph serializer")


@app.callback(invoke_without_command=True)
def _main(
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Print version and exit."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    _configure_logging(verbose)


def _load_or_exit(schema: Path, *, as_json: bool = False) -> TypeCatalogue:
    try:
        catalogue = load_catalogue(schema)
    except SchemaError as exc:
        if as_json:
            typer.echo(json.dumps({"ok": False, "error": exc.to_error().to_dict()}, indent=2, sort_keys=True))
        else:
            location = ".".join(part for part in (exc.entity, exc.field) if part)
            suffix = f" ({location})" if location else ""
            typer.echo(f"ERROR: [{exc.code}] {exc}{suffix}", err=True)
        raise typer.Exit(EXIT_SCHEMA_ERROR) from exc
    except (OSError, ValueError) as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(EXIT_INTERNAL_ERROR) from exc
    logger.debug("loaded %s with digest %s", schema, catalogue.digest)
    return catalogue


@app.command()
def validate(
    schema: Path = typer.Argument(..., help="Schema file (.yaml, .yml or .json)"),
    as_json: bool = typer.Option(False, "--json", help="Print a machine readable summary."),
) -> None:
    """Load a schema, assemble its catalogue and report what it defines."""
    catalogue = _load_or_exit(schema, as_json=as_json)
    summary = {
        "ok": True,
        "catalogue_digest": catalogue.digest,
        "attrtypes": len(catalogue.attribute_types),
        "nodes": len(catalogue.node_types),
        "nodesets": len(catalogue.nodesets),
        "traversals": len(catalogue.traversals),
    }
    if as_json:
        typer.echo(json.dumps(summary, indent=2, sort_keys=True))
    else:
        typer.echo(
            f"Schema OK: {summary['nodes']} node types, {summary['attrtypes']} attribute types, "
            f"{summary['nodesets']} nodesets, {summary['traversals']} traversals"
        )
        typer.echo(f"Catalogue digest: {catalogue.digest}")
    raise typer.Exit(EXIT_SUCCESS)


@app.command()
def describe(
    schema: Path = typer.Argument(..., help="Schema file (.yaml, .yml or .json)"),
    node: list[str] | None = typer.Option(None, "--node", help="Only describe these node types (repeatable)."),
    operation: list[str] | None = typer.Option(
        None,
        "--operation",
        help="Only include these operations: " + " | ".join(OPERATION_KINDS),
    ),
    output: Path | None = typer.Option(None, "--output", help="Write the JSON to this path instead of stdout."),
) -> None:
    """Dump the per-node operation descriptors derived from a schema."""
    catalogue = _load_or_exit(schema)
    operations = derive_operations(catalogue)

    try:
        node_types = tuple(catalogue.node_type(name).name for name in node) if node else None
    except KeyError as exc:
        typer.echo(f"ERROR: {exc.args[0]}", err=True)
        raise typer.Exit(EXIT_INTERNAL_ERROR) from exc

    selected = tuple(operation) if operation else OPERATION_KINDS
    unknown = [name for name in selected if name not in OPERATION_KINDS]
    if unknown:
        typer.echo(f"ERROR: Unknown operation(s): {', '.join(unknown)}", err=True)
        raise typer.Exit(EXIT_INTERNAL_ERROR)

    payload = json.dumps(
        operations.to_dict(node_types=node_types, operations=selected),  # type: ignore[arg-type]
        indent=2,
        sort_keys=True,
    )
    if output is None:
        typer.echo(payload)
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(payload + "\n", encoding="utf-8")
        typer.echo(f"Wrote descriptors for {len(node_types or operations.nodes)} node types to {output}")
    raise typer.Exit(EXIT_SUCCESS)


@app.command()
def inspect(
    stream: Path = typer.Argument(..., help="Serialized graph stream (JSON Lines)"),
    schema: Path = typer.Option(..., "--schema", help="Schema the stream was written with."),
) -> None:
    """Reconstruct a serialized graph and audit the result."""
    catalogue = _load_or_exit(schema)
    try:
        graph = read_stream(stream)
        nodes = Deserializer(catalogue).reconstruct(graph)
    except StructuralCorruption as exc:
        typer.echo(f"ERROR: [{exc.code}] {exc}", err=True)
        raise typer.Exit(EXIT_INTERNAL_ERROR) from exc
    except (OSError, ValueError) as exc:
        # UnicodeDecodeError lands here too.
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(EXIT_INTERNAL_ERROR) from exc

    typer.echo(f"Nodes: {len(nodes)}")
    typer.echo(f"Constructs: {len(graph.constructs)}")
    typer.echo(f"Fixes: {len(graph.fixes)}")
    if nodes:
        checker = TreeChecker(catalogue)
        report = checker.check(checker.reset(nodes[0]))
        typer.echo(f"Reachable nodes: {report.visited}")
        for finding in report.findings:
            typer.echo(f"WARNING: {finding.code}: {finding.message}", err=True)
    raise typer.Exit(EXIT_SUCCESS)


__all__ = ["app"]
