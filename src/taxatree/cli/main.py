"""Typer application exposing taxonomy extraction from the command line."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.table import Table

from taxatree.config.overrides import deep_merge
from taxatree.config.policies import Policies, load_policies
from taxatree.config.validation import validate_configuration
from taxatree.exceptions import TaxaTreeError
from taxatree.pipeline import extract_taxonomy
from taxatree.pipeline.io import load_records, write_run_report, write_tables
from taxatree.utils.logging import configure_logging, log_timing, logging_context

from .common import CLIError, abort, configure_state, console, get_state, parse_override, resolve_path

app = typer.Typer(
    add_completion=False,
    help="Merge labelled records into a deduplicated taxon tree and export the result.",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    environment: Optional[str] = typer.Option(
        None,
        "--environment",
        "-e",
        help="Active configuration environment (development, testing, production).",
        show_default=False,
    ),
    override: List[str] = typer.Option(  # noqa: B008 - Typer callback signature
        [],
        "--override",
        "-o",
        metavar="KEY=VALUE",
        help="Configuration override in dotted.key=value notation (repeatable).",
    ),
    run_id: Optional[str] = typer.Option(
        None,
        "--run-id",
        help="Explicit run identifier; defaults to a generated value.",
        show_default=False,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    """Configure settings and logging before executing a command."""

    try:
        state = configure_state(
            ctx,
            environment=environment,
            overrides=[parse_override(item) for item in override],
            run_id=run_id,
            verbose=verbose,
        )
    except CLIError as exc:
        raise abort(exc) from exc
    configure_logging(state.settings, level="DEBUG" if verbose else None)


def _active_policies(
    base: Policies,
    policies_path: Path | None,
    database: str | None,
    reference_table: Path | None,
) -> Policies:
    policies = load_policies(resolve_path(policies_path)) if policies_path is not None else base
    resolution: Dict[str, Any] = {}
    if database is not None:
        resolution["database"] = database
    if reference_table is not None:
        resolution["reference_table"] = str(resolve_path(reference_table))
    if not resolution:
        return policies
    return load_policies(deep_merge(policies.model_dump(), {"resolution": resolution}))


@app.command("extract")
def extract_command(
    ctx: typer.Context,
    input_path: Path = typer.Argument(..., help="Text file with one record per line, or a FASTA file."),
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output",
        "-d",
        help="Directory receiving the tables; defaults to the configured output directory.",
    ),
    policies_path: Optional[Path] = typer.Option(
        None,
        "--policies",
        "-p",
        help="Policy YAML replacing the configured policies.",
    ),
    database: Optional[str] = typer.Option(None, "--database", help="Reference database used for lookups."),
    reference_table: Optional[Path] = typer.Option(
        None,
        "--reference-table",
        help="JSON Lines reference table backing the selected database.",
    ),
    table_format: str = typer.Option("csv", "--format", help="Table format: csv or json.", case_sensitive=False),
    prefix: str = typer.Option("", "--prefix", help="Prefix prepended to every output file name."),
) -> None:
    """Build the taxon tree for INPUT_PATH and write taxa, items and a run report."""

    state = get_state(ctx)
    try:
        policies = _active_policies(state.settings.policies, policies_path, database, reference_table)
        records = load_records(resolve_path(input_path))
        destination = resolve_path(output_dir or state.settings.paths.output_dir, must_exist=False)
        with logging_context(run_id=state.run_id, step="extract"), log_timing("extract"):
            result = extract_taxonomy(records, policies)
        taxa_path, items_path = write_tables(result, destination, format=table_format, prefix=prefix)
        report_path = write_run_report(result, destination / f"{prefix}report.json")
    except (TaxaTreeError, CLIError, FileNotFoundError, ValueError) as exc:
        raise abort(exc) from exc

    table = Table(title="Extraction Summary", box=None)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Lineage source", result.source.value)
    table.add_row("Taxa", str(len(result.tree)))
    table.add_row("Items", str(len(result.items)))
    table.add_row("Unbound records", str(len(result.unbound)))
    table.add_row("Diagnostics", str(result.diagnostics.total))
    table.add_row("Validation", "passed" if result.validation.passed else "failed")
    console.print(table)
    if state.verbose:
        for path in (taxa_path, items_path, report_path):
            console.print(f"[cyan]wrote[/cyan] {path}")


@app.command("check-config")
def check_config_command(
    ctx: typer.Context,
    policies_path: Optional[Path] = typer.Option(
        None,
        "--policies",
        "-p",
        help="Policy YAML to check instead of the configured policies.",
    ),
) -> None:
    """Validate the policies and print the lineage source they select."""

    state = get_state(ctx)
    try:
        policies = _active_policies(state.settings.policies, policies_path, None, None)
        source = validate_configuration(policies)
    except (TaxaTreeError, CLIError) as exc:
        raise abort(exc) from exc
    console.print(f"Lineage source: [bold]{source.value}[/bold]")
    console.print(f"Policy version: {policies.policy_version}")


__all__ = ["app"]
