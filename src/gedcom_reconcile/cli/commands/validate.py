from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from gedcom_reconcile.cli.utils import load_trees, write_json
from gedcom_reconcile.compare.mapping_validation import rollback_suspicious_mappings, validate_mappings
from gedcom_reconcile.core.exceptions import ReconcileError
from gedcom_reconcile.loader import load_mapping

console = Console(stderr=True)

SEVERITY_STYLES = {
    "High": "bold red",
    "Medium": "yellow",
    "Low": "dim",
}


def validate_command(
    source: Path = typer.Argument(..., exists=True, readable=True, help="Source tree JSON"),
    destination: Path = typer.Argument(..., exists=True, readable=True, help="Destination tree JSON"),
    mapping: Path = typer.Argument(..., exists=True, readable=True, help="Mapping JSON or exported result"),
    out: Optional[Path] = typer.Option(
        None,
        "--out",
        "-o",
        help="Write the mapping with suspicious pairs rolled back",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable rich logging",
    ),
):
    """
    Check a source -> destination mapping for contradictions.
    Exits with status 1 when a high-severity issue is found.
    """
    try:
        src, dst = load_trees(source, destination, verbose=verbose)
        pairs = load_mapping(mapping)
    except ReconcileError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    result = validate_mappings(pairs, src.persons, dst.persons, src.families, dst.families)

    table = Table(title=f"Mapping Issues ({len(pairs)} pairs)")
    table.add_column("Severity", style="bold")
    table.add_column("Type")
    table.add_column("Source")
    table.add_column("Destination")
    table.add_column("Description")
    for issue in result.issues:
        severity = issue.severity.value
        table.add_row(
            f"[{SEVERITY_STYLES[severity]}]{severity}[/]",
            issue.issue_type.value,
            issue.source_id,
            issue.destination_id,
            issue.description,
        )
    console.print(table)
    console.print(
        f"high={result.high_severity_count} "
        f"medium={result.medium_severity_count} "
        f"low={result.low_severity_count}"
    )

    if out:
        cleaned = rollback_suspicious_mappings(pairs, result, src.families)
        write_json(cleaned, out=out, pretty=True)
        if verbose:
            console.log(f"Wrote {len(cleaned)} pair(s) to {out}")

    if not result.is_valid:
        raise typer.Exit(code=1)
