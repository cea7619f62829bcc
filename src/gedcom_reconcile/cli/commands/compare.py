from __future__ import annotations

import copy
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from gedcom_reconcile.cli.utils import statistics_table, write_json
from gedcom_reconcile.config import get_config
from gedcom_reconcile.core.context import ReconcileContext
from gedcom_reconcile.core.exceptions import ReconcileError
from gedcom_reconcile.core.pipeline import Pipeline
from gedcom_reconcile.exporter import build_result_dict
from gedcom_reconcile.logging import get_logger

console = Console(stderr=True)


def compare_command(
    source: Path = typer.Argument(..., exists=True, readable=True, help="Source tree JSON"),
    destination: Path = typer.Argument(..., exists=True, readable=True, help="Destination tree JSON"),
    anchor_source: str = typer.Option(..., "--anchor-source", help="Anchor person id in the source tree"),
    anchor_dest: str = typer.Option(..., "--anchor-dest", help="Anchor person id in the destination tree"),
    threshold: Optional[float] = typer.Option(
        None,
        "--threshold",
        "-t",
        help="Minimum fuzzy score (0-100) to accept a match",
    ),
    depth: Optional[int] = typer.Option(
        None,
        "--depth",
        help="How far from the mapped set new persons are reported",
    ),
    include_deletes: bool = typer.Option(
        False,
        "--include-deletes",
        help="Report unmatched destination persons as delete suggestions",
    ),
    allow_ambiguous_best: bool = typer.Option(
        False,
        "--allow-ambiguous-best",
        help="Accept the best of several tied candidates instead of reporting ambiguity",
    ),
    validate: bool = typer.Option(
        False,
        "--validate",
        help="Validate the final mapping and roll back suspicious pairs",
    ),
    seed_mapping: Optional[Path] = typer.Option(
        None,
        "--seed-mapping",
        exists=True,
        readable=True,
        help="JSON of already-known source -> destination pairs",
    ),
    given_names: Optional[Path] = typer.Option(
        None,
        "--given-names",
        exists=True,
        readable=True,
        help="CSV of given-name variants",
    ),
    surnames: Optional[Path] = typer.Option(
        None,
        "--surnames",
        exists=True,
        readable=True,
        help="CSV of surname variants",
    ),
    out: Optional[Path] = typer.Option(
        None,
        "--out",
        "-o",
        help="Write output to file instead of stdout",
    ),
    pretty: bool = typer.Option(
        False,
        "--pretty",
        help="Pretty-print JSON",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable rich logging",
    ),
):
    """
    Compare SOURCE against DESTINATION starting from a pair of anchor persons.
    """
    cfg = get_config()
    if given_names or surnames:
        cfg = copy.copy(cfg)
        cfg.names = dict(cfg.names)
        if given_names:
            cfg.names["given_names_csv"] = str(given_names)
        if surnames:
            cfg.names["surnames_csv"] = str(surnames)

    ctx = ReconcileContext(
        config=cfg,
        logger=get_logger("cli"),
        source_path=str(source),
        destination_path=str(destination),
        seed_mapping_path=str(seed_mapping) if seed_mapping else None,
        anchor_source_id=anchor_source,
        anchor_destination_id=anchor_dest,
        option_overrides={
            "match_threshold": threshold,
            "new_node_depth": depth,
            "include_delete_suggestions": True if include_deletes else None,
            "require_unique_match": False if allow_ambiguous_best else None,
            "validate_mappings": True if validate else None,
        },
        debug=verbose,
    )

    if verbose:
        console.log(f"Reconciling {source.name} -> {destination.name}")

    try:
        result = Pipeline(ctx).run()
    except ReconcileError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    write_json(build_result_dict(result), out=out, pretty=pretty)

    console.print(statistics_table(result.statistics))
    if not result.converged:
        console.print(
            f"[yellow]Stopped after {len(result.iterations)} iterations before converging[/yellow]"
        )
    if result.validation is not None and result.rolled_back:
        console.print(f"[yellow]Rolled back {len(result.rolled_back)} mapping(s)[/yellow]")

    if verbose:
        console.log("Compare complete")
