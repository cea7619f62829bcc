from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from rich.console import Console
from rich.table import Table

from gedcom_reconcile.compare.models import CompareStatistics
from gedcom_reconcile.loader import load_tree
from gedcom_reconcile.normalization.name_variants import NameVariants, build_default_oracle
from gedcom_reconcile.registry.entities import TreeRegistry

# Summaries go to stderr so JSON on stdout stays machine-readable
console = Console(stderr=True)


def load_trees(source: Path, destination: Path, *, verbose: bool = False) -> Tuple[TreeRegistry, TreeRegistry]:
    t0 = time.perf_counter()

    src = load_tree(source)
    dst = load_tree(destination)

    elapsed = time.perf_counter() - t0

    if verbose:
        console.log(
            f"Loaded {len(src.persons)} source / {len(dst.persons)} destination persons in {elapsed:.2f}s"
        )

    return src, dst


def build_oracle(cfg: Any, given_names: Optional[Path] = None, surnames: Optional[Path] = None) -> NameVariants:
    """CLI paths win over the ``names`` config section."""
    return build_default_oracle(
        given_names or cfg.names.get("given_names_csv"),
        surnames or cfg.names.get("surnames_csv"),
    )


def write_json(
    data: Dict[str, Any],
    *,
    out: Path | None,
    pretty: bool,
):
    """
    Write JSON to stdout or file.
    """
    if pretty:
        payload = json.dumps(data, indent=2, ensure_ascii=False)
    else:
        payload = json.dumps(data, separators=(",", ":"), ensure_ascii=False)

    if out:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(payload, encoding="utf-8")
    else:
        print(payload)


def statistics_table(stats: CompareStatistics, *, title: str = "Reconciliation Summary") -> Table:
    table = Table(title=title)
    table.add_column("Outcome", style="bold")
    table.add_column("Count", justify="right")

    table.add_row("Source persons", str(stats.source_persons))
    table.add_row("Destination persons", str(stats.destination_persons))
    table.add_row("Matched", str(stats.matched))
    table.add_row("To update", str(stats.to_update))
    table.add_row("To add", str(stats.to_add))
    table.add_row("To delete", str(stats.to_delete))
    table.add_row("Ambiguous", str(stats.ambiguous))
    table.add_row("Families matched", str(stats.families_matched))
    table.add_row("Families to update", str(stats.families_to_update))
    table.add_row("Families to add", str(stats.families_to_add))
    table.add_row("Families to delete", str(stats.families_to_delete))
    table.add_row("Mapped persons", str(stats.mapped_persons))
    return table
