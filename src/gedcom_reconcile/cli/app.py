
from __future__ import annotations

import typer
from rich.console import Console

from gedcom_reconcile.cli.commands.compare import compare_command
from gedcom_reconcile.cli.commands.validate import validate_command

app = typer.Typer(
    name="gedcom-reconcile",
    help="Reconcile a source family tree against a destination tree",
    add_completion=False,
)

console = Console()

app.command("compare")(compare_command)
app.command("validate")(validate_command)


def main():
    app()


if __name__ == "__main__":
    main()
