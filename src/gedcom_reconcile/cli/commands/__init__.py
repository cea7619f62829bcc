"""
CLI command modules for gedcom_reconcile.

Each command module defines a single Typer-compatible command function.
"""

from gedcom_reconcile.cli.commands.compare import compare_command
from gedcom_reconcile.cli.commands.validate import validate_command

__all__ = [
    "compare_command",
    "validate_command",
]
