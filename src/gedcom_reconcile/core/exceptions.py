class ReconcileError(Exception):
    """Base exception for reconciliation failures."""


class ConfigurationError(ReconcileError):
    """Raised when configuration or run options are unusable."""


class AnchorNotFoundError(ConfigurationError):
    """Raised when an anchor id is not present in its graph."""

    def __init__(self, side: str, person_id: str):
        self.side = side
        self.person_id = person_id
        super().__init__(f"Anchor person {person_id!r} not found in {side} tree")


class GraphLoadError(ReconcileError):
    """Raised when a tree file cannot be read or has an invalid shape."""


class PipelineExecutionError(ReconcileError):
    """Raised when the load/compare/export pipeline fails."""
