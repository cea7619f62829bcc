from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ReconcileContext:
    """
    Shared pipeline context.
    This object is passed between orchestration layers.
    """

    config: Any
    logger: Any

    source_path: Optional[str] = None
    destination_path: Optional[str] = None
    output_path: Optional[str] = None
    seed_mapping_path: Optional[str] = None

    anchor_source_id: Optional[str] = None
    anchor_destination_id: Optional[str] = None
    option_overrides: Dict[str, Any] = field(default_factory=dict)

    stats: Dict[str, Any] = field(default_factory=dict)
    errors: list = field(default_factory=list)

    debug: bool = False
