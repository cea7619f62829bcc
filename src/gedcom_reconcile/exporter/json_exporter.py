"""
json_exporter.py
Structured JSON exporter for reconciliation results.

This exporter:
- Converts dataclasses and objects to dictionaries (NOT strings)
- Renders enums by value and dates in the destination's native format
- Adds advisory derived values (confidence, validation counts)
- Is deterministic: the same result always serializes to the same text
"""

from __future__ import annotations

import json
from dataclasses import fields, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict

from gedcom_reconcile.compare.models import CompareResult
from gedcom_reconcile.dates.normalizer import DateInfo
from gedcom_reconcile.logging import get_logger

log = get_logger("json_exporter")

# Read-only properties worth exporting next to the dataclass fields
EXPORTED_PROPERTIES = (
    "confidence",
    "is_valid",
    "high_severity_count",
    "medium_severity_count",
    "low_severity_count",
)


def _to_json_compatible(obj: Any) -> Any:
    """
    Recursively convert objects into JSON-compatible structures.

    Rules:
    - Primitives pass through
    - Enums -> their value
    - DateInfo -> {"value", "precision", "modifier", "original"}
    - dataclasses -> dict (recursively) plus EXPORTED_PROPERTIES they define
    - dict -> dict (recursively)
    - list / tuple / set -> list (recursively)
    - Unknown objects -> str(obj)
    """
    if obj is None or isinstance(obj, (bool, int, float, str)) and not isinstance(obj, Enum):
        return obj

    if isinstance(obj, Enum):
        return obj.value

    if isinstance(obj, DateInfo):
        return {
            "value": obj.to_geni_format(),
            "precision": obj.precision.name.lower(),
            "modifier": obj.modifier.value,
            "original": obj.original,
        }

    if is_dataclass(obj) and not isinstance(obj, type):
        out = {f.name: _to_json_compatible(getattr(obj, f.name)) for f in fields(obj)}
        for name in EXPORTED_PROPERTIES:
            if isinstance(getattr(type(obj), name, None), property):
                out[name] = _to_json_compatible(getattr(obj, name))
        return out

    if isinstance(obj, dict):
        return {str(k): _to_json_compatible(v) for k, v in obj.items()}

    if isinstance(obj, (list, tuple)):
        return [_to_json_compatible(v) for v in obj]

    if isinstance(obj, (set, frozenset)):
        return [_to_json_compatible(v) for v in sorted(obj, key=str)]

    return str(obj)


def build_result_dict(result: CompareResult, include_iterations: bool = True) -> Dict[str, Any]:
    data = _to_json_compatible(result)
    if not include_iterations:
        data["iterations"] = [
            {"iteration": it.iteration, "new_mappings_count": it.new_mappings_count,
             "statistics": _to_json_compatible(it.statistics)}
            for it in result.iterations
        ]
    return data


def serialize_result_to_json_string(result: CompareResult, indent: int | None = 2, include_iterations: bool = True) -> str:
    if indent is None:
        return json.dumps(build_result_dict(result, include_iterations), separators=(",", ":"), ensure_ascii=False)
    return json.dumps(build_result_dict(result, include_iterations), indent=indent, ensure_ascii=False)


def export_compare_result(
    result: CompareResult,
    output_path: str | Path,
    indent: int | None = 2,
    include_iterations: bool = True,
) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    stats = result.statistics
    log.info(
        "Exporting compare result to: %s (matched=%d update=%d add=%d ambiguous=%d iterations=%d)",
        output_path,
        stats.matched,
        stats.to_update,
        stats.to_add,
        stats.ambiguous,
        len(result.iterations),
    )

    json_str = serialize_result_to_json_string(result, indent=indent, include_iterations=include_iterations)
    with output_path.open("w", encoding="utf-8") as f:
        f.write(json_str)

    size_bytes = output_path.stat().st_size
    log.info("JSON export complete. size=%d bytes", size_bytes)
    return output_path
