from gedcom_reconcile.exporter.json_exporter import (
    build_result_dict,
    export_compare_result,
    serialize_result_to_json_string,
)

__all__ = [
    "build_result_dict",
    "export_compare_result",
    "serialize_result_to_json_string",
]
