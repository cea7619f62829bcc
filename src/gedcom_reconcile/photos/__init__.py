from gedcom_reconcile.photos.compare import (
    PhotoCompareCache,
    PhotoCompareReport,
    PhotoComparisonService,
    SimilarPhoto,
    compare_by_url,
)

__all__ = [
    "PhotoCompareCache",
    "PhotoCompareReport",
    "PhotoComparisonService",
    "SimilarPhoto",
    "compare_by_url",
]
