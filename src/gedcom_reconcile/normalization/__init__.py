from gedcom_reconcile.normalization.name_normalization import (
    name_tokens,
    normalize_name,
    normalize_place,
    transliterate,
)
from gedcom_reconcile.normalization.name_variants import (
    ExactNameOracle,
    NameEquivalenceOracle,
    NameRole,
    NameVariants,
    build_default_oracle,
)

__all__ = [
    "ExactNameOracle",
    "NameEquivalenceOracle",
    "NameRole",
    "NameVariants",
    "build_default_oracle",
    "name_tokens",
    "normalize_name",
    "normalize_place",
    "transliterate",
]
