# src/gedcom_reconcile/identity/profile_id.py
from __future__ import annotations

import re
from typing import Optional

# -----------------------------
# External profile id (RFN) normalization
# -----------------------------

_URL_ID_RE = re.compile(r"/(?:people|profile|profiles)/(?:[^/?#]+/)?(?:[^/?#]*-)?(\d+)(?:[/?#]|$)", re.IGNORECASE)
_PREFIXED_RE = re.compile(r"^(?:geni|profile|rfn|g|i)[:\-_]?(\d+)$", re.IGNORECASE)
_DIGITS_RE = re.compile(r"^\d+$")


def normalize_pointer(pointer: Optional[str]) -> Optional[str]:
    """
    Normalize a GEDCOM-style pointer:
      - strip whitespace
      - drop the surrounding @...@
      - uppercase
    """
    if pointer is None:
        return None
    p = pointer.strip().strip("@").strip().upper()
    return p or None


def normalize_profile_id(value: Optional[str]) -> Optional[str]:
    """
    Reduce the various textual encodings of one external profile id to a
    canonical numeric string:

      '@I6000000012345@'                -> '6000000012345'
      'geni:6000000012345'              -> '6000000012345'
      'profile-6000000012345'           -> '6000000012345'
      'https://www.geni.com/people/Ivan-Petrov/6000000012345' -> '6000000012345'
      '6000000012345'                   -> '6000000012345'

    Returns None when no id can be recovered.
    """
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None

    m = _URL_ID_RE.search(s)
    if m:
        return m.group(1).lstrip("0") or "0"

    s = normalize_pointer(s) or ""
    if _DIGITS_RE.match(s):
        return s.lstrip("0") or "0"

    m = _PREFIXED_RE.match(s)
    if m:
        return m.group(1).lstrip("0") or "0"

    return None


def is_same_profile(a: Optional[str], b: Optional[str]) -> bool:
    na = normalize_profile_id(a)
    return na is not None and na == normalize_profile_id(b)


__all__ = [
    "normalize_pointer",
    "normalize_profile_id",
    "is_same_profile",
]
