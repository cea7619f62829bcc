"""
name_normalization.py
Deterministic normalization of names and places for comparison.

Goals:
- Same input always yields the same normalized form
- Cyrillic (and other scripts) transliterated to Latin via unidecode
- Diacritics, punctuation and case differences removed
- Never used for display: raw values are kept on the records
"""

from __future__ import annotations

import re
import unicodedata
from typing import List, Optional

from unidecode import unidecode

_PUNCT_RE = re.compile(r"[^\w\s]+", re.UNICODE)
_WS_RE = re.compile(r"\s+")
_SURNAME_SLASHES_RE = re.compile(r"/([^/]*)/")


def _clean_ws(s: Optional[str]) -> Optional[str]:
    if s is None:
        return None
    out = " ".join(str(s).split()).strip()
    return out or None


def transliterate(text: Optional[str]) -> str:
    """Latin transliteration without any other normalization."""
    if not text:
        return ""
    return unidecode(unicodedata.normalize("NFKC", text))


def normalize_name(text: Optional[str]) -> str:
    """
    Normalize a name for comparison.

    'Иван'       -> 'ivan'
    'José-María' -> 'jose maria'
    ' O'Brien '  -> 'obrien'
    """
    if not text:
        return ""
    s = transliterate(text).casefold()
    s = s.replace("'", "").replace("`", "")
    s = _PUNCT_RE.sub(" ", s)
    s = s.replace("_", " ")
    return _WS_RE.sub(" ", s).strip()


def normalize_place(text: Optional[str]) -> str:
    """Places normalize exactly like names; commas separate tokens."""
    return normalize_name(text)


def name_tokens(text: Optional[str], min_length: int = 1) -> List[str]:
    return [t for t in normalize_name(text).split(" ") if len(t) >= min_length]


def split_gedcom_name(raw: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """
    Split a classic GEDCOM name string into (given, surname):
      - "Ivan /Petrov/"  -> ("Ivan", "Petrov")
      - "Mary Ann"       -> ("Mary Ann", None)
    """
    raw = _clean_ws(raw)
    if raw is None:
        return None, None
    m = _SURNAME_SLASHES_RE.search(raw)
    if not m:
        return raw, None
    surname = _clean_ws(m.group(1))
    given = _clean_ws(raw[: m.start()] + " " + raw[m.end():])
    return given, surname
