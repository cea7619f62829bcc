# src/gedcom_reconcile/dates/normalizer.py

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Dict, List, Optional, Tuple


class DatePrecision(IntEnum):
    YEAR = 1
    MONTH = 2
    DAY = 3


class DateModifier(str, Enum):
    EXACT = "exact"
    ABOUT = "about"
    BEFORE = "before"
    AFTER = "after"
    BETWEEN = "between"


# ---------------------------------------------------------------------------
# Month and calendar helpers
# ---------------------------------------------------------------------------

MONTHS = {
    "JAN": 1,
    "FEB": 2,
    "MAR": 3,
    "APR": 4,
    "MAY": 5,
    "JUN": 6,
    "JUL": 7,
    "AUG": 8,
    "SEP": 9,
    "SEPT": 9,
    "OCT": 10,
    "NOV": 11,
    "DEC": 12,
}

CALENDAR_ALIASES = {
    "JULIAN": "JULIAN",
    "OLD STYLE": "JULIAN",
    "GREGORIAN": "GREGORIAN",
    "NEW STYLE": "GREGORIAN",
}

SEASONS = {"spring", "summer", "autumn", "fall", "winter"}

ISO_DATE_RE = re.compile(r"^(\d{3,4})(?:-(\d{1,2}))?(?:-(\d{1,2}))?$")


# ---------------------------------------------------------------------------
# Qualifier / modifier aliases
# ---------------------------------------------------------------------------

# alias (lowercase) -> modifier
QUALIFIER_ALIASES: Dict[str, DateModifier] = {}


def _add_qualifier_aliases(aliases: List[str], modifier: DateModifier) -> None:
    for a in aliases:
        QUALIFIER_ALIASES[a.lower()] = modifier


# Approximate, estimated and calculated dates all compare as ABOUT
_add_qualifier_aliases(
    [
        "abt", "abt.", "about", "approx", "approx.", "approximately",
        "circa", "c", "c.", "ca", "ca.", "around",
        "est", "est.", "estimated",
        "cal", "cal.", "calculated",
    ],
    DateModifier.ABOUT,
)

_add_qualifier_aliases(
    ["bef", "bef.", "before", "prior to", "pre", "earlier than"],
    DateModifier.BEFORE,
)

_add_qualifier_aliases(
    ["aft", "aft.", "after", "post", "later than"],
    DateModifier.AFTER,
)

RANGE_START_WORDS = ("bet", "bet.", "between", "btw", "betw")
FROM_WORDS = ("from", "since")
TO_WORDS = ("to", "until", "thru", "through")

GENI_PREFIXES = {
    DateModifier.ABOUT: "ABT ",
    DateModifier.BEFORE: "BEF ",
    DateModifier.AFTER: "AFT ",
    DateModifier.BETWEEN: "BET ",
    DateModifier.EXACT: "",
}


# ---------------------------------------------------------------------------
# Date value
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class DateInfo:
    """
    A point (or range) in time with explicit precision.

    Only ``year`` is meaningful for YEAR precision; ``month`` is added for
    MONTH precision and ``day`` for DAY precision. ``range_end`` is set iff
    the modifier is BETWEEN.
    """
    year: int
    month: Optional[int] = None
    day: Optional[int] = None
    precision: DatePrecision = DatePrecision.YEAR
    modifier: DateModifier = DateModifier.EXACT
    range_end: Optional["DateInfo"] = None
    original: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.modifier is DateModifier.BETWEEN) != (self.range_end is not None):
            raise ValueError("range_end must be set exactly when modifier is BETWEEN")
        if self.precision >= DatePrecision.MONTH and self.month is None:
            raise ValueError("MONTH precision requires a month")
        if self.precision is DatePrecision.DAY and self.day is None:
            raise ValueError("DAY precision requires a day")

    @classmethod
    def from_year(cls, year: int, modifier: DateModifier = DateModifier.EXACT) -> "DateInfo":
        return cls(year=year, modifier=modifier)

    @classmethod
    def from_ymd(cls, year: int, month: int, day: int) -> "DateInfo":
        return cls(year=year, month=month, day=day, precision=DatePrecision.DAY)

    def truncated(self, precision: DatePrecision) -> Tuple[int, ...]:
        """Components up to ``precision`` (never below this date's own precision)."""
        p = min(precision, self.precision)
        if p is DatePrecision.DAY:
            return (self.year, self.month, self.day)
        if p is DatePrecision.MONTH:
            return (self.year, self.month)
        return (self.year,)

    def coarser_precision(self, other: "DateInfo") -> DatePrecision:
        return min(self.precision, other.precision)

    def is_more_precise_than(self, other: "DateInfo") -> bool:
        return self.precision > other.precision

    def contains_year(self, year: int) -> bool:
        if self.range_end is None:
            return self.year == year
        return self.year <= year <= self.range_end.year

    def to_geni_format(self) -> str:
        """Render as ``[PREFIX ]YYYY[-MM[-DD]]`` for the destination system."""
        parts = [f"{self.year:04d}"]
        if self.precision >= DatePrecision.MONTH:
            parts.append(f"{self.month:02d}")
        if self.precision is DatePrecision.DAY:
            parts.append(f"{self.day:02d}")
        text = GENI_PREFIXES[self.modifier] + "-".join(parts)
        if self.range_end is not None:
            text += " AND " + self.range_end.to_geni_format()
        return text

    def __str__(self) -> str:
        return self.original or self.to_geni_format()


# ---------------------------------------------------------------------------
# Core parsing helpers
# ---------------------------------------------------------------------------

def _strip_calendar_suffix(raw: str) -> str:
    """Remove a trailing '(CalendarName)' suffix if present."""
    s = raw.strip()
    if s.endswith(")"):
        idx = s.rfind("(")
        if idx != -1:
            label = s[idx + 1 : -1].strip()
            if CALENDAR_ALIASES.get(label.upper()):
                s = s[:idx].strip()
    return s


def _parse_year(token: str) -> Optional[int]:
    token = token.strip()
    # allow 3-digit "year" for deep history
    if len(token) in (3, 4) and token.isdigit():
        return int(token)
    return None


def _parse_simple_date(tokens: List[str], original: Optional[str]) -> Optional[DateInfo]:
    """
    Parse a date with no leading qualifier.

    Supports '1900', 'JAN 1900', '1 JAN 1900', '1900-01-05' and
    'spring 1880' (year precision).
    """
    if not tokens:
        return None

    # Seasonal: 'spring 1880'
    if len(tokens) == 2 and tokens[0].lower() in SEASONS:
        year = _parse_year(tokens[1])
        return DateInfo(year=year, original=original) if year is not None else None

    if len(tokens) == 1:
        m = ISO_DATE_RE.match(tokens[0])
        if not m:
            return None
        year = int(m.group(1))
        if m.group(3):
            return DateInfo(year=year, month=int(m.group(2)), day=int(m.group(3)),
                            precision=DatePrecision.DAY, original=original)
        if m.group(2):
            return DateInfo(year=year, month=int(m.group(2)),
                            precision=DatePrecision.MONTH, original=original)
        return DateInfo(year=year, original=original)

    if len(tokens) == 2:
        mon_token, year_token = tokens
        year = _parse_year(year_token)
        mon = MONTHS.get(mon_token.upper().rstrip("."))
        if year is not None and mon is not None:
            return DateInfo(year=year, month=mon, precision=DatePrecision.MONTH, original=original)
        return None

    # >= 3 tokens: 'DD MON YYYY'
    day_token, mon_token, year_token = tokens[0], tokens[1], tokens[2]
    year = _parse_year(year_token)
    mon = MONTHS.get(mon_token.upper().rstrip("."))
    if year is not None and mon is not None and day_token.isdigit():
        return DateInfo(year=year, month=mon, day=int(day_token),
                        precision=DatePrecision.DAY, original=original)

    return None


def _split_on(tokens: List[str], separators: Tuple[str, ...]) -> Optional[Tuple[List[str], List[str]]]:
    """
    Split tokens into (left, right) at the first occurrence of any separator
    token (case-insensitive). Returns None if no separator found.
    """
    for i, t in enumerate(tokens):
        if t.lower() in separators:
            return tokens[:i], tokens[i + 1 :]
    return None


def _with_modifier(d: Optional[DateInfo], modifier: DateModifier, original: str) -> Optional[DateInfo]:
    if d is None:
        return None
    return DateInfo(year=d.year, month=d.month, day=d.day, precision=d.precision,
                     modifier=modifier, original=original)


def _range(left: Optional[DateInfo], right: Optional[DateInfo], original: str) -> Optional[DateInfo]:
    if left is None and right is None:
        return None
    if left is None:
        return _with_modifier(right, DateModifier.BEFORE, original)
    if right is None:
        return _with_modifier(left, DateModifier.AFTER, original)
    return DateInfo(year=left.year, month=left.month, day=left.day, precision=left.precision,
                    modifier=DateModifier.BETWEEN, range_end=right, original=original)


# ---------------------------------------------------------------------------
# Main public API
# ---------------------------------------------------------------------------

def parse_date(raw: Optional[str]) -> Optional[DateInfo]:
    """
    Parse a GEDCOM-style DATE value into a ``DateInfo``.

    Hybrid precision behavior:
        - '1 JAN 1900'   -> DAY precision
        - 'JAN 1900'     -> MONTH precision
        - '1900'         -> YEAR precision

    Qualifiers (ABT/EST/CAL, BEF, AFT) and ranges (BET .. AND .., FROM .. TO ..)
    become modifiers. Returns None when no calendar date can be recovered.
    """
    if raw is None:
        return None
    s = str(raw).strip()
    if not s:
        return None

    base = _strip_calendar_suffix(s)
    tokens = [t for t in base.replace(",", " ").split() if t]
    if not tokens:
        return None

    first_lower = tokens[0].lower()

    # BET <date1> AND <date2>
    if first_lower in RANGE_START_WORDS:
        split = _split_on(tokens[1:], ("and", "-"))
        if split:
            left_tokens, right_tokens = split
            return _range(
                _parse_simple_date(left_tokens, None),
                _parse_simple_date(right_tokens, None),
                s,
            )
        return _with_modifier(_parse_simple_date(tokens[1:], None), DateModifier.ABOUT, s)

    # FROM <date1> [TO <date2>]
    if first_lower in FROM_WORDS:
        split = _split_on(tokens[1:], TO_WORDS)
        if split:
            left_tokens, right_tokens = split
            return _range(
                _parse_simple_date(left_tokens, None),
                _parse_simple_date(right_tokens, None),
                s,
            )
        return _with_modifier(_parse_simple_date(tokens[1:], None), DateModifier.AFTER, s)

    if first_lower in TO_WORDS:
        return _with_modifier(_parse_simple_date(tokens[1:], None), DateModifier.BEFORE, s)

    # Two-word qualifiers ("prior to", "later than")
    if len(tokens) > 2:
        two = f"{first_lower} {tokens[1].lower()}"
        if two in QUALIFIER_ALIASES:
            return _with_modifier(_parse_simple_date(tokens[2:], None), QUALIFIER_ALIASES[two], s)

    if first_lower in QUALIFIER_ALIASES:
        return _with_modifier(_parse_simple_date(tokens[1:], None), QUALIFIER_ALIASES[first_lower], s)

    return _parse_simple_date(tokens, s)
