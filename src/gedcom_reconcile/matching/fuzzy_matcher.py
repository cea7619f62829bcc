"""
Fuzzy Person Matcher.

Scores how likely two person records (one per tree) denote the same
individual. Each field contributes weighted points toward a 0-100 total:

- first / last name (name equivalence oracle, substring, SequenceMatcher)
- birth date / death date (precision-aware, decaying with year distance)
- birth place (token-set similarity)
- gender (penalty only, never a bonus)

Weights are normalized at compare time so the best possible score is 100
whatever they sum to. Every nonzero contribution is recorded as a reason.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, fields
from typing import Any, Iterable, List, Optional, Tuple

from gedcom_reconcile.compare.models import MatchMethod, MatchReason, MatchResult
from gedcom_reconcile.dates.normalizer import DateInfo, DatePrecision
from gedcom_reconcile.logging import get_logger
from gedcom_reconcile.normalization.name_normalization import normalize_name, normalize_place
from gedcom_reconcile.normalization.name_variants import (
    ExactNameOracle,
    NameEquivalenceOracle,
    NameRole,
)
from gedcom_reconcile.registry.entities import PersonRecord

log = get_logger("fuzzy_matcher")

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_MATCH_THRESHOLD = 70
MIN_SUBSTRING_LENGTH = 3
PLACE_CONTAINMENT_SCORE = 0.8
FIRST_WORD_SCORE = 0.9


@dataclass(slots=True)
class MatchingOptions:
    first_name_weight: float = 30
    last_name_weight: float = 25
    birth_date_weight: float = 20
    birth_place_weight: float = 15
    death_date_weight: float = 10
    gender_mismatch_penalty: float = 25
    max_birth_year_difference: int = 10
    name_similarity_floor: float = 0.75
    substring_score: float = 0.85
    match_threshold: float = DEFAULT_MATCH_THRESHOLD

    @property
    def total_weight(self) -> float:
        return (
            self.first_name_weight
            + self.last_name_weight
            + self.birth_date_weight
            + self.birth_place_weight
            + self.death_date_weight
        )

    @classmethod
    def from_config(cls, cfg: Any) -> "MatchingOptions":
        section = dict(getattr(cfg, "matching", {}) or {})
        compare = dict(getattr(cfg, "compare", {}) or {})
        if "match_threshold" in compare and "match_threshold" not in section:
            section["match_threshold"] = compare["match_threshold"]
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(section) - known)
        if unknown:
            log.warning("Ignoring unknown matching options: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in section.items() if k in known})


# ---------------------------------------------------------------------------
# Helper utilities
# ---------------------------------------------------------------------------

def jaro_ratio(a: str, b: str) -> float:
    """Use SequenceMatcher as a reasonable proxy for fuzzy similarity."""
    a = a or ""
    b = b or ""
    if not a and not b:
        return 0.0
    return difflib.SequenceMatcher(None, a, b).ratio()


def year_distance(a: DateInfo, b: DateInfo) -> int:
    """Distance in years; 0 when either range contains the other's year."""
    if a.contains_year(b.year) or b.contains_year(a.year):
        return 0
    lo_a, hi_a = a.year, (a.range_end.year if a.range_end else a.year)
    lo_b, hi_b = b.year, (b.range_end.year if b.range_end else b.year)
    if hi_a < lo_b:
        return lo_b - hi_a
    if hi_b < lo_a:
        return lo_a - hi_b
    return 0


def date_similarity(a: Optional[DateInfo], b: Optional[DateInfo], max_year_difference: int) -> Tuple[float, str]:
    """
    Compare two dates at the coarser of their precisions.

    Equal at that precision -> 1.0; same year but different month -> 0.85;
    same month but different day -> 0.95; otherwise decays with the year
    distance and is 0 beyond ``max_year_difference``.
    """
    if a is None or b is None:
        return 0.0, ""

    diff = year_distance(a, b)
    if diff == 0:
        if a.range_end is not None or b.range_end is not None:
            return 1.0, f"{b.year} within {a}" if a.range_end else f"{a.year} within {b}"
        precision = a.coarser_precision(b)
        if precision >= DatePrecision.MONTH and a.month != b.month:
            return 0.85, f"same year {a.year}, different month"
        if precision is DatePrecision.DAY and a.day != b.day:
            return 0.95, f"same month {a.year}-{a.month:02d}, different day"
        return 1.0, f"{a.to_geni_format()} matches"

    if diff > max_year_difference:
        return 0.0, ""
    if diff <= 1:
        fraction = 0.8
    elif diff <= 2:
        fraction = 0.6
    elif diff <= 5:
        fraction = 0.4
    else:
        fraction = 0.2
    return fraction, f"{a.year} vs {b.year} ({diff} years apart)"


def place_similarity(a: Optional[str], b: Optional[str]) -> Tuple[float, str]:
    """Token-set similarity; administrative names change, towns rarely do."""
    na, nb = normalize_place(a), normalize_place(b)
    if not na or not nb:
        return 0.0, ""
    if na == nb:
        return 1.0, "same place"
    if na in nb or nb in na:
        return PLACE_CONTAINMENT_SCORE, f"'{a}' / '{b}' contain each other"

    tokens_a = {t for t in na.split(" ") if len(t) > 2}
    tokens_b = {t for t in nb.split(" ") if len(t) > 2}
    if not tokens_a or not tokens_b:
        return 0.0, ""
    shared = tokens_a & tokens_b
    if not shared:
        return 0.0, ""
    jaccard = len(shared) / len(tokens_a | tokens_b)
    return jaccard, f"shared tokens: {', '.join(sorted(shared))}"


# ---------------------------------------------------------------------------
# Matcher
# ---------------------------------------------------------------------------

class FuzzyMatcher:
    """
    Pure, deterministic pairwise scorer.

    ``oracle`` answers name equivalence; if it raises, the matcher logs a
    warning once and falls back to exact-string equivalence for the rest
    of its lifetime.
    """

    def __init__(
        self,
        options: Optional[MatchingOptions] = None,
        oracle: Optional[NameEquivalenceOracle] = None,
    ):
        self.options = options or MatchingOptions()
        self._oracle: NameEquivalenceOracle = oracle or ExactNameOracle()
        self._oracle_degraded = False

    @property
    def oracle_degraded(self) -> bool:
        return self._oracle_degraded

    # ------------------------------------------------------------------
    # Name helpers
    # ------------------------------------------------------------------

    def _equivalent(self, a: Optional[str], b: Optional[str], role: NameRole) -> bool:
        if not a or not b:
            return False
        try:
            return bool(self._oracle.are_equivalent(a, b, role))
        except Exception as exc:
            if not self._oracle_degraded:
                log.warning(
                    "Name equivalence oracle failed (%s); falling back to exact-string comparison",
                    exc,
                )
            self._oracle_degraded = True
            self._oracle = ExactNameOracle()
            return self._oracle.are_equivalent(a, b, role)

    def _similarity(self, a: str, b: str) -> float:
        ratio = jaro_ratio(a, b)
        return ratio if ratio >= self.options.name_similarity_floor else 0.0

    def first_name_similarity(self, source: PersonRecord, target: PersonRecord) -> Tuple[float, str]:
        a = source.normalized_first_name
        b = target.normalized_first_name
        if not a or not b:
            return 0.0, ""
        if a == b:
            return 1.0, f"'{source.first_name}' = '{target.first_name}'"
        if self._equivalent(source.first_name, target.first_name, NameRole.GIVEN):
            return 1.0, f"'{source.first_name}' ~ '{target.first_name}' (variant)"

        # Nicknames and middle names recorded as the given name on one side
        source_alts = [source.first_name, source.nickname]
        target_alts = [target.first_name, target.nickname, target.middle_name]
        for i, src in enumerate(source_alts):
            for j, tgt in enumerate(target_alts):
                if (i, j) == (0, 0) or not src or not tgt:
                    continue
                if normalize_name(src) == normalize_name(tgt) or self._equivalent(src, tgt, NameRole.GIVEN):
                    return 1.0, f"'{src}' ~ '{tgt}' (alternate name)"

        words_a, words_b = a.split(" "), b.split(" ")
        if (len(words_a) > 1 or len(words_b) > 1) and (
            words_a[0] == words_b[0] or self._equivalent(words_a[0], words_b[0], NameRole.GIVEN)
        ):
            return FIRST_WORD_SCORE, f"same first given name '{words_a[0]}'"

        shorter, longer = sorted((a, b), key=len)
        if len(shorter) >= MIN_SUBSTRING_LENGTH and shorter in longer:
            return self.options.substring_score, f"'{shorter}' contained in '{longer}'"

        ratio = self._similarity(a, b)
        if ratio:
            return ratio, f"'{source.first_name}' ~ '{target.first_name}' ({ratio:.2f})"
        return 0.0, ""

    def _surname_similarity(self, a: Optional[str], b: Optional[str]) -> float:
        na, nb = normalize_name(a), normalize_name(b)
        if not na or not nb:
            return 0.0
        if na == nb or self._equivalent(a, b, NameRole.SURNAME):
            return 1.0
        return self._similarity(na, nb)

    def last_name_similarity(self, source: PersonRecord, target: PersonRecord) -> Tuple[float, str]:
        best, details = 0.0, ""
        pairs = [
            (source.last_name, target.last_name, ""),
            (source.last_name, target.maiden_name, " (target maiden name)"),
            (source.maiden_name, target.last_name, " (source maiden name)"),
            (source.maiden_name, target.maiden_name, " (maiden names)"),
        ]
        for src, tgt, note in pairs:
            score = self._surname_similarity(src, tgt)
            if score > best:
                best = score
                relation = "=" if score == 1.0 else "~"
                details = f"'{src}' {relation} '{tgt}'{note}"
        return best, details

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def compare(self, source: PersonRecord, target: PersonRecord) -> MatchResult:
        opts = self.options
        total_weight = opts.total_weight
        factor = 100.0 / total_weight if total_weight > 0 else 0.0

        reasons: List[MatchReason] = []
        total = 0.0

        def contribute(field_name: str, weight: float, fraction: float, details: str) -> None:
            nonlocal total
            points = weight * fraction * factor
            if points == 0:
                return
            total += points
            reasons.append(MatchReason(field_name, round(points, 2), details))

        contribute("FirstName", opts.first_name_weight, *self.first_name_similarity(source, target))
        contribute("LastName", opts.last_name_weight, *self.last_name_similarity(source, target))
        contribute(
            "BirthDate",
            opts.birth_date_weight,
            *date_similarity(source.birth_date, target.birth_date, opts.max_birth_year_difference),
        )
        contribute("BirthPlace", opts.birth_place_weight, *place_similarity(source.birth_place, target.birth_place))
        contribute(
            "DeathDate",
            opts.death_date_weight,
            *date_similarity(source.death_date, target.death_date, opts.max_birth_year_difference),
        )

        if source.gender.is_known and target.gender.is_known and source.gender is not target.gender:
            contribute(
                "Gender",
                -opts.gender_mismatch_penalty,
                1.0,
                f"{source.gender.value} vs {target.gender.value}",
            )

        score = round(max(0.0, min(100.0, total)), 2)
        return MatchResult(
            source_id=source.id,
            target_id=target.id,
            score=score,
            reasons=reasons,
            method=MatchMethod.FUZZY,
        )

    def passes_prefilter(self, source: PersonRecord, candidate: PersonRecord) -> bool:
        """Gender and birth-year window; unknown values never exclude."""
        if (
            source.gender.is_known
            and candidate.gender.is_known
            and source.gender is not candidate.gender
        ):
            return False
        if source.birth_date is not None and candidate.birth_date is not None:
            if year_distance(source.birth_date, candidate.birth_date) > self.options.max_birth_year_difference:
                return False
        return True

    def find_matches(
        self,
        source: PersonRecord,
        candidates: Iterable[PersonRecord],
        min_score: Optional[float] = None,
    ) -> List[MatchResult]:
        """Prefiltered candidates scoring >= ``min_score``, best first (stable)."""
        threshold = self.options.match_threshold if min_score is None else min_score
        results: List[MatchResult] = []
        for candidate in candidates:
            if not self.passes_prefilter(source, candidate):
                continue
            result = self.compare(source, candidate)
            if result.score >= threshold:
                results.append(result)
        results.sort(key=lambda r: r.score, reverse=True)
        log.debug("find_matches(%s): %d candidate(s) >= %.1f", source.id, len(results), threshold)
        return results
