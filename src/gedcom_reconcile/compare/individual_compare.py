"""
Individual Comparator.

For every source person decide, in priority order:

1. existing mapping (seed / earlier iterations) -> short-circuit
2. RFN: same external profile id on both sides -> score 100
3. fuzzy candidates >= threshold, resolved greedily across all source
   persons (best score first) so a destination is claimed at most once
4. top-score ties stay ambiguous unless family context singles one out

Resolved pairs are run through the Field Differ (matched vs needs-update);
unresolved persons become "to add". Records are never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Mapping, Optional, Set, Union

from gedcom_reconcile.compare.field_differ import FieldDiffer
from gedcom_reconcile.compare.models import (
    AmbiguousMatch,
    CompareOptions,
    IndividualCompareResult,
    MatchCandidate,
    MatchedNode,
    MatchMethod,
    MatchResult,
    NodeToAdd,
    NodeToDelete,
    NodeToUpdate,
    PersonMapping,
)
from gedcom_reconcile.identity.profile_id import normalize_profile_id
from gedcom_reconcile.logging import get_logger
from gedcom_reconcile.matching.fuzzy_matcher import FuzzyMatcher
from gedcom_reconcile.registry.entities import PersonRecord

log = get_logger("individual_compare")

ExistingMatches = Union[PersonMapping, Mapping[str, str], None]


@dataclass(slots=True)
class _Resolution:
    destination_id: str
    score: float
    method: MatchMethod


def as_person_mapping(existing: ExistingMatches) -> PersonMapping:
    if existing is None:
        return PersonMapping()
    if isinstance(existing, PersonMapping):
        return existing
    mapping = PersonMapping.from_dict(existing)
    if len(mapping) != len(existing):
        log.warning(
            "Existing matches are not injective: kept %d of %d entries",
            len(mapping), len(existing),
        )
    return mapping


def build_rfn_index(dest_persons: Mapping[str, PersonRecord]) -> Dict[str, str]:
    """Normalized external id -> destination person id (profile ids win over record ids)."""
    index: Dict[str, str] = {}
    for dest_id, person in dest_persons.items():
        key = normalize_profile_id(person.profile_id)
        if key and key not in index:
            index[key] = dest_id
    for dest_id in dest_persons:
        key = normalize_profile_id(dest_id)
        if key:
            index.setdefault(key, dest_id)
    return index


def mark_ambiguous(top: MatchResult, tied: List[MatchResult], dest_persons: Mapping[str, PersonRecord]) -> MatchResult:
    """Flag ``top`` as undecided among ``tied`` (equal top scores, ``top`` included)."""
    return replace(
        top,
        is_ambiguous=True,
        tied_candidates=[
            MatchCandidate(c.target_id, c.score, dest_persons[c.target_id].summary(), c.reasons)
            for c in tied
        ],
    )


class IndividualComparator:
    def __init__(self, matcher: FuzzyMatcher, differ: Optional[FieldDiffer] = None):
        self.matcher = matcher
        self.differ = differ or FieldDiffer()

    def compare_individuals(
        self,
        source_persons: Mapping[str, PersonRecord],
        dest_persons: Mapping[str, PersonRecord],
        options: CompareOptions,
        existing_matches: ExistingMatches = None,
        match_unmapped: bool = True,
    ) -> IndividualCompareResult:
        """
        With ``match_unmapped=False`` only the existing matches are reported:
        no RFN or fuzzy resolution runs and everyone else is "to add".
        """
        existing = as_person_mapping(existing_matches)
        resolved: Dict[str, _Resolution] = {}
        claimed: Set[str] = set()
        pending: List[str] = []

        # ------------------------------------------------------------------
        # Authoritative matches: existing mapping, then RFN
        # ------------------------------------------------------------------
        rfn_index = build_rfn_index(dest_persons)
        for source_id, person in source_persons.items():
            entry = existing.entry(source_id)
            if entry is not None and entry.destination_id in dest_persons:
                resolved[source_id] = _Resolution(entry.destination_id, entry.score, entry.method)
                claimed.add(entry.destination_id)
                continue
            pending.append(source_id)
        if not match_unmapped:
            pending = []

        still_pending: List[str] = []
        for source_id in pending:
            key = normalize_profile_id(source_persons[source_id].profile_id)
            dest_id = rfn_index.get(key) if key else None
            if dest_id is not None and dest_id not in claimed:
                resolved[source_id] = _Resolution(dest_id, 100.0, MatchMethod.RFN)
                claimed.add(dest_id)
                log.debug("RFN match %s -> %s", source_id, dest_id)
            else:
                still_pending.append(source_id)
        pending = still_pending

        # ------------------------------------------------------------------
        # Fuzzy candidates, claimed greedily across all source persons
        # ------------------------------------------------------------------
        available = [p for dest_id, p in dest_persons.items() if dest_id not in claimed]
        candidates: Dict[str, List[MatchResult]] = {
            source_id: self.matcher.find_matches(source_persons[source_id], available, options.match_threshold)
            for source_id in pending
        }
        known = existing.as_dict()
        known.update({s: r.destination_id for s, r in resolved.items()})

        ambiguous: Dict[str, MatchResult] = {}
        order = {source_id: i for i, source_id in enumerate(pending)}
        ranked = sorted(
            (
                (result.score, order[source_id], k, source_id, result)
                for source_id in pending
                for k, result in enumerate(candidates[source_id])
            ),
            key=lambda t: (-t[0], t[1], t[2]),
        )
        decided: Set[str] = set()
        for score, _, _, source_id, result in ranked:
            if source_id in decided or result.target_id in claimed:
                continue
            decided.add(source_id)
            tied = [
                c for c in candidates[source_id]
                if c.score == score and c.target_id not in claimed
            ]
            if len(tied) > 1 and options.require_unique_match:
                winner = self._resolve_by_family(
                    source_persons[source_id], tied, dest_persons, known
                )
                if winner is None:
                    ambiguous[source_id] = mark_ambiguous(result, tied, dest_persons)
                    log.info(
                        "Ambiguous match for %s: %d candidates tied at %.2f",
                        source_id, len(tied), score,
                    )
                    continue
                resolved[source_id] = _Resolution(
                    winner.target_id, winner.score, MatchMethod.AMBIGUOUS_RESOLVED_BY_FAMILY
                )
                claimed.add(winner.target_id)
                continue
            resolved[source_id] = _Resolution(result.target_id, result.score, MatchMethod.FUZZY)
            claimed.add(result.target_id)

        # ------------------------------------------------------------------
        # Assemble outcome, in source order
        # ------------------------------------------------------------------
        out = IndividualCompareResult()
        for source_id, person in source_persons.items():
            if source_id in resolved:
                res = resolved[source_id]
                dest = dest_persons[res.destination_id]
                diffs = self.differ.compare_fields(person, dest)
                summary = f"{person.summary()} -> {dest.summary()}"
                if diffs:
                    out.nodes_to_update.append(
                        NodeToUpdate(source_id, res.destination_id, res.score, res.method, diffs, summary)
                    )
                else:
                    out.matched_nodes.append(
                        MatchedNode(source_id, res.destination_id, res.score, res.method, summary)
                    )
            elif source_id in ambiguous:
                out.ambiguous_matches.append(
                    AmbiguousMatch(source_id, ambiguous[source_id].tied_candidates, person.summary())
                )
            else:
                out.nodes_to_add.append(NodeToAdd(source_id, person, person.summary()))

        if options.include_delete_suggestions:
            in_review = {c.destination_id for top in ambiguous.values() for c in top.tied_candidates}
            for dest_id, dest in dest_persons.items():
                if dest_id not in claimed and dest_id not in in_review:
                    out.nodes_to_delete.append(NodeToDelete(dest_id, dest.summary()))

        log.info(
            "Individuals: matched=%d update=%d add=%d ambiguous=%d delete=%d",
            len(out.matched_nodes),
            len(out.nodes_to_update),
            len(out.nodes_to_add),
            len(out.ambiguous_matches),
            len(out.nodes_to_delete),
        )
        return out

    @staticmethod
    def _resolve_by_family(
        source: PersonRecord,
        tied: List[MatchResult],
        dest_persons: Mapping[str, PersonRecord],
        known: Mapping[str, str],
    ) -> Optional[MatchResult]:
        """
        Pick the tied candidate whose relatives are the mapped counterparts of
        the source's relatives. Needs a strict single winner with support > 0.
        """
        mapped_relatives = {known[r] for r in source.relative_ids if r in known}
        if not mapped_relatives:
            return None

        support = [
            len(mapped_relatives & set(dest_persons[c.target_id].relative_ids))
            for c in tied
        ]
        best = max(support)
        if best == 0 or support.count(best) > 1:
            return None
        winner = tied[support.index(best)]
        log.info(
            "Resolved ambiguous match %s -> %s by family context (%d shared relatives)",
            source.id, winner.target_id, best,
        )
        return winner
