"""
Family Comparator.

Matches source families to destination families through the person mapping
established so far, and feeds newly discovered person mappings (partners and
children of matched families) back to the caller.

Processing order is a priority queue over source families: more mapped
members first, with a bonus when both partners are mapped. Priorities only
grow while a pass runs (each match can map more people), so the queue is
re-prioritized lazily when an entry is popped.
"""

from __future__ import annotations

import heapq
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Set, Tuple

from gedcom_reconcile.compare.field_differ import diff_date, diff_string
from gedcom_reconcile.compare.models import (
    CompareOptions,
    FamilyCompareResult,
    FamilyMemberRef,
    FamilyToAdd,
    FamilyToDelete,
    FamilyToUpdate,
    FieldAction,
    FieldDiff,
    IndividualCompareResult,
    MappingEntry,
    MatchedFamily,
    MatchMethod,
    PersonMapping,
)
from gedcom_reconcile.logging import get_logger
from gedcom_reconcile.matching.fuzzy_matcher import FuzzyMatcher
from gedcom_reconcile.registry.entities import FamilyRecord, PersonRecord

log = get_logger("family_compare")

EQUAL_COUNT_CHILD_THRESHOLD = 70
UNEQUAL_COUNT_CHILD_THRESHOLD = 85
BOTH_PARTNERS_BONUS = 2

EXACT_PASS = "exact"
LOOSE_PASS = "loose"


# ---------------------------------------------------------------------------
# Signatures
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class FamilySignature:
    """Destination ids derivable from a source family via the current mapping."""
    family_id: str
    husband: Optional[str]
    wife: Optional[str]
    children: FrozenSet[str]
    unmapped_children: Tuple[str, ...]
    member_count: int

    @property
    def mapped_count(self) -> int:
        return int(self.husband is not None) + int(self.wife is not None) + len(self.children)

    @property
    def both_partners_mapped(self) -> bool:
        return self.husband is not None and self.wife is not None

    @property
    def priority(self) -> int:
        return self.mapped_count + (BOTH_PARTNERS_BONUS if self.both_partners_mapped else 0)

    @property
    def mapped_ratio(self) -> float:
        return self.mapped_count / self.member_count if self.member_count else 0.0

    @property
    def all_children_mapped(self) -> bool:
        return bool(self.children) and not self.unmapped_children


def build_signature(family: FamilyRecord, lookup: Callable[[str], Optional[str]]) -> FamilySignature:
    children = []
    unmapped = []
    for child_id in family.child_ids:
        dest_id = lookup(child_id)
        if dest_id is None:
            unmapped.append(child_id)
        else:
            children.append(dest_id)
    return FamilySignature(
        family_id=family.id,
        husband=lookup(family.husband_id) if family.husband_id else None,
        wife=lookup(family.wife_id) if family.wife_id else None,
        children=frozenset(children),
        unmapped_children=tuple(unmapped),
        member_count=len(family.member_ids),
    )


def _partner_ok(source_declared: bool, mapped: Optional[str], dest_partner: Optional[str], loose: bool) -> bool:
    if mapped is not None:
        return dest_partner == mapped
    if source_declared and not loose:
        return dest_partner is None
    return True


def signature_fits(sig: FamilySignature, family: FamilyRecord, dest: FamilyRecord, loose: bool) -> bool:
    return (
        _partner_ok(family.husband_id is not None, sig.husband, dest.husband_id, loose)
        and _partner_ok(family.wife_id is not None, sig.wife, dest.wife_id, loose)
        and sig.children <= set(dest.child_ids)
    )


# ---------------------------------------------------------------------------
# Comparator
# ---------------------------------------------------------------------------

class FamilyComparator:
    def __init__(self, matcher: Optional[FuzzyMatcher] = None):
        self.matcher = matcher

    def compare_families(
        self,
        source_families: Mapping[str, FamilyRecord],
        dest_families: Mapping[str, FamilyRecord],
        individual_result: IndividualCompareResult,
        options: CompareOptions,
        source_persons: Optional[Mapping[str, PersonRecord]] = None,
        dest_persons: Optional[Mapping[str, PersonRecord]] = None,
    ) -> FamilyCompareResult:
        running = PersonMapping(individual_result.resolved_entries())
        initial = set(running)

        member_index = self._index_members(dest_families)
        matched_dest: Set[str] = set()
        matched_source: Dict[str, Tuple[str, str]] = {}

        order = {fid: i for i, fid in enumerate(source_families)}
        heap: List[Tuple[int, float, int, str]] = []
        for fid, family in source_families.items():
            sig = build_signature(family, running.get)
            heapq.heappush(heap, (-sig.priority, -sig.mapped_ratio, order[fid], fid))

        while heap:
            neg_priority, neg_ratio, position, fid = heapq.heappop(heap)
            family = source_families[fid]
            sig = build_signature(family, running.get)
            current = (-sig.priority, -sig.mapped_ratio, position, fid)
            if current < (neg_priority, neg_ratio, position, fid):
                heapq.heappush(heap, current)
                continue

            if sig.mapped_count == 0:
                continue

            match = self._find_match(family, sig, dest_families, member_index, matched_dest)
            if match is None:
                continue

            dest_family, match_pass = match
            matched_dest.add(dest_family.id)
            matched_source[fid] = (dest_family.id, match_pass)
            log.debug("Family %s -> %s (%s pass, priority %d)", fid, dest_family.id, match_pass, sig.priority)

            self._capture_partners(family, dest_family, running, source_persons, dest_persons)
            self._assign_children(family, dest_family, running, source_persons, dest_persons)

        result = self.build_outcome(source_families, dest_families, matched_source, running, options)
        for source_id in running:
            if source_id not in initial:
                result.new_person_mappings[source_id] = running.entry(source_id)

        log.info(
            "Families: matched=%d update=%d add=%d delete=%d new_person_mappings=%d",
            len(result.matched_families),
            len(result.families_to_update),
            len(result.families_to_add),
            len(result.families_to_delete),
            len(result.new_person_mappings),
        )
        return result

    # ------------------------------------------------------------------
    # Structural matching
    # ------------------------------------------------------------------

    @staticmethod
    def _index_members(dest_families: Mapping[str, FamilyRecord]) -> Dict[str, List[str]]:
        index: Dict[str, List[str]] = {}
        for dest_id, fam in dest_families.items():
            for member in fam.member_ids:
                index.setdefault(member, []).append(dest_id)
        return index

    def _find_match(
        self,
        family: FamilyRecord,
        sig: FamilySignature,
        dest_families: Mapping[str, FamilyRecord],
        member_index: Dict[str, List[str]],
        matched_dest: Set[str],
    ) -> Optional[Tuple[FamilyRecord, str]]:
        anchors = [m for m in (sig.husband, sig.wife, *sorted(sig.children)) if m is not None]
        candidate_ids: List[str] = []
        for member in anchors:
            for dest_id in member_index.get(member, ()):
                if dest_id not in matched_dest and dest_id not in candidate_ids:
                    candidate_ids.append(dest_id)
        candidates = [dest_families[d] for d in candidate_ids]

        passes = [(EXACT_PASS, False)]
        if sig.all_children_mapped:
            passes.append((LOOSE_PASS, True))

        for pass_name, loose in passes:
            fits = [d for d in candidates if signature_fits(sig, family, d, loose)]
            if not fits:
                continue
            chosen = self._unique_best(sig, fits)
            if chosen is None:
                log.info(
                    "Family %s: %d destination families fit equally well (%s pass); not matching",
                    family.id, len(fits), pass_name,
                )
                return None
            return chosen, pass_name
        return None

    @staticmethod
    def _unique_best(sig: FamilySignature, fits: List[FamilyRecord]) -> Optional[FamilyRecord]:
        def rank(dest: FamilyRecord) -> Tuple[int, int]:
            partners = int(sig.husband is not None and dest.husband_id == sig.husband)
            partners += int(sig.wife is not None and dest.wife_id == sig.wife)
            return partners, len(sig.children & set(dest.child_ids))

        ranked = sorted(fits, key=rank, reverse=True)
        if len(ranked) > 1 and rank(ranked[0]) == rank(ranked[1]):
            return None
        return ranked[0]

    # ------------------------------------------------------------------
    # New mappings
    # ------------------------------------------------------------------

    def _score(self, source: Optional[PersonRecord], dest: Optional[PersonRecord]) -> Optional[float]:
        if self.matcher is None or source is None or dest is None:
            return None
        return self.matcher.compare(source, dest).score

    def _capture_partners(
        self,
        family: FamilyRecord,
        dest_family: FamilyRecord,
        running: PersonMapping,
        source_persons: Optional[Mapping[str, PersonRecord]],
        dest_persons: Optional[Mapping[str, PersonRecord]],
    ) -> None:
        for source_id, dest_id in ((family.husband_id, dest_family.husband_id), (family.wife_id, dest_family.wife_id)):
            if not source_id or not dest_id or not running.can_add(source_id, dest_id):
                continue
            source = source_persons.get(source_id) if source_persons else None
            dest = dest_persons.get(dest_id) if dest_persons else None
            if source is not None and dest is not None and (
                source.gender.is_known and dest.gender.is_known and source.gender is not dest.gender
            ):
                log.info("Family %s: not mapping partner %s -> %s (gender differs)", family.id, source_id, dest_id)
                continue
            score = self._score(source, dest)
            running.add(MappingEntry(source_id, dest_id, MatchMethod.FAMILY_SPOUSE, score if score is not None else 0.0))
            log.info("Family %s: partner %s -> %s", family.id, source_id, dest_id)

    def _assign_children(
        self,
        family: FamilyRecord,
        dest_family: FamilyRecord,
        running: PersonMapping,
        source_persons: Optional[Mapping[str, PersonRecord]],
        dest_persons: Optional[Mapping[str, PersonRecord]],
    ) -> None:
        if self.matcher is None or not source_persons or not dest_persons:
            return

        src_children = [c for c in family.child_ids if c not in running and c in source_persons]
        dst_children = [
            c for c in dest_family.child_ids
            if not running.is_destination_claimed(c) and c in dest_persons
        ]
        if not src_children or not dst_children:
            return

        threshold = (
            EQUAL_COUNT_CHILD_THRESHOLD
            if len(src_children) == len(dst_children)
            else UNEQUAL_COUNT_CHILD_THRESHOLD
        )
        method = (
            MatchMethod.FAMILY_SINGLE_CHILD
            if len(src_children) == 1 and len(dst_children) == 1
            else MatchMethod.FAMILY_FUZZY_CHILD
        )

        scored: List[Tuple[float, int, int]] = []
        for i, source_id in enumerate(src_children):
            for j, dest_id in enumerate(dst_children):
                score = self.matcher.compare(source_persons[source_id], dest_persons[dest_id]).score
                if score >= threshold:
                    scored.append((score, i, j))

        # Greedy, highest score first; each child on either side used once
        used_src: Set[int] = set()
        used_dst: Set[int] = set()
        for score, i, j in sorted(scored, key=lambda t: (-t[0], t[1], t[2])):
            if i in used_src or j in used_dst:
                continue
            used_src.add(i)
            used_dst.add(j)
            running.add(MappingEntry(src_children[i], dst_children[j], method, score))
            log.info(
                "Family %s: child %s -> %s (%.1f, threshold %d)",
                family.id, src_children[i], dst_children[j], score, threshold,
            )

    # ------------------------------------------------------------------
    # Outcome records
    # ------------------------------------------------------------------

    def build_outcome(
        self,
        source_families: Mapping[str, FamilyRecord],
        dest_families: Mapping[str, FamilyRecord],
        matched_source: Mapping[str, Tuple[str, str]],
        mapping: PersonMapping,
        options: CompareOptions,
    ) -> FamilyCompareResult:
        """
        Classify every source family, in source order, given the family
        matches (source id -> (destination id, pass)) and the person mapping.
        """
        result = FamilyCompareResult()
        for fid, family in source_families.items():
            if fid in matched_source:
                dest_id, match_pass = matched_source[fid]
                update = self._family_update(family, dest_families[dest_id], mapping, match_pass)
                if update is None:
                    result.matched_families.append(MatchedFamily(fid, dest_id, match_pass))
                else:
                    result.families_to_update.append(update)
            else:
                result.families_to_add.append(self._family_to_add(family, mapping))

        if options.include_delete_suggestions:
            matched_dest = {dest_id for dest_id, _ in matched_source.values()}
            for dest_id in dest_families:
                if dest_id not in matched_dest:
                    result.families_to_delete.append(FamilyToDelete(dest_id))
        return result

    @staticmethod
    def _family_update(
        family: FamilyRecord,
        dest_family: FamilyRecord,
        running: PersonMapping,
        match_pass: str,
    ) -> Optional[FamilyToUpdate]:
        dest_children = set(dest_family.child_ids)
        missing = [
            FamilyMemberRef(child_id, running.get(child_id))
            for child_id in family.child_ids
            if running.get(child_id) not in dest_children
        ]

        diffs: List[FieldDiff] = []
        for role, source_id, dest_id in (
            ("Husband", family.husband_id, dest_family.husband_id),
            ("Wife", family.wife_id, dest_family.wife_id),
        ):
            if source_id and not dest_id:
                diffs.append(FieldDiff(role, running.get(source_id) or source_id, None, FieldAction.ADD))
        for diff in (
            diff_date("MarriageDate", family.marriage_date, dest_family.marriage_date),
            diff_string("MarriagePlace", family.marriage_place, dest_family.marriage_place),
            diff_date("DivorceDate", family.divorce_date, dest_family.divorce_date),
        ):
            if diff:
                diffs.append(diff)

        if not missing and not diffs:
            return None
        return FamilyToUpdate(family.id, dest_family.id, missing, diffs, match_pass)

    @staticmethod
    def _family_to_add(family: FamilyRecord, running: PersonMapping) -> FamilyToAdd:
        def ref(person_id: Optional[str]) -> Optional[FamilyMemberRef]:
            return FamilyMemberRef(person_id, running.get(person_id)) if person_id else None

        return FamilyToAdd(
            source_family_id=family.id,
            husband=ref(family.husband_id),
            wife=ref(family.wife_id),
            children=[FamilyMemberRef(c, running.get(c)) for c in family.child_ids],
            marriage_date=family.marriage_date,
            marriage_place=family.marriage_place,
        )
