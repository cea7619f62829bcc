"""
Reconciliation Orchestrator.

Seed -> IndividualPass -> FamilyPass -> Merge -> Converged? -> (loop)

``Reconciler.step`` is a pure function of ``ReconcileState``: it runs one
individual pass and one family pass against the state's mapping and returns
a new state (with the merged mapping and one more history entry) plus the
number of new mappings. ``Reconciler.run`` calls it until a pass finds
nothing new or ``SAFETY_ITERATION_LIMIT`` is reached. When the loop is cut
short or validation rolls mappings back, ``Reconciler.settle`` rebuilds the
final outcome from the final mapping.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Collection, Dict, Mapping, Optional, Tuple

from gedcom_reconcile.compare.family_compare import FamilyComparator
from gedcom_reconcile.compare.field_differ import DEFAULT_PHOTO_SIMILARITY_THRESHOLD, FieldDiffer
from gedcom_reconcile.compare.individual_compare import IndividualComparator
from gedcom_reconcile.compare.mapping_validation import rollback_suspicious_mappings, validate_mappings
from gedcom_reconcile.compare.models import (
    AnchorInfo,
    CompareOptions,
    CompareResult,
    CompareStatistics,
    FamilyCompareResult,
    IndividualCompareResult,
    IterationResult,
    MappingEntry,
    MatchMethod,
    PersonMapping,
)
from gedcom_reconcile.compare.placement import annotate_placements
from gedcom_reconcile.core.exceptions import AnchorNotFoundError
from gedcom_reconcile.logging import get_logger
from gedcom_reconcile.matching.fuzzy_matcher import FuzzyMatcher, MatchingOptions
from gedcom_reconcile.normalization.name_variants import NameEquivalenceOracle
from gedcom_reconcile.photos.compare import PhotoCompareCache, PhotoComparisonService
from gedcom_reconcile.registry.entities import TreeRegistry

log = get_logger("orchestrator")

SAFETY_ITERATION_LIMIT = 5


@dataclass(frozen=True, slots=True)
class ReconcileState:
    source: TreeRegistry
    destination: TreeRegistry
    options: CompareOptions
    mapping: PersonMapping
    iteration: int = 0
    history: Tuple[IterationResult, ...] = ()


def build_statistics(
    source: TreeRegistry,
    destination: TreeRegistry,
    individuals: IndividualCompareResult,
    families: FamilyCompareResult,
    mapped_persons: int,
) -> CompareStatistics:
    return CompareStatistics(
        source_persons=len(source.persons),
        destination_persons=len(destination.persons),
        matched=len(individuals.matched_nodes),
        to_update=len(individuals.nodes_to_update),
        to_add=len(individuals.nodes_to_add),
        to_delete=len(individuals.nodes_to_delete),
        ambiguous=len(individuals.ambiguous_matches),
        source_families=len(source.families),
        destination_families=len(destination.families),
        families_matched=len(families.matched_families),
        families_to_update=len(families.families_to_update),
        families_to_add=len(families.families_to_add),
        families_to_delete=len(families.families_to_delete),
        mapped_persons=mapped_persons,
    )


class Reconciler:
    def __init__(
        self,
        matcher: Optional[FuzzyMatcher] = None,
        differ: Optional[FieldDiffer] = None,
        individual_comparator: Optional[IndividualComparator] = None,
        family_comparator: Optional[FamilyComparator] = None,
        photo_cache: Optional[PhotoCompareCache] = None,
        iteration_limit: int = SAFETY_ITERATION_LIMIT,
    ):
        self.matcher = matcher or FuzzyMatcher()
        self.photo_cache = photo_cache
        self.differ = differ or FieldDiffer(photo_cache=photo_cache)
        self.individual_comparator = individual_comparator or IndividualComparator(self.matcher, self.differ)
        self.family_comparator = family_comparator or FamilyComparator(self.matcher)
        self.iteration_limit = max(1, min(int(iteration_limit), SAFETY_ITERATION_LIMIT))

    @classmethod
    def from_config(
        cls,
        cfg: Any,
        oracle: Optional[NameEquivalenceOracle] = None,
        photo_service: Optional[PhotoComparisonService] = None,
        photo_cache: Optional[PhotoCompareCache] = None,
    ) -> "Reconciler":
        matcher = FuzzyMatcher(MatchingOptions.from_config(cfg), oracle)
        threshold = float(cfg.photos.get("similarity_threshold", DEFAULT_PHOTO_SIMILARITY_THRESHOLD))
        differ = FieldDiffer(photo_service, photo_cache, threshold)
        return cls(
            matcher=matcher,
            differ=differ,
            photo_cache=photo_cache,
            iteration_limit=cfg.compare.get("iteration_limit", SAFETY_ITERATION_LIMIT),
        )

    # ------------------------------------------------------------------
    # Seed
    # ------------------------------------------------------------------

    @staticmethod
    def check_anchors(source: TreeRegistry, destination: TreeRegistry, options: CompareOptions) -> None:
        if options.anchor_source_id not in source.persons:
            raise AnchorNotFoundError("source", options.anchor_source_id)
        if options.anchor_destination_id not in destination.persons:
            raise AnchorNotFoundError("destination", options.anchor_destination_id)

    def seed(
        self,
        source: TreeRegistry,
        destination: TreeRegistry,
        options: CompareOptions,
        seed_mapping: Optional[Mapping[str, str]] = None,
    ) -> ReconcileState:
        self.check_anchors(source, destination, options)
        mapping = PersonMapping()
        mapping.add(MappingEntry(options.anchor_source_id, options.anchor_destination_id, MatchMethod.EXISTING_MAPPING))
        for source_id, dest_id in (seed_mapping or {}).items():
            if source_id not in source.persons or dest_id not in destination.persons:
                log.warning("Ignoring seed mapping %s -> %s: person not found", source_id, dest_id)
                continue
            if mapping.get(source_id) == dest_id:
                continue
            if not mapping.add(MappingEntry(source_id, dest_id, MatchMethod.EXISTING_MAPPING)):
                log.warning("Ignoring seed mapping %s -> %s: collides with an earlier pin", source_id, dest_id)
        return ReconcileState(source=source, destination=destination, options=options, mapping=mapping)

    # ------------------------------------------------------------------
    # One pass
    # ------------------------------------------------------------------

    def step(self, state: ReconcileState) -> Tuple[ReconcileState, int]:
        iteration = state.iteration + 1
        src, dst, options = state.source, state.destination, state.options

        individuals = self.individual_comparator.compare_individuals(
            src.persons, dst.persons, options, state.mapping
        )
        mapping = state.mapping.copy()
        new_count = 0
        for entry in individuals.resolved_entries(iteration):
            if entry.source_id in mapping:
                continue
            if mapping.add(entry):
                new_count += 1
            else:
                log.debug("Rejected individual mapping %s -> %s (collision)", entry.source_id, entry.destination_id)

        families = self.family_comparator.compare_families(
            src.families, dst.families, individuals, options, src.persons, dst.persons
        )
        for entry in families.new_person_mappings.values():
            if mapping.add(replace(entry, iteration=iteration)):
                new_count += 1
            else:
                log.debug("Rejected family mapping %s -> %s (collision)", entry.source_id, entry.destination_id)

        statistics = build_statistics(src, dst, individuals, families, len(mapping))
        record = IterationResult(iteration, individuals, families, statistics, new_count)
        log.info("Iteration %d: %d new mapping(s), %d total", iteration, new_count, len(mapping))

        next_state = replace(
            state,
            mapping=mapping,
            iteration=iteration,
            history=state.history + (record,),
        )
        return next_state, new_count

    # ------------------------------------------------------------------
    # Final outcome
    # ------------------------------------------------------------------

    def settle(
        self,
        source: TreeRegistry,
        destination: TreeRegistry,
        options: CompareOptions,
        last: IterationResult,
        mapping: PersonMapping,
        rolled_back: Collection[str] = (),
    ) -> Tuple[IndividualCompareResult, FamilyCompareResult, CompareStatistics]:
        """
        Rebuild the outcome of ``last`` so it agrees with the final ``mapping``.

        No new matches are made. Mapped persons are re-diffed, everyone else
        is "to add" (or stays ambiguous). Family matches keep their
        destination unless a partner was rolled back. Delete suggestions are
        only kept where the last pass already made them.
        """
        individuals = self.individual_comparator.compare_individuals(
            source.persons, destination.persons, options, mapping, match_unmapped=False
        )
        previous = last.individuals
        claimed = set(mapping.as_dict().values())
        carried = {}
        for ambiguous in previous.ambiguous_matches:
            if ambiguous.source_id in mapping:
                continue
            open_candidates = [c for c in ambiguous.candidates if c.destination_id not in claimed]
            if open_candidates:
                carried[ambiguous.source_id] = replace(ambiguous, candidates=open_candidates)
        individuals.ambiguous_matches = list(carried.values())
        individuals.nodes_to_add = [n for n in individuals.nodes_to_add if n.source_id not in carried]
        individuals.nodes_to_delete = [n for n in previous.nodes_to_delete if n.destination_id not in claimed]

        dropped = set(rolled_back)
        kept: Dict[str, Tuple[str, str]] = {}
        for match in [*last.families.matched_families, *last.families.families_to_update]:
            if dropped.intersection(source.families[match.source_family_id].partner_ids):
                log.info("Dropping family match %s -> %s: partner rolled back",
                         match.source_family_id, match.destination_family_id)
                continue
            kept[match.source_family_id] = (match.destination_family_id, match.match_pass)

        families = self.family_comparator.build_outcome(
            source.families, destination.families, kept, mapping, options
        )
        suggested = {d.destination_family_id for d in last.families.families_to_delete}
        families.families_to_delete = [d for d in families.families_to_delete if d.destination_family_id in suggested]
        families.new_person_mappings = {
            s: e for s, e in last.families.new_person_mappings.items() if mapping.get(s) == e.destination_id
        }

        statistics = build_statistics(source, destination, individuals, families, len(mapping))
        log.info("Settled final outcome on %d mapping(s), %d rolled back", len(mapping), len(dropped))
        return individuals, families, statistics

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    def run(
        self,
        source: TreeRegistry,
        destination: TreeRegistry,
        options: CompareOptions,
        seed_mapping: Optional[Mapping[str, str]] = None,
    ) -> CompareResult:
        state = self.seed(source, destination, options, seed_mapping)
        log.info(
            "Reconciling %d source / %d destination persons from anchor %s -> %s",
            len(source.persons), len(destination.persons),
            options.anchor_source_id, options.anchor_destination_id,
        )

        converged = False
        while state.iteration < self.iteration_limit:
            state, new_count = self.step(state)
            if new_count == 0:
                converged = True
                break

        if not converged:
            log.warning(
                "Stopped after %d iterations (safety limit) with mappings still growing; "
                "returning the best result so far",
                state.iteration,
            )

        last = state.history[-1]
        mapping = state.mapping

        validation = None
        rolled_back = []
        if options.validate_mappings:
            validation = validate_mappings(
                mapping.as_dict(), source.persons, destination.persons, source.families, destination.families
            )
            cleaned = rollback_suspicious_mappings(mapping.as_dict(), validation, source.families)
            rolled_back = [s for s in mapping if s not in cleaned]
            mapping = PersonMapping(e for e in mapping.entries() if e.source_id in cleaned)

        # The last pass already reflects the mapping unless the loop was cut
        # short or the validator removed entries.
        if rolled_back or not converged:
            individuals, families, statistics = self.settle(
                source, destination, options, last, mapping, rolled_back
            )
        else:
            individuals, families = last.individuals, last.families
            statistics = replace(last.statistics, mapped_persons=len(mapping))

        annotate_placements(individuals.nodes_to_add, source.persons, mapping.as_dict())

        anchors = AnchorInfo(
            options.anchor_source_id,
            options.anchor_destination_id,
            source.persons[options.anchor_source_id].summary(),
            destination.persons[options.anchor_destination_id].summary(),
        )
        return CompareResult(
            anchors=anchors,
            options=options,
            iterations=list(state.history),
            individuals=individuals,
            families=families,
            statistics=statistics,
            mapping=mapping.entries(),
            converged=converged,
            validation=validation,
            rolled_back=rolled_back,
        )
