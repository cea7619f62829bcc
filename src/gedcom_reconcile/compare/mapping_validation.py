"""
Mapping Validator.

``validate_mappings`` audits a source -> destination mapping for internal
contradictions and never mutates it. ``rollback_suspicious_mappings``
returns a cleaned copy: High-severity pairs are removed together with the
mapped spouses/children of every source family in which a flagged person
is a partner, and any remaining duplicate destinations are dropped so the
result is injective.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Set

from gedcom_reconcile.compare.models import (
    IssueType,
    MappingIssue,
    MatchMethod,
    Severity,
    ValidationResult,
    calculate_confidence,
)
from gedcom_reconcile.logging import get_logger
from gedcom_reconcile.registry.entities import FamilyRecord, PersonRecord

log = get_logger("mapping_validation")

MAX_BIRTH_YEAR_GAP = 5

__all__ = [
    "MatchMethod",
    "calculate_confidence",
    "rollback_suspicious_mappings",
    "validate_mappings",
]


def _roles(families: Mapping[str, FamilyRecord]) -> tuple[Set[str], Set[str]]:
    parents: Set[str] = set()
    children: Set[str] = set()
    for fam in families.values():
        parents.update(fam.partner_ids)
        children.update(fam.child_ids)
    return parents, children


def _check_dates(source: PersonRecord, dest: PersonRecord) -> List[str]:
    problems: List[str] = []
    sb, db = source.birth_year, dest.birth_year
    sd, dd = source.death_year, dest.death_year
    if sb is not None and db is not None and abs(sb - db) > MAX_BIRTH_YEAR_GAP:
        problems.append(f"birth years differ by {abs(sb - db)} ({sb} vs {db})")
    if sd is not None and db is not None and sd < db:
        problems.append(f"source death year {sd} precedes destination birth year {db}")
    if dd is not None and sb is not None and dd < sb:
        problems.append(f"destination death year {dd} precedes source birth year {sb}")
    return problems


def validate_mappings(
    mapping: Mapping[str, str],
    source_persons: Mapping[str, PersonRecord],
    dest_persons: Mapping[str, PersonRecord],
    source_families: Mapping[str, FamilyRecord],
    dest_families: Mapping[str, FamilyRecord],
) -> ValidationResult:
    result = ValidationResult()

    # Duplicate destinations
    claimed_by: Dict[str, List[str]] = {}
    for source_id, dest_id in mapping.items():
        claimed_by.setdefault(dest_id, []).append(source_id)
    for dest_id, source_ids in claimed_by.items():
        if len(source_ids) < 2:
            continue
        for source_id in source_ids:
            result.issues.append(
                MappingIssue(
                    source_id,
                    dest_id,
                    IssueType.DUPLICATE_MAPPING,
                    Severity.HIGH,
                    f"destination {dest_id} is claimed by {len(source_ids)} source persons: {', '.join(source_ids)}",
                )
            )

    src_parents, src_children = _roles(source_families)
    dst_parents, dst_children = _roles(dest_families)

    for source_id, dest_id in mapping.items():
        source = source_persons.get(source_id)
        dest = dest_persons.get(dest_id)
        if source is None or dest is None:
            continue

        if source.gender.is_known and dest.gender.is_known and source.gender is not dest.gender:
            result.issues.append(
                MappingIssue(
                    source_id,
                    dest_id,
                    IssueType.GENDER_MISMATCH,
                    Severity.HIGH,
                    f"gender {source.gender.value} vs {dest.gender.value}",
                )
            )

        for problem in _check_dates(source, dest):
            result.issues.append(
                MappingIssue(source_id, dest_id, IssueType.DATE_CONTRADICTION, Severity.MEDIUM, problem)
            )

        source_is_parent = source_id in src_parents
        dest_is_parent = dest_id in dst_parents
        if source_is_parent and not dest_is_parent and dest_id in dst_children:
            result.issues.append(
                MappingIssue(
                    source_id,
                    dest_id,
                    IssueType.GENERATIONAL_INCONSISTENCY,
                    Severity.HIGH,
                    f"{source_id} is a parent in the source tree but {dest_id} is only ever a child",
                )
            )
        elif dest_is_parent and not source_is_parent and source_id in src_children:
            result.issues.append(
                MappingIssue(
                    source_id,
                    dest_id,
                    IssueType.GENERATIONAL_INCONSISTENCY,
                    Severity.HIGH,
                    f"{dest_id} is a parent in the destination tree but {source_id} is only ever a child",
                )
            )

    if result.issues:
        log.info(
            "Mapping validation: %d issue(s) (high=%d medium=%d low=%d)",
            len(result.issues),
            result.high_severity_count,
            result.medium_severity_count,
            result.low_severity_count,
        )
    return result


def rollback_suspicious_mappings(
    mapping: Mapping[str, str],
    validation: ValidationResult,
    source_families: Mapping[str, FamilyRecord],
) -> Dict[str, str]:
    flagged = set(validation.high_severity_source_ids)
    to_remove: Set[str] = set(flagged)

    # Cascade: spouses and children in families where a flagged person is a partner
    for fam in source_families.values():
        if not flagged.intersection(fam.partner_ids):
            continue
        for member in fam.member_ids:
            if member in mapping and member not in to_remove:
                to_remove.add(member)
                log.debug("Rollback cascade: %s (family %s)", member, fam.id)

    cleaned: Dict[str, str] = {}
    seen_dest: Set[str] = set()
    for source_id, dest_id in mapping.items():
        if source_id in to_remove:
            continue
        if dest_id in seen_dest:
            to_remove.add(source_id)
            continue
        cleaned[source_id] = dest_id
        seen_dest.add(dest_id)

    removed = [s for s in mapping if s in to_remove]
    if removed:
        log.warning(
            "Rolled back %d mapping(s) (%d flagged high severity): %s",
            len(removed), len(flagged & set(mapping)), ", ".join(removed),
        )
    return cleaned
