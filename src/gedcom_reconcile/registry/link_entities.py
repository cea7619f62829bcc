from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Optional

from gedcom_reconcile.registry.entities import PersonRecord, TreeRegistry


def _append_unique(bucket: Dict[str, List[str]], key: str, value: Optional[str]) -> None:
    if not value or value == key:
        return
    values = bucket.setdefault(key, [])
    if value not in values:
        values.append(value)


def link_entities(registry: TreeRegistry) -> TreeRegistry:
    """
    Derive person relations from the family records.

    Design:
      - records are immutable, so a new registry is returned
      - relations already present on a person are kept (first), derived
        ones are appended without duplicates
      - families referencing unknown persons are tolerated

    Idempotent: linking a linked registry yields equal records.
    """
    fathers: Dict[str, str] = {}
    mothers: Dict[str, str] = {}
    spouses: Dict[str, List[str]] = {}
    children: Dict[str, List[str]] = {}
    siblings: Dict[str, List[str]] = {}

    for fam in registry.families.values():
        husb, wife = fam.husband_id, fam.wife_id
        if husb:
            _append_unique(spouses, husb, wife)
        if wife:
            _append_unique(spouses, wife, husb)

        for child_id in fam.child_ids:
            if husb:
                fathers.setdefault(child_id, husb)
                _append_unique(children, husb, child_id)
            if wife:
                mothers.setdefault(child_id, wife)
                _append_unique(children, wife, child_id)
            for other in fam.child_ids:
                _append_unique(siblings, child_id, other)

    linked = TreeRegistry(name=registry.name)
    for person in registry.persons.values():
        linked.register_person(_link_person(person, fathers, mothers, spouses, children, siblings))
    for fam in registry.families.values():
        linked.register_family(fam)
    return linked


def _merge(existing: tuple, derived: List[str]) -> tuple:
    out = list(existing)
    for value in derived:
        if value not in out:
            out.append(value)
    return tuple(out)


def _link_person(
    person: PersonRecord,
    fathers: Dict[str, str],
    mothers: Dict[str, str],
    spouses: Dict[str, List[str]],
    children: Dict[str, List[str]],
    siblings: Dict[str, List[str]],
) -> PersonRecord:
    pid = person.id
    return replace(
        person,
        father_id=person.father_id or fathers.get(pid),
        mother_id=person.mother_id or mothers.get(pid),
        spouse_ids=_merge(person.spouse_ids, spouses.get(pid, [])),
        children_ids=_merge(person.children_ids, children.get(pid, [])),
        sibling_ids=_merge(person.sibling_ids, siblings.get(pid, [])),
    )
