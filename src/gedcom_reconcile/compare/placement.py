"""
Where does a person that must be created attach to the destination tree?

Breadth-first search over source relations from each "to add" person to the
nearest mapped person. The first hop on the shortest path gives the
attachment point (``related_to_node_id``: the destination id when that
relative is mapped, otherwise its source id, which will be created first)
and the relation of the new person to it.
"""

from __future__ import annotations

from collections import deque
from typing import Dict, List, Mapping, Optional, Tuple

from gedcom_reconcile.compare.models import NodeToAdd
from gedcom_reconcile.registry.entities import PersonRecord


def _neighbours(person: PersonRecord) -> List[Tuple[str, str]]:
    """(relative id, relation of ``person`` to that relative)."""
    out: List[Tuple[str, str]] = []
    if person.father_id:
        out.append((person.father_id, "child"))
    if person.mother_id:
        out.append((person.mother_id, "child"))
    out.extend((s, "spouse") for s in person.spouse_ids)
    out.extend((c, "parent") for c in person.children_ids)
    out.extend((s, "sibling") for s in person.sibling_ids)
    return out


def find_placement(
    source_id: str,
    source_persons: Mapping[str, PersonRecord],
    mapping: Mapping[str, str],
) -> Optional[Tuple[str, str, int]]:
    """
    Returns (related_to_node_id, relation_type, depth) or None when no
    mapped person is reachable.
    """
    start = source_persons.get(source_id)
    if start is None:
        return None

    # first_hop[pid] = (neighbour of start on the path, relation of start to it)
    first_hop: Dict[str, Tuple[str, str]] = {}
    depth: Dict[str, int] = {source_id: 0}
    queue = deque([source_id])

    while queue:
        current_id = queue.popleft()
        current = source_persons.get(current_id)
        if current is None:
            continue
        for relative_id, relation in _neighbours(current):
            if relative_id in depth:
                continue
            depth[relative_id] = depth[current_id] + 1
            first_hop[relative_id] = (
                (relative_id, relation) if current_id == source_id else first_hop[current_id]
            )
            if relative_id in mapping:
                hop_id, hop_relation = first_hop[relative_id]
                return mapping.get(hop_id, hop_id), hop_relation, depth[relative_id]
            queue.append(relative_id)
    return None


def annotate_placements(
    nodes_to_add: List[NodeToAdd],
    source_persons: Mapping[str, PersonRecord],
    mapping: Mapping[str, str],
) -> int:
    """Fill placement fields in place; returns how many nodes were placed."""
    placed = 0
    for node in nodes_to_add:
        found = find_placement(node.source_id, source_persons, mapping)
        if found is None:
            continue
        node.related_to_node_id, node.relation_type, node.depth_from_existing = found
        placed += 1
    return placed
