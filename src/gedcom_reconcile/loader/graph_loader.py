"""
graph_loader.py
Read a parsed genealogy tree from JSON into a ``TreeRegistry``.

Expected shape (keys in brackets are optional):

    {
      ["name": "my tree",]
      "persons": [                      # alias: "individuals"
        {
          "id": "@I1@",
          ["first_name" / "last_name" / "maiden_name" / "middle_name" / "nickname" / "suffix"],
          ["name": "Ivan /Petrov/"],    # GEDCOM style; fills first/last when missing
          ["gender": "M"],
          ["birth": {"date": "1 JAN 1885", "place": "Moscow"}],   # also birth_date / birth_place
          ["death": {...}], ["burial": {...}],
          ["photos": ["https://..."]],  # alias: "photo_urls"
          ["profile_id": "geni:6000000012345"],  # alias: "rfn"
          ["father_id", "mother_id", "spouse_ids", "children_ids", "sibling_ids"]
        }
      ],
      "families": [
        {"id": "@F1@", "husband": "@I1@", "wife": "@I2@", "children": ["@I3@"],
         ["marriage": {"date": ..., "place": ...}], ["divorce": {"date": ...}]}
      ]
    }

Relations missing on persons are derived from the families (link_entities).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from gedcom_reconcile.core.exceptions import GraphLoadError
from gedcom_reconcile.dates.normalizer import DateInfo, parse_date
from gedcom_reconcile.logging import get_logger
from gedcom_reconcile.normalization.name_normalization import split_gedcom_name
from gedcom_reconcile.registry.entities import FamilyRecord, Gender, PersonRecord, TreeRegistry
from gedcom_reconcile.registry.link_entities import link_entities

log = get_logger("graph_loader")


def _event(raw: Dict[str, Any], key: str) -> Tuple[Optional[DateInfo], Optional[str]]:
    event = raw.get(key)
    if isinstance(event, dict):
        date_text, place = event.get("date"), event.get("place")
    else:
        date_text, place = raw.get(f"{key}_date"), raw.get(f"{key}_place")
    date = parse_date(date_text) if date_text else None
    if date_text and date is None:
        log.debug("Unparseable %s date %r on %s", key, date_text, raw.get("id"))
    return date, (place or None)


def _list(raw: Dict[str, Any], *keys: str) -> Tuple[str, ...]:
    for key in keys:
        value = raw.get(key)
        if value:
            return tuple(str(v) for v in value)
    return ()


def person_from_dict(raw: Dict[str, Any]) -> PersonRecord:
    if not isinstance(raw, dict) or not raw.get("id"):
        raise GraphLoadError(f"Person entry without an id: {raw!r}")

    first, last = raw.get("first_name"), raw.get("last_name")
    if raw.get("name") and not (first or last):
        first, last = split_gedcom_name(raw["name"])

    birth_date, birth_place = _event(raw, "birth")
    death_date, death_place = _event(raw, "death")
    burial_date, burial_place = _event(raw, "burial")

    return PersonRecord(
        id=str(raw["id"]),
        first_name=first,
        last_name=last,
        maiden_name=raw.get("maiden_name"),
        middle_name=raw.get("middle_name"),
        nickname=raw.get("nickname"),
        suffix=raw.get("suffix"),
        gender=Gender.parse(raw.get("gender") or raw.get("sex")),
        birth_date=birth_date,
        death_date=death_date,
        burial_date=burial_date,
        birth_place=birth_place,
        death_place=death_place,
        burial_place=burial_place,
        photo_urls=_list(raw, "photos", "photo_urls"),
        profile_id=raw.get("profile_id") or raw.get("rfn"),
        father_id=raw.get("father_id"),
        mother_id=raw.get("mother_id"),
        spouse_ids=_list(raw, "spouse_ids"),
        children_ids=_list(raw, "children_ids"),
        sibling_ids=_list(raw, "sibling_ids"),
    )


def family_from_dict(raw: Dict[str, Any]) -> FamilyRecord:
    if not isinstance(raw, dict) or not raw.get("id"):
        raise GraphLoadError(f"Family entry without an id: {raw!r}")
    marriage_date, marriage_place = _event(raw, "marriage")
    divorce_date, _ = _event(raw, "divorce")
    return FamilyRecord(
        id=str(raw["id"]),
        husband_id=raw.get("husband") or raw.get("husband_id"),
        wife_id=raw.get("wife") or raw.get("wife_id"),
        child_ids=_list(raw, "children", "child_ids"),
        marriage_date=marriage_date,
        marriage_place=marriage_place,
        divorce_date=divorce_date,
    )


def tree_from_dict(data: Dict[str, Any], name: str = "") -> TreeRegistry:
    if not isinstance(data, dict):
        raise GraphLoadError("Tree JSON must be an object with 'persons' and 'families'")

    registry = TreeRegistry(name=data.get("name") or name)
    for raw in data.get("persons") or data.get("individuals") or []:
        person = person_from_dict(raw)
        if person.id in registry.persons:
            log.warning("Duplicate person id %s in %s; keeping the last entry", person.id, registry.name)
        registry.register_person(person)
    for raw in data.get("families") or []:
        registry.register_family(family_from_dict(raw))

    return link_entities(registry)


def load_tree(path: str | Path) -> TreeRegistry:
    path = Path(path)
    if not path.exists():
        raise GraphLoadError(f"Tree file not found: {path}")

    log.info("Loading tree JSON: %s", path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise GraphLoadError(f"Invalid JSON in {path}: {exc}") from exc

    registry = tree_from_dict(data, name=path.stem)
    log.info(
        "Loaded %s: persons=%d families=%d",
        registry.name, len(registry.persons), len(registry.families),
    )
    return registry


def load_mapping(path: str | Path) -> Dict[str, str]:
    """
    Read a mapping JSON: either ``{"source_id": "dest_id", ...}`` or an
    exported result's ``"mapping"`` list of ``{"source_id", "destination_id"}``.
    """
    path = Path(path)
    if not path.exists():
        raise GraphLoadError(f"Mapping file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise GraphLoadError(f"Invalid JSON in {path}: {exc}") from exc

    if isinstance(data, dict) and isinstance(data.get("mapping"), list):
        return {str(e["source_id"]): str(e["destination_id"]) for e in data["mapping"]}
    if isinstance(data, dict):
        return {str(k): str(v) for k, v in data.items()}
    raise GraphLoadError(f"Unrecognized mapping format in {path}")
