from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from gedcom_reconcile.dates.normalizer import DateInfo
from gedcom_reconcile.normalization.name_normalization import normalize_name


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "Gender":
        if isinstance(value, Gender):
            return value
        if value is None:
            return cls.UNKNOWN
        s = str(value).strip().lower()
        if s in ("m", "male", "man", "husband", "муж", "мужской"):
            return cls.MALE
        if s in ("f", "female", "woman", "wife", "жен", "женский"):
            return cls.FEMALE
        return cls.UNKNOWN

    @property
    def is_known(self) -> bool:
        return self is not Gender.UNKNOWN


def _as_tuple(values: Optional[Iterable[str]]) -> Tuple[str, ...]:
    if not values:
        return ()
    return tuple(v for v in values if v)


# -----------------------------
# Records
# -----------------------------

@dataclass(frozen=True, slots=True)
class PersonRecord:
    """
    One person as known to one tree.

    Normalized names are derived from the raw names on construction and
    cannot be passed in; ``dataclasses.replace`` re-derives them.
    Relation fields are ids into the same tree.
    """
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    maiden_name: Optional[str] = None
    middle_name: Optional[str] = None
    nickname: Optional[str] = None
    suffix: Optional[str] = None
    gender: Gender = Gender.UNKNOWN

    birth_date: Optional[DateInfo] = None
    death_date: Optional[DateInfo] = None
    burial_date: Optional[DateInfo] = None
    birth_place: Optional[str] = None
    death_place: Optional[str] = None
    burial_place: Optional[str] = None

    photo_urls: Tuple[str, ...] = ()
    profile_id: Optional[str] = None

    father_id: Optional[str] = None
    mother_id: Optional[str] = None
    spouse_ids: Tuple[str, ...] = ()
    children_ids: Tuple[str, ...] = ()
    sibling_ids: Tuple[str, ...] = ()

    normalized_first_name: str = field(init=False, default="")
    normalized_last_name: str = field(init=False, default="")
    normalized_maiden_name: str = field(init=False, default="")
    normalized_middle_name: str = field(init=False, default="")

    def __post_init__(self) -> None:
        object.__setattr__(self, "gender", Gender.parse(self.gender))
        for name in ("photo_urls", "spouse_ids", "children_ids", "sibling_ids"):
            object.__setattr__(self, name, _as_tuple(getattr(self, name)))
        object.__setattr__(self, "normalized_first_name", normalize_name(self.first_name))
        object.__setattr__(self, "normalized_last_name", normalize_name(self.last_name))
        object.__setattr__(self, "normalized_maiden_name", normalize_name(self.maiden_name))
        object.__setattr__(self, "normalized_middle_name", normalize_name(self.middle_name))

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name, self.suffix]
        return " ".join(p for p in parts if p)

    @property
    def birth_year(self) -> Optional[int]:
        return self.birth_date.year if self.birth_date else None

    @property
    def death_year(self) -> Optional[int]:
        return self.death_date.year if self.death_date else None

    @property
    def relative_ids(self) -> Tuple[str, ...]:
        """Parents, spouses, children and siblings (in that order)."""
        parents = tuple(p for p in (self.father_id, self.mother_id) if p)
        return parents + self.spouse_ids + self.children_ids + self.sibling_ids

    def summary(self) -> str:
        name = self.full_name or "<unnamed>"
        if self.birth_date:
            return f"{name} (b. {self.birth_date.year})"
        return name


@dataclass(frozen=True, slots=True)
class FamilyRecord:
    """
    One family unit. A family without partners only groups children;
    that is unusual but valid.
    """
    id: str
    husband_id: Optional[str] = None
    wife_id: Optional[str] = None
    child_ids: Tuple[str, ...] = ()
    marriage_date: Optional[DateInfo] = None
    marriage_place: Optional[str] = None
    divorce_date: Optional[DateInfo] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "child_ids", _as_tuple(self.child_ids))

    @property
    def partner_ids(self) -> Tuple[str, ...]:
        return tuple(p for p in (self.husband_id, self.wife_id) if p)

    @property
    def member_ids(self) -> Tuple[str, ...]:
        return self.partner_ids + self.child_ids


# -----------------------------
# Registry
# -----------------------------

@dataclass(slots=True)
class TreeRegistry:
    """
    In-memory snapshot of one tree, indexed by record id.
    """
    persons: Dict[str, PersonRecord] = field(default_factory=dict)
    families: Dict[str, FamilyRecord] = field(default_factory=dict)
    name: str = ""

    def register_person(self, person: PersonRecord) -> None:
        self.persons[person.id] = person

    def register_family(self, family: FamilyRecord) -> None:
        self.families[family.id] = family

    def get_person(self, person_id: str) -> Optional[PersonRecord]:
        return self.persons.get(person_id)

    def get_family(self, family_id: str) -> Optional[FamilyRecord]:
        return self.families.get(family_id)

    def families_as_partner(self, person_id: str) -> List[FamilyRecord]:
        return [f for f in self.families.values() if person_id in f.partner_ids]

    def families_as_child(self, person_id: str) -> List[FamilyRecord]:
        return [f for f in self.families.values() if person_id in f.child_ids]
